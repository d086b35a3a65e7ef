import uuid
from collections import defaultdict
from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy import select, insert, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain.models import (
    MAX_QUANTITY, Cart, CartItem, Order, OrderItem, OrderStatus, PaymentInfo, Product, ShippingAddress
)
from storefront.domain.exceptions import (
    ValidationError, ProductNotFoundError, InsufficientStockError
)
from storefront.infrastructure.db_schema import (
    products_tbl, carts_tbl, cart_items_tbl, orders_tbl, order_items_tbl, outbox_events_tbl
)
from storefront.application.interfaces import (
    InventoryLedger, CartRepository, OrderRepository, OutboxRepository
)


class SQLAlchemyInventoryLedger(InventoryLedger):
    """Stock counters. Stock only moves through guarded single-statement UPDATEs."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, product_id: str) -> Optional[Product]:
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id == product_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_many(self, product_ids: List[str]) -> dict:
        if not product_ids:
            return {}
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id.in_(product_ids))
        )
        return {row.id: self._to_domain(row) for row in result.fetchall()}

    async def add(self, product: Product) -> None:
        await self._session.execute(
            insert(products_tbl).values(
                id=product.id,
                name=product.name,
                price=product.price,
                stock=product.stock
            )
        )

    async def reserve(self, product_id: str, quantity: int) -> int:
        if quantity < 1:
            raise ValidationError("Reservation quantity must be at least 1")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"Reservation quantity cannot exceed {MAX_QUANTITY}")

        # Decrement only if enough stock is left; the WHERE clause is the guard
        result = await self._session.execute(
            update(products_tbl)
            .where(products_tbl.c.id == product_id, products_tbl.c.stock >= quantity)
            .values(stock=products_tbl.c.stock - quantity)
        )
        product = await self.get(product_id)
        if result.rowcount == 0:
            if product is None:
                raise ProductNotFoundError(product_id)
            raise InsufficientStockError(product_id, product.stock, quantity)
        return product.stock

    async def release(self, product_id: str, quantity: int) -> int:
        if quantity < 1:
            raise ValidationError("Release quantity must be at least 1")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"Release quantity cannot exceed {MAX_QUANTITY}")

        result = await self._session.execute(
            update(products_tbl)
            .where(products_tbl.c.id == product_id)
            .values(stock=products_tbl.c.stock + quantity)
        )
        if result.rowcount == 0:
            raise ProductNotFoundError(product_id)
        product = await self.get(product_id)
        return product.stock

    def _to_domain(self, row) -> Product:
        return Product(id=row.id, name=row.name, price=row.price, stock=row.stock)


class SQLAlchemyCartRepository(CartRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_user(self, user_id: str) -> Optional[Cart]:
        result = await self._session.execute(
            select(carts_tbl).where(carts_tbl.c.user_id == user_id)
        )
        row = result.fetchone()
        if not row:
            return None

        items = await self._session.execute(
            select(
                cart_items_tbl.c.product_id,
                cart_items_tbl.c.quantity,
                products_tbl.c.name,
                products_tbl.c.price
            )
            .join(products_tbl, products_tbl.c.id == cart_items_tbl.c.product_id)
            .where(cart_items_tbl.c.cart_id == row.id)
            .order_by(cart_items_tbl.c.position.asc())
        )
        return Cart(
            id=row.id,
            user_id=row.user_id,
            items=[
                CartItem(product_id=i.product_id, quantity=i.quantity, name=i.name, price=i.price)
                for i in items.fetchall()
            ],
            total_quantity=row.total_quantity,
            total=row.total,
            created_at=row.created_at,
            updated_at=row.updated_at
        )

    async def save(self, cart: Cart) -> Cart:
        now = datetime.now(timezone.utc)
        if cart.id is None:
            cart_id = await self._insert_cart(cart, now)
        else:
            cart_id = cart.id
            await self._session.execute(
                update(carts_tbl)
                .where(carts_tbl.c.id == cart_id)
                .values(total_quantity=cart.total_quantity, total=cart.total, updated_at=now)
            )

        await self._session.execute(
            delete(cart_items_tbl).where(cart_items_tbl.c.cart_id == cart_id)
        )
        if cart.items:
            await self._session.execute(
                insert(cart_items_tbl),
                [
                    {
                        "cart_id": cart_id,
                        "product_id": item.product_id,
                        "position": position,
                        "quantity": item.quantity
                    }
                    for position, item in enumerate(cart.items)
                ]
            )
        return await self.get_by_user(cart.user_id)

    async def _insert_cart(self, cart: Cart, now: datetime) -> str:
        cart_id = str(uuid.uuid4())
        try:
            async with self._session.begin_nested():
                await self._session.execute(
                    insert(carts_tbl).values(
                        id=cart_id,
                        user_id=cart.user_id,
                        total_quantity=cart.total_quantity,
                        total=cart.total,
                        created_at=now,
                        updated_at=now
                    )
                )
        except IntegrityError:
            # Another request created the user's cart first
            result = await self._session.execute(
                select(carts_tbl.c.id).where(carts_tbl.c.user_id == cart.user_id)
            )
            cart_id = result.scalar_one()
            await self._session.execute(
                update(carts_tbl)
                .where(carts_tbl.c.id == cart_id)
                .values(total_quantity=cart.total_quantity, total=cart.total, updated_at=now)
            )
        return cart_id

    async def delete_by_user(self, user_id: str) -> bool:
        result = await self._session.execute(
            select(carts_tbl.c.id).where(carts_tbl.c.user_id == user_id)
        )
        cart_id = result.scalar_one_or_none()
        if cart_id is None:
            return False
        await self._session.execute(
            delete(cart_items_tbl).where(cart_items_tbl.c.cart_id == cart_id)
        )
        await self._session.execute(
            delete(carts_tbl).where(carts_tbl.c.id == cart_id)
        )
        return True


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        orders = await self._fetch(select(orders_tbl).where(orders_tbl.c.id == order_id))
        return orders[0] if orders else None

    async def get_by_user(self, user_id: str) -> List[Order]:
        return await self._fetch(
            select(orders_tbl)
            .where(orders_tbl.c.user_id == user_id)
            .order_by(orders_tbl.c.created_at.desc())
        )

    async def get_all(self) -> List[Order]:
        return await self._fetch(select(orders_tbl).order_by(orders_tbl.c.created_at.desc()))

    async def get_by_idempotency_key(self, user_id: str, key: str) -> Optional[Order]:
        orders = await self._fetch(
            select(orders_tbl).where(
                orders_tbl.c.user_id == user_id,
                orders_tbl.c.idempotency_key == key
            )
        )
        return orders[0] if orders else None

    async def create(self, order: Order) -> None:
        await self._session.execute(
            insert(orders_tbl).values(
                id=order.id,
                user_id=order.user_id,
                shipping_address=order.shipping_address.model_dump(),
                payment_info=order.payment_info.model_dump() if order.payment_info else None,
                total_amount=order.total_amount,
                status=order.status,
                idempotency_key=order.idempotency_key,
                created_at=order.created_at,
                paid_at=order.paid_at,
                fulfilled_at=order.fulfilled_at
            )
        )
        await self._session.execute(
            insert(order_items_tbl),
            [
                {
                    "order_id": order.id,
                    "position": position,
                    "product_id": item.product_id,
                    "name": item.name,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price
                }
                for position, item in enumerate(order.items)
            ]
        )

    async def mark_fulfilled(self, order_id: str, fulfilled_at: datetime) -> bool:
        # Only a pending row matches, so a second fulfilment changes nothing
        result = await self._session.execute(
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id, orders_tbl.c.status == OrderStatus.PENDING)
            .values(status=OrderStatus.FULFILLED, fulfilled_at=fulfilled_at)
        )
        return result.rowcount == 1

    async def _fetch(self, stmt) -> List[Order]:
        result = await self._session.execute(stmt)
        rows = result.fetchall()
        if not rows:
            return []

        items_result = await self._session.execute(
            select(order_items_tbl)
            .where(order_items_tbl.c.order_id.in_([row.id for row in rows]))
            .order_by(order_items_tbl.c.order_id, order_items_tbl.c.position)
        )
        items_by_order = defaultdict(list)
        for item in items_result.fetchall():
            items_by_order[item.order_id].append(
                OrderItem(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price
                )
            )
        return [self._to_domain(row, items_by_order[row.id]) for row in rows]

    def _to_domain(self, row, items: List[OrderItem]) -> Order:
        """DB → Domain"""
        return Order(
            id=row.id,
            user_id=row.user_id,
            items=tuple(items),
            shipping_address=ShippingAddress(**row.shipping_address),
            payment_info=PaymentInfo(**row.payment_info) if row.payment_info else None,
            total_amount=row.total_amount,
            status=OrderStatus(row.status),
            idempotency_key=row.idempotency_key,
            created_at=row.created_at,
            paid_at=row.paid_at,
            fulfilled_at=row.fulfilled_at
        )


class SQLAlchemyOutboxRepository(OutboxRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        event_id = str(uuid.uuid4())
        stmt = insert(outbox_events_tbl).values(
            id=event_id,
            event_type=event_type,
            event_data=event_data,
            order_id=order_id,
            status="pending",
            created_at=datetime.now(timezone.utc)
        )
        await self._session.execute(stmt)
        return event_id

    async def get_pending(self, limit: int = 10) -> List[dict]:
        result = await self._session.execute(
            select(outbox_events_tbl)
            .where(outbox_events_tbl.c.status == "pending")
            .order_by(outbox_events_tbl.c.created_at.asc())
            .limit(limit)
        )
        rows = result.fetchall()

        return [
            {
                "id": row.id,
                "event_type": row.event_type,
                "event_data": row.event_data,
                "order_id": row.order_id
            }
            for row in rows
        ]

    async def mark_as_published(self, event_id: str) -> None:
        stmt = (
            update(outbox_events_tbl)
            .where(outbox_events_tbl.c.id == event_id)
            .values(status="published")
        )
        await self._session.execute(stmt)
