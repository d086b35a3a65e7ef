import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from storefront.domain.models import (
    MAX_QUANTITY, Order, OrderItem, OrderStatus, PaymentInfo, ShippingAddress, order_total
)
from storefront.domain.exceptions import DomainException, ValidationError, ProductNotFoundError


logger = logging.getLogger(__name__)


class OrderLineDTO(BaseModel):
    product_id: str
    quantity: int


class CreateOrderDTO(BaseModel):
    user_id: str
    items: List[OrderLineDTO]
    shipping_address: ShippingAddress
    payment_info: Optional[PaymentInfo] = None
    idempotency_key: Optional[str] = None


class CreateOrderUseCase:
    """Checkout: reserve stock for every line, persist the order, drop the cart.

    All writes share one transaction. Reservations made before a failure are
    also released explicitly, newest first, before the error is re-raised.
    """

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_data: CreateOrderDTO) -> Order:
        self._validate(order_data)
        logger.info(f"Creating order for user {order_data.user_id} with {len(order_data.items)} line(s)")

        try:
            async with self._uow() as uow:
                if order_data.idempotency_key:
                    existing = await uow.orders.get_by_idempotency_key(
                        order_data.user_id, order_data.idempotency_key
                    )
                    if existing:
                        logger.info(f"Order already exists for idempotency key: {existing.id}")
                        return existing

                items = await self._reserve_all(uow, order_data.items)

                now = datetime.now(timezone.utc)
                order = Order(
                    id=str(uuid.uuid4()),
                    user_id=order_data.user_id,
                    items=tuple(items),
                    shipping_address=order_data.shipping_address,
                    payment_info=order_data.payment_info,
                    total_amount=order_total(items),
                    status=OrderStatus.PENDING,
                    idempotency_key=order_data.idempotency_key,
                    created_at=now,
                    paid_at=now if order_data.payment_info else None
                )
                await uow.orders.create(order)
                await uow.outbox.create(
                    event_type="order.created",
                    event_data={
                        "order_id": order.id,
                        "user_id": order.user_id,
                        "total_amount": str(order.total_amount),
                        "items": [
                            {"product_id": item.product_id, "quantity": item.quantity}
                            for item in order.items
                        ]
                    },
                    order_id=order.id
                )
                await uow.carts.delete_by_user(order.user_id)
                await uow.commit()
        except IntegrityError:
            if not order_data.idempotency_key:
                raise
            # A concurrent request with the same key committed first
            async with self._uow() as uow:
                existing = await uow.orders.get_by_idempotency_key(
                    order_data.user_id, order_data.idempotency_key
                )
            if existing is None:
                raise
            logger.info(f"Order already exists for idempotency key: {existing.id}")
            return existing

        logger.info(f"Order created: {order.id}, total {order.total_amount}")
        return order

    def _validate(self, order_data: CreateOrderDTO) -> None:
        if not order_data.items:
            raise ValidationError("Order must contain at least one item")
        for line in order_data.items:
            if line.quantity < 1:
                raise ValidationError(f"Quantity for product {line.product_id} must be at least 1")
            if line.quantity > MAX_QUANTITY:
                raise ValidationError(f"Quantity for product {line.product_id} cannot exceed {MAX_QUANTITY}")

    async def _reserve_all(self, uow, lines: List[OrderLineDTO]) -> List[OrderItem]:
        products = await uow.inventory.get_many([line.product_id for line in lines])
        for line in lines:
            if line.product_id not in products:
                raise ProductNotFoundError(line.product_id)

        # Fixed product order keeps concurrent checkouts from locking rows crosswise
        reserved: List[Tuple[str, int]] = []
        try:
            for line in sorted(lines, key=lambda line: line.product_id):
                await uow.inventory.reserve(line.product_id, line.quantity)
                reserved.append((line.product_id, line.quantity))
        except DomainException:
            for product_id, quantity in reversed(reserved):
                await uow.inventory.release(product_id, quantity)
            raise

        return [
            OrderItem(
                product_id=line.product_id,
                name=products[line.product_id].name,
                quantity=line.quantity,
                unit_price=products[line.product_id].price
            )
            for line in lines
        ]
