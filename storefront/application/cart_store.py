import logging

from storefront.domain.models import MAX_QUANTITY, Cart, CartItem
from storefront.domain.exceptions import (
    ValidationError, CartLimitExceededError, CartNotFoundError, CartItemNotFoundError,
    ProductNotFoundError, InsufficientStockError
)

logger = logging.getLogger(__name__)


class CartStore:
    """Per-user cart.

    Stock checks here are advisory; checkout reserves against the ledger again.
    Every mutation goes through ``_save`` which recomputes the totals.
    """

    def __init__(self, unit_of_work, max_items: int = 20):
        self._uow = unit_of_work
        self._max_items = max_items

    async def get(self, user_id: str) -> Cart:
        async with self._uow() as uow:
            cart = await uow.carts.get_by_user(user_id)
        return cart or Cart(user_id=user_id)

    async def add_item(self, user_id: str, product_id: str, quantity: int = 1) -> Cart:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_QUANTITY}")

        async with self._uow() as uow:
            product = await self._check_stock(uow, product_id, quantity)
            cart = await uow.carts.get_by_user(user_id) or Cart(user_id=user_id)

            existing = cart.find(product_id)
            if existing:
                existing.quantity = quantity
                existing.price = product.price
            else:
                if len(cart.items) >= self._max_items:
                    raise CartLimitExceededError(self._max_items)
                cart.items.append(
                    CartItem(product_id=product_id, quantity=quantity, name=product.name, price=product.price)
                )

            cart = await self._save(uow, cart)
        logger.info(f"Cart of user {user_id}: product {product_id} set to {quantity}")
        return cart

    async def update_item(self, user_id: str, product_id: str, quantity: int) -> Cart:
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_QUANTITY}")

        async with self._uow() as uow:
            cart = await self._require_cart(uow, user_id)
            existing = cart.find(product_id)
            if existing is None:
                raise CartItemNotFoundError(f"Product {product_id} is not in the cart")

            if quantity == 0:
                cart.items.remove(existing)
            else:
                product = await self._check_stock(uow, product_id, quantity)
                existing.quantity = quantity
                existing.price = product.price

            cart = await self._save(uow, cart)
        return cart

    async def remove_item(self, user_id: str, product_id: str) -> Cart:
        async with self._uow() as uow:
            cart = await self._require_cart(uow, user_id)
            cart.items = [item for item in cart.items if item.product_id != product_id]
            cart = await self._save(uow, cart)
        return cart

    async def clear(self, user_id: str) -> Cart:
        async with self._uow() as uow:
            cart = await self._require_cart(uow, user_id)
            cart.items = []
            cart = await self._save(uow, cart)
        return cart

    async def _require_cart(self, uow, user_id: str) -> Cart:
        cart = await uow.carts.get_by_user(user_id)
        if cart is None:
            raise CartNotFoundError(f"Cart not found for user {user_id}")
        return cart

    async def _check_stock(self, uow, product_id: str, quantity: int):
        product = await uow.inventory.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if product.stock < quantity:
            raise InsufficientStockError(product_id, product.stock, quantity)
        return product

    async def _save(self, uow, cart: Cart) -> Cart:
        saved = await uow.carts.save(cart.with_totals())
        await uow.commit()
        return saved
