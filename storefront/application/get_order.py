from decimal import Decimal
from typing import List, Optional, Tuple

from storefront.domain.models import Order, to_money
from storefront.domain.exceptions import OrderNotFoundError


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, user_id: Optional[str] = None, is_admin: bool = False) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
        # Someone else's order is reported the same way as a missing one
        if not order or (not is_admin and order.user_id != user_id):
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order


class GetUserOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, user_id: str) -> List[Order]:
        async with self._uow() as uow:
            return await uow.orders.get_by_user(user_id)


class ListOrdersUseCase:
    """All orders, newest first, with the sum of their totals"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self) -> Tuple[List[Order], Decimal]:
        async with self._uow() as uow:
            orders = await uow.orders.get_all()
        total_amount = to_money(sum((order.total_amount for order in orders), Decimal("0")))
        return orders, total_amount
