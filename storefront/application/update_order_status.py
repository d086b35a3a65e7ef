import logging
from datetime import datetime, timezone

from storefront.domain.models import Order, OrderStatus
from storefront.domain.exceptions import OrderNotFoundError, InvalidTransitionError

logger = logging.getLogger(__name__)


class UpdateOrderStatusUseCase:
    """Admin status change. The only legal move is pending -> fulfilled."""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, new_status: OrderStatus) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Order {order_id} not found")

            if new_status != OrderStatus.FULFILLED or not order.can_be_fulfilled():
                raise InvalidTransitionError(order_id, order.status.value, OrderStatus(new_status).value)

            fulfilled_at = datetime.now(timezone.utc)
            if not await uow.orders.mark_fulfilled(order_id, fulfilled_at):
                # Lost the race to a concurrent fulfilment
                raise InvalidTransitionError(order_id, OrderStatus.FULFILLED.value, OrderStatus.FULFILLED.value)

            await uow.outbox.create(
                event_type="order.fulfilled",
                event_data={
                    "order_id": order_id,
                    "user_id": order.user_id,
                    "fulfilled_at": fulfilled_at.isoformat()
                },
                order_id=order_id
            )
            await uow.commit()

        logger.info(f"Order {order_id} marked {OrderStatus.FULFILLED.value}")
        return order.model_copy(update={"status": OrderStatus.FULFILLED, "fulfilled_at": fulfilled_at})
