import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.database import get_session_factory
from storefront.presentation.auth import Caller, get_caller, require_admin
from storefront.presentation.schemas import (
    CreateOrderRequest, OrderResponse, OrderListResponse, UpdateOrderStatusRequest,
    AddCartItemRequest, UpdateCartItemRequest, CartResponse, ErrorResponse
)
from storefront.application.create_order import CreateOrderUseCase, CreateOrderDTO, OrderLineDTO
from storefront.application.get_order import GetOrderUseCase, GetUserOrdersUseCase, ListOrdersUseCase
from storefront.application.update_order_status import UpdateOrderStatusUseCase
from storefront.application.cart_store import CartStore
from storefront.domain.models import PaymentInfo, ShippingAddress
from storefront.domain.exceptions import (
    NotFoundError, ValidationError, InsufficientStockError, InvalidTransitionError
)
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


def get_unit_of_work(session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory)):
    return UnitOfWork(session_factory)


# Use case factories
def get_create_order_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return CreateOrderUseCase(uow)


def get_get_order_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return GetOrderUseCase(uow)


def get_user_orders_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return GetUserOrdersUseCase(uow)


def get_list_orders_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return ListOrdersUseCase(uow)


def get_update_status_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return UpdateOrderStatusUseCase(uow)


def get_cart_store(uow: UnitOfWork = Depends(get_unit_of_work)):
    return CartStore(uow, max_items=settings.MAX_CART_ITEMS)


def to_http_error(e: Exception) -> HTTPException:
    """Domain error -> HTTP error. Unexpected errors are logged and become 500."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, (ValidationError, InsufficientStockError, InvalidTransitionError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.exception(f"Internal error: {e}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


ERROR_RESPONSES = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


@router.post(
    "/order",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    caller: Caller = Depends(get_caller),
    idempotency_key: Optional[str] = Header(None),
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case)
):
    """Place an order for the caller"""
    try:
        dto = CreateOrderDTO(
            user_id=caller.user_id,
            items=[OrderLineDTO(product_id=i.product_id, quantity=i.quantity) for i in request.items],
            shipping_address=ShippingAddress(**request.shipping_address.model_dump()),
            payment_info=PaymentInfo(**request.payment_info.model_dump()) if request.payment_info else None,
            idempotency_key=idempotency_key
        )
        order = await use_case(dto)
        return OrderResponse.from_domain(order)
    except Exception as e:
        raise to_http_error(e)


@router.get("/order/me", response_model=List[OrderResponse])
async def get_my_orders(
    caller: Caller = Depends(get_caller),
    use_case: GetUserOrdersUseCase = Depends(get_user_orders_use_case)
):
    """Orders of the caller, newest first"""
    try:
        orders = await use_case(caller.user_id)
        return [OrderResponse.from_domain(order) for order in orders]
    except Exception as e:
        raise to_http_error(e)


@router.get("/order/{order_id}", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def get_order(
    order_id: str,
    caller: Caller = Depends(get_caller),
    use_case: GetOrderUseCase = Depends(get_get_order_use_case)
):
    """Single order, visible to its owner or an admin"""
    try:
        order = await use_case(order_id, user_id=caller.user_id, is_admin=caller.is_admin)
        return OrderResponse.from_domain(order)
    except Exception as e:
        raise to_http_error(e)


@router.get("/admin/orders", response_model=OrderListResponse)
async def get_all_orders(
    caller: Caller = Depends(require_admin),
    use_case: ListOrdersUseCase = Depends(get_list_orders_use_case)
):
    try:
        orders, total_amount = await use_case()
        return OrderListResponse(
            total_amount=total_amount,
            orders=[OrderResponse.from_domain(order) for order in orders]
        )
    except Exception as e:
        raise to_http_error(e)


@router.put("/admin/order/{order_id}", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def update_order_status(
    order_id: str,
    request: UpdateOrderStatusRequest,
    caller: Caller = Depends(require_admin),
    use_case: UpdateOrderStatusUseCase = Depends(get_update_status_use_case)
):
    try:
        order = await use_case(order_id, request.status)
        return OrderResponse.from_domain(order)
    except Exception as e:
        raise to_http_error(e)


@router.get("/cart", response_model=CartResponse)
async def get_cart(
    caller: Caller = Depends(get_caller),
    cart_store: CartStore = Depends(get_cart_store)
):
    try:
        return CartResponse.from_domain(await cart_store.get(caller.user_id))
    except Exception as e:
        raise to_http_error(e)


@router.post("/cart/{product_id}", response_model=CartResponse, responses=ERROR_RESPONSES)
async def add_to_cart(
    product_id: str,
    request: Optional[AddCartItemRequest] = None,
    caller: Caller = Depends(get_caller),
    cart_store: CartStore = Depends(get_cart_store)
):
    quantity = request.quantity if request else 1
    try:
        cart = await cart_store.add_item(caller.user_id, product_id, quantity)
        return CartResponse.from_domain(cart)
    except Exception as e:
        raise to_http_error(e)


@router.put("/cart/update", response_model=CartResponse, responses=ERROR_RESPONSES)
async def update_cart_item(
    request: UpdateCartItemRequest,
    caller: Caller = Depends(get_caller),
    cart_store: CartStore = Depends(get_cart_store)
):
    try:
        cart = await cart_store.update_item(caller.user_id, request.product_id, request.quantity)
        return CartResponse.from_domain(cart)
    except Exception as e:
        raise to_http_error(e)


@router.delete("/cart/remove/{product_id}", response_model=CartResponse, responses=ERROR_RESPONSES)
async def remove_from_cart(
    product_id: str,
    caller: Caller = Depends(get_caller),
    cart_store: CartStore = Depends(get_cart_store)
):
    try:
        cart = await cart_store.remove_item(caller.user_id, product_id)
        return CartResponse.from_domain(cart)
    except Exception as e:
        raise to_http_error(e)


@router.delete("/cart/clear", response_model=CartResponse, responses=ERROR_RESPONSES)
async def clear_cart(
    caller: Caller = Depends(get_caller),
    cart_store: CartStore = Depends(get_cart_store)
):
    try:
        cart = await cart_store.clear(caller.user_id)
        return CartResponse.from_domain(cart)
    except Exception as e:
        raise to_http_error(e)
