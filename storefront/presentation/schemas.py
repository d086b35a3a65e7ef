from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from storefront.domain.models import MAX_QUANTITY, OrderStatus


class OrderLineRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, le=MAX_QUANTITY)


class ShippingAddressRequest(BaseModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    pin_code: str = Field(pattern=r"^[0-9]{6}$")
    phone: str = Field(pattern=r"^[0-9]{10}$")


class PaymentInfoRequest(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None


class CreateOrderRequest(BaseModel):
    items: List[OrderLineRequest]
    shipping_address: ShippingAddressRequest
    payment_info: Optional[PaymentInfoRequest] = None


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus


class OrderItemResponse(BaseModel):
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class OrderResponse(BaseModel):
    id: str
    user_id: str
    items: List[OrderItemResponse]
    shipping_address: ShippingAddressRequest
    payment_info: Optional[PaymentInfoRequest] = None
    total_amount: Decimal
    status: OrderStatus
    created_at: datetime
    paid_at: Optional[datetime] = None
    fulfilled_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, order):
        return cls(
            id=order.id,
            user_id=order.user_id,
            items=[
                OrderItemResponse(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    line_total=item.line_total
                )
                for item in order.items
            ],
            shipping_address=ShippingAddressRequest(**order.shipping_address.model_dump()),
            payment_info=PaymentInfoRequest(**order.payment_info.model_dump()) if order.payment_info else None,
            total_amount=order.total_amount,
            status=order.status,
            created_at=order.created_at,
            paid_at=order.paid_at,
            fulfilled_at=order.fulfilled_at
        )


class OrderListResponse(BaseModel):
    total_amount: Decimal
    orders: List[OrderResponse]


class AddCartItemRequest(BaseModel):
    quantity: int = Field(1, ge=1, le=MAX_QUANTITY)


class UpdateCartItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=0, le=MAX_QUANTITY)


class CartItemResponse(BaseModel):
    product_id: str
    name: Optional[str] = None
    price: Optional[Decimal] = None
    quantity: int


class CartResponse(BaseModel):
    user_id: str
    items: List[CartItemResponse]
    total_quantity: int
    total: Decimal

    @classmethod
    def from_domain(cls, cart):
        return cls(
            user_id=cart.user_id,
            items=[
                CartItemResponse(
                    product_id=item.product_id,
                    name=item.name,
                    price=item.price,
                    quantity=item.quantity
                )
                for item in cart.items
            ],
            total_quantity=cart.total_quantity,
            total=cart.total
        )


class ErrorResponse(BaseModel):
    detail: str
