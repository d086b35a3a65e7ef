from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field

CENTS = Decimal("0.01")

# Largest quantity an INTEGER stock column can hold
MAX_QUANTITY = 2_147_483_647


def to_money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


class OrderStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"


class Product(BaseModel):
    """Value Object: product as seen by the inventory ledger"""
    id: str
    name: str
    price: Decimal = Field(ge=0)
    stock: int = Field(ge=0)


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    name: Optional[str] = None
    price: Optional[Decimal] = None


class Cart(BaseModel):
    """Domain Entity: one cart per user"""
    id: Optional[str] = None
    user_id: str
    items: list[CartItem] = []
    total_quantity: int = 0
    total: Decimal = Decimal("0.00")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def find(self, product_id: str) -> Optional[CartItem]:
        return next((item for item in self.items if item.product_id == product_id), None)

    def with_totals(self) -> "Cart":
        total_quantity, total = recompute_cart_totals(
            (item.price or Decimal("0"), item.quantity) for item in self.items
        )
        return self.model_copy(update={"total_quantity": total_quantity, "total": total})


def recompute_cart_totals(lines: Iterable[Tuple[Decimal, int]]) -> Tuple[int, Decimal]:
    """Derive (total_quantity, total) from (unit price, quantity) pairs."""
    total_quantity = 0
    total = Decimal("0")
    for price, quantity in lines:
        total_quantity += quantity
        total += Decimal(price) * quantity
    return total_quantity, to_money(total)


class OrderItem(BaseModel):
    """Value Object: product snapshot taken at purchase time"""
    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class ShippingAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    street: str
    city: str
    state: str
    pin_code: str
    phone: str


class PaymentInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None


class Order(BaseModel):
    """Domain Entity: order"""
    id: str
    user_id: str
    items: Tuple[OrderItem, ...]
    shipping_address: ShippingAddress
    payment_info: Optional[PaymentInfo] = None
    total_amount: Decimal
    status: OrderStatus
    idempotency_key: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    fulfilled_at: Optional[datetime] = None

    def can_be_fulfilled(self) -> bool:
        """Business rule: only a pending order can be fulfilled"""
        return self.status == OrderStatus.PENDING


def order_total(items: Iterable[OrderItem]) -> Decimal:
    return to_money(sum((item.line_total for item in items), Decimal("0")))
