from sqlalchemy import (
    Table, Column, String, Integer, Numeric, Enum, DateTime, JSON, MetaData,
    ForeignKey, CheckConstraint, UniqueConstraint
)
from sqlalchemy.sql import func

from storefront.domain.models import OrderStatus

metadata = MetaData()


products_tbl = Table(
    "products",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("price", Numeric(12, 2), nullable=False),
    Column("stock", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
)


carts_tbl = Table(
    "carts",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, unique=True, index=True),
    Column("total_quantity", Integer, nullable=False, default=0),
    Column("total", Numeric(12, 2), nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


cart_items_tbl = Table(
    "cart_items",
    metadata,
    Column("cart_id", String, ForeignKey("carts.id", ondelete="CASCADE"), primary_key=True),
    Column("product_id", String, ForeignKey("products.id"), primary_key=True),
    Column("position", Integer, nullable=False),
    Column("quantity", Integer, nullable=False),
    CheckConstraint("quantity >= 1", name="ck_cart_items_quantity_positive"),
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("shipping_address", JSON, nullable=False),
    Column("payment_info", JSON, nullable=True),
    Column("total_amount", Numeric(12, 2), nullable=False),
    Column("status", Enum(OrderStatus, values_callable=lambda e: [s.value for s in e]),
           nullable=False, default=OrderStatus.PENDING),
    Column("idempotency_key", String, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("paid_at", DateTime(timezone=True), nullable=True),
    Column("fulfilled_at", DateTime(timezone=True), nullable=True),
    UniqueConstraint("user_id", "idempotency_key", name="uq_orders_user_idempotency_key"),
)


order_items_tbl = Table(
    "order_items",
    metadata,
    Column("order_id", String, ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True),
    Column("position", Integer, primary_key=True),
    Column("product_id", String, nullable=False),
    Column("name", String, nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Numeric(12, 2), nullable=False),
)


outbox_events_tbl = Table(
    "outbox_events",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_type", String, nullable=False),
    Column("event_data", JSON, nullable=False),
    Column("order_id", String, nullable=False),
    Column("status", String, default="pending"),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)
