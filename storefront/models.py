"""
SQLAlchemy Database Models

Storefront tables touched by the checkout flow:
- Menu items (new schema) and legacy products
- Cart rows for authenticated shoppers
- Saved customer addresses
- Orders with their line items
- Discount codes and their per-order usage

Author: Storefront Team
Version: 1.0.0
"""

import enum
import uuid

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, Enum, Boolean,
    ForeignKey, JSON, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storefront.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    PAID = "paid"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


# =============================================================================
# CATALOG
# =============================================================================

class MenuItem(Base):
    """New-schema menu item (dishes are menu items too)."""
    __tablename__ = "menu_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    category = Column(String(80), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<MenuItem {self.id} - {self.name} - {self.price}>"


class Product(Base):
    """Legacy product catalog, still referenced by older cart rows."""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(150), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# =============================================================================
# CART & ADDRESSES
# =============================================================================

class CartItem(Base):
    """
    Cart row of an authenticated shopper.

    Exactly one of ``menu_item_id`` / ``product_id`` is expected to be set.
    """
    __tablename__ = "cart_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    menu_item_id = Column(String(36), ForeignKey("menu_items.id"), nullable=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=True)  # unit price when added
    variant_id = Column(String(36), nullable=True)
    combination_id = Column(String(36), nullable=True)
    variant_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    menu_item = relationship("MenuItem", lazy="joined")
    product = relationship("Product", lazy="joined")


class CustomerAddress(Base):
    """Saved shipping address of a customer."""
    __tablename__ = "addresses"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    label = Column(String(50), nullable=True)
    full_name = Column(String(100), nullable=False)
    street_address = Column(String(255), nullable=False)
    city = Column(String(80), nullable=False)
    state_province = Column(String(80), nullable=False)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(80), nullable=False)
    phone_number = Column(String(20), nullable=True)
    is_default = Column(Boolean, default=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    """
    Orders placed through checkout.

    Totals are recomputed server-side at creation time; the shipping address
    is stored as a JSON snapshot so later address edits don't rewrite history.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)

    # Customer
    user_id = Column(String(36), nullable=True, index=True)
    customer_email = Column(String(255), nullable=False)
    customer_name = Column(String(100), nullable=False)
    is_guest = Column(Boolean, default=False, nullable=False)
    guest_session_id = Column(String(36), nullable=True, index=True)

    # Fulfillment
    shipping_address = Column(JSON, nullable=False)

    # Pricing
    subtotal = Column(Numeric(10, 2), nullable=False)
    shipping = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False)
    discount_code_id = Column(String(36), ForeignKey("discount_codes.id"), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    order_total = Column(Numeric(10, 2), nullable=False)

    # Payment
    payment_intent_id = Column(String(100), nullable=True)
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    items = relationship("OrderItem", back_populates="order", lazy="selectin")

    def __repr__(self):
        return f"<Order {self.id} - {self.customer_email} - {self.status.value}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(String(36), nullable=True)
    product_id = Column(String(36), nullable=True)
    name = Column(String(150), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    variant_id = Column(String(36), nullable=True)
    combination_id = Column(String(36), nullable=True)
    variant_metadata = Column(JSON, nullable=True)

    order = relationship("Order", back_populates="items")


# =============================================================================
# DISCOUNTS
# =============================================================================

class DiscountCode(Base):
    __tablename__ = "discount_codes"

    id = Column(String(36), primary_key=True, default=_uuid)
    code = Column(String(50), nullable=False, unique=True, index=True)
    discount_type = Column(Enum(DiscountType), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    min_order_amount = Column(Numeric(10, 2), nullable=True)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)
    one_per_customer = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)


class DiscountCodeUsage(Base):
    """One row per (code, customer); the unique constraint rejects reuse."""
    __tablename__ = "discount_code_usage"
    __table_args__ = (
        UniqueConstraint("discount_code_id", "user_id", name="uq_discount_usage_customer"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    discount_code_id = Column(String(36), ForeignKey("discount_codes.id"), nullable=False)
    user_id = Column(String(36), nullable=False)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    order_subtotal = Column(Numeric(10, 2), nullable=False)
    used_at = Column(DateTime(timezone=True), server_default=func.now())
