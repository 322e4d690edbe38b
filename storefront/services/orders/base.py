"""
Order Service Abstract Base Class

The order-creation collaborator. Checkout composes an ``OrderDraft``
(identity, shipping snapshot, line items, discount reference) and gets back
an ``OrderCreationResult`` carrying the new order id or an error message.

Draft validation is shared by every implementation, so the mock rejects
exactly what the database-backed service rejects. Totals are always
recomputed here from the line items; client-side totals are never trusted.

Author: Storefront Team
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from storefront.checkout.line_items import OrderLineItem
from storefront.checkout.pricing import (
    PricingPolicy,
    calculate_grand_total,
    calculate_shipping,
    calculate_tax,
    round_currency,
)


@dataclass
class OrderDraft:
    """Everything the order collaborator needs to create an order."""
    customer_email: str
    customer_name: str
    shipping_address: Dict[str, Any]
    items: List[OrderLineItem]
    user_id: Optional[str] = None
    discount_code_id: Optional[str] = None
    discount_amount: Decimal = Decimal("0")
    guest_session_id: Optional[str] = None
    is_guest: bool = False


@dataclass
class OrderCreationResult:
    success: bool
    order_id: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class OrderTotals:
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    discount_amount: Decimal
    order_total: Decimal


@dataclass
class OrderSummary:
    """Stored order as returned by get/list."""
    id: str
    customer_email: str
    customer_name: str
    shipping_address: Dict[str, Any]
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    discount_amount: Decimal
    order_total: Decimal
    status: str = "pending"
    user_id: Optional[str] = None
    guest_session_id: Optional[str] = None
    is_guest: bool = False
    items: List[Dict[str, Any]] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "customer_email": self.customer_email,
            "customer_name": self.customer_name,
            "is_guest": self.is_guest,
            "shipping_address": self.shipping_address,
            "subtotal": float(self.subtotal),
            "shipping": float(self.shipping),
            "tax": float(self.tax),
            "discount_amount": float(self.discount_amount),
            "order_total": float(self.order_total),
            "status": self.status,
            "items": self.items,
            "created_at": self.created_at,
        }


def validate_draft(draft: OrderDraft) -> Optional[str]:
    """Return the first problem with ``draft``, or None when it is acceptable."""
    if not draft.customer_email or not draft.customer_email.strip():
        return "Customer email is required"
    if not draft.customer_name or not draft.customer_name.strip():
        return "Customer name is required"
    if not draft.shipping_address:
        return "Shipping address is required"
    if not draft.items:
        return "Order must contain at least one item"
    for item in draft.items:
        if not item.menu_item_id and not item.product_id:
            return "Each item must have a menu_item_id or product_id"
        if not item.quantity or item.quantity <= 0:
            return "Each item must have a valid quantity"
    return None


def compute_totals(items: List[OrderLineItem], discount_amount: Decimal, policy: PricingPolicy) -> OrderTotals:
    """Server-side totals, rounded to cents for storage."""
    subtotal = sum((item.price_at_purchase * item.quantity for item in items), Decimal("0"))
    shipping = calculate_shipping(subtotal, policy)
    tax = calculate_tax(subtotal, shipping, policy)
    discount = max(Decimal("0"), Decimal(discount_amount or 0))
    return OrderTotals(
        subtotal=round_currency(subtotal),
        shipping=round_currency(shipping),
        tax=round_currency(tax),
        discount_amount=round_currency(discount),
        order_total=round_currency(calculate_grand_total(subtotal, shipping, tax, discount)),
    )


class BaseOrderService(ABC):
    """Abstract base class for order services."""

    def __init__(self, pricing_policy: Optional[PricingPolicy] = None):
        self.pricing_policy = pricing_policy or PricingPolicy.from_settings()

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    async def create_order(self, draft: OrderDraft) -> OrderCreationResult:
        """Validate ``draft`` and persist it with its items atomically."""
        problem = validate_draft(draft)
        if problem:
            return OrderCreationResult(success=False, error_message=problem)
        totals = compute_totals(draft.items, draft.discount_amount, self.pricing_policy)
        return await self._insert_order(draft, totals)

    @abstractmethod
    async def _insert_order(self, draft: OrderDraft, totals: OrderTotals) -> OrderCreationResult:
        """Persist a validated draft."""
        pass

    @abstractmethod
    async def get_order(self, order_id: str) -> Optional[OrderSummary]:
        pass

    @abstractmethod
    async def list_orders(
        self,
        user_id: Optional[str] = None,
        guest_session_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[OrderSummary]:
        """Most recent first."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass
