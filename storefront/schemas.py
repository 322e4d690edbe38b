"""
Pydantic Schemas for Request/Response Validation

Covers the checkout surface:
- Cart lines as they arrive from the cart store (lenient prices)
- Shipping addresses (all optional; the validator decides)
- Checkout session requests/responses
- Order confirmation endpoint payloads

Author: Storefront Team
Version: 1.0.0
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Any, Dict
from datetime import datetime
from enum import Enum


# =============================================================================
# ENUMS
# =============================================================================

class FulfillmentMode(str, Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class ProductType(str, Enum):
    """Catalog partition a cart line was resolved against."""
    MENU_ITEM = "menu_item"
    DISH = "dish"
    LEGACY = "legacy"


# =============================================================================
# CART
# =============================================================================

class ResolvedProduct(BaseModel):
    """Joined product data attached to a cart line."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    price: Any = None  # number or string, parsed leniently
    is_available: Optional[bool] = None


class CartLine(BaseModel):
    """
    One product + quantity entry of an in-progress order.

    Prices may be numbers or strings; the pricing module never trusts them.
    """
    model_config = ConfigDict(extra="ignore")

    id: str
    quantity: int = Field(..., ge=1, examples=[2])
    price: Any = Field(None, examples=[12.5])
    price_at_purchase: Any = None
    menu_item_id: Optional[str] = None
    product_id: Optional[str] = None
    name: Optional[str] = None
    resolved_product: Optional[ResolvedProduct] = None
    product: Optional[ResolvedProduct] = None
    resolved_product_type: Optional[ProductType] = None
    variant_id: Optional[str] = None
    combination_id: Optional[str] = None
    variant_metadata: Any = None  # dict or serialized JSON string
    variant_snapshot: Any = None
    variant_display: Optional[str] = None


# =============================================================================
# ADDRESSES
# =============================================================================

class ShippingAddress(BaseModel):
    """Shipping address as typed into the checkout form."""
    model_config = ConfigDict(extra="ignore")

    full_name: Optional[str] = Field(None, examples=["Jane Doe"])
    street_address: Optional[str] = Field(None, examples=["350 Fifth Avenue"])
    city: Optional[str] = Field(None, examples=["New York"])
    state_province: Optional[str] = Field(None, examples=["NY"])
    postal_code: Optional[str] = Field(None, examples=["10118"])
    country: Optional[str] = Field(None, examples=["US"])
    phone_number: Optional[str] = Field(None, examples=["(555) 123-4567"])
    delivery_instructions: Optional[str] = Field(None, max_length=500)


class SavedAddress(ShippingAddress):
    """Address row from the customer's address book."""
    id: str
    user_id: Optional[str] = None
    label: Optional[str] = None
    is_default: bool = False


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class QuoteRequest(BaseModel):
    """Price a cart without opening a checkout session."""
    lines: List[CartLine] = Field(default_factory=list)
    discount_amount: float = Field(default=0.0, ge=0)


class AddressValidationRequest(BaseModel):
    address: ShippingAddress
    require_phone: bool = False


class CreateSessionRequest(BaseModel):
    """
    Open a checkout session.

    Authenticated shoppers send a bearer token in the Authorization header;
    guests may seed their local cart with ``lines``.
    """
    guest_session_id: Optional[str] = None
    lines: Optional[List[CartLine]] = None
    require_phone: bool = False


class SubmitOrderRequest(BaseModel):
    """
    The checkout form. Either an inline ``address`` or a saved
    ``selected_address_id`` (signed-in shoppers) supplies the shipping address.
    """
    address: Optional[ShippingAddress] = None
    selected_address_id: Optional[str] = None
    guest_email: Optional[str] = Field(None, examples=["jane@example.com"])
    fulfillment_mode: FulfillmentMode = FulfillmentMode.DELIVERY
    scheduled_slot: Optional[str] = Field(None, examples=["2026-10-18T19:30"])
    order_note: Optional[str] = Field(None, max_length=500)
    email_updates_opt_in: bool = False
    sms_updates_opt_in: bool = False


class ApplyDiscountRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50, examples=["WELCOME10"])


class PaymentErrorRequest(BaseModel):
    message: Optional[str] = None


class SendConfirmationRequest(BaseModel):
    """Body of the order confirmation endpoint (camelCase on the wire)."""
    model_config = ConfigDict(populate_by_name=True)

    order_id: Optional[str] = Field(None, alias="orderId")
    email: Optional[str] = None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class PricingResponse(BaseModel):
    total_items_count: int
    subtotal: float
    shipping: float
    tax: float
    tax_rate_percent: float
    discount_amount: float
    grand_total: float


class AddressValidationResponse(BaseModel):
    valid: bool
    missing: List[str]
    errors: List[str]


class MessageResponse(BaseModel):
    text: str
    level: str


class AppliedDiscountResponse(BaseModel):
    code: str
    discount_code_id: str
    amount: float


class CheckoutSessionResponse(BaseModel):
    """Public view of a checkout session."""
    session_id: str
    state: str
    failure_reason: Optional[str] = None
    is_authenticated: bool
    guest_session_id: Optional[str] = None
    lines: List[Dict[str, Any]]
    pricing: PricingResponse
    discount: Optional[AppliedDiscountResponse] = None
    message: Optional[MessageResponse] = None
    notices: List[MessageResponse] = Field(default_factory=list)
    order_id: Optional[str] = None
    client_secret: Optional[str] = None
    show_payment: bool = False
    show_success_modal: bool = False
    show_conversion_modal: bool = False
    order_success: bool = False
    guest_checkout_data: Optional[Dict[str, Any]] = None
    tracking_status: Optional[str] = None
    redirect_to: Optional[str] = None
    selected_address_id: Optional[str] = None
    live_updates: bool = False


class SubmitOrderResponse(BaseModel):
    success: bool
    order_id: str
    client_secret: str
    amount: float
    currency: str


class PaymentSuccessResponse(BaseModel):
    accepted: bool
    state: str


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    menu_item_id: Optional[str] = None
    product_id: Optional[str] = None
    name: str
    quantity: int
    price: float
    variant_metadata: Optional[Dict[str, Any]] = None


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str] = None
    customer_email: str
    customer_name: str
    is_guest: bool
    shipping_address: Dict[str, Any]
    subtotal: float
    shipping: float
    tax: float
    discount_amount: float
    order_total: float
    status: str
    items: List[OrderItemResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    total: int
    orders: List[OrderResponse]


class SendConfirmationResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    order_id: Optional[str] = Field(None, serialization_alias="orderId")


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    environment: str
    database: str
    redis: str
    payment_service: str
    notification_service: str
    realtime_service: str
    active_sessions: int
    timestamp: datetime
