"""
Explicit checkout context.

Everything the orchestrator, the completion handler and the realtime
watcher need (who is shopping, what is in the cart, which discount and
address are selected, and which collaborators to call) is handed to them
through these objects. Nothing reads global state.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from storefront.checkout.pricing import PricingPolicy, PricingSnapshot, build_pricing_snapshot
from storefront.core.config import Settings
from storefront.schemas import CartLine, SavedAddress

if TYPE_CHECKING:
    from storefront.services.customer import BaseCustomerDataService, GuestCartStore
    from storefront.services.discounts import BaseDiscountService
    from storefront.services.notifications.dispatch import ConfirmationDispatcher
    from storefront.services.orders import BaseOrderService
    from storefront.services.outbox import BestEffortOutbox
    from storefront.services.payment import BasePaymentService
    from storefront.services.realtime import BaseRealtimeService

logger = logging.getLogger(__name__)

CartListener = Callable[[List[CartLine]], None]


@dataclass
class SessionContext:
    """Identity of the shopper as reported by the auth collaborator."""
    user_id: Optional[str] = None
    email: Optional[str] = None
    access_token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


class CheckoutCart:
    """
    The cart as seen by checkout.

    Replaced wholesale by refetches (last refetch wins); listeners are told
    about every replacement.
    """

    def __init__(self, lines: Optional[List[CartLine]] = None):
        self._lines: List[CartLine] = list(lines or [])
        self._listeners: List[CartListener] = []

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def snapshot(self) -> List[CartLine]:
        """Deep copy of the lines, frozen for one submission."""
        return [line.model_copy(deep=True) for line in self._lines]

    def replace(self, lines: List[CartLine]) -> None:
        self._lines = list(lines)
        for listener in list(self._listeners):
            listener(self.lines)

    def clear(self) -> None:
        self.replace([])

    def add_listener(self, listener: CartListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: CartListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)


@dataclass
class AppliedDiscount:
    discount_code_id: str
    code: str
    amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "discount_code_id": self.discount_code_id,
            "code": self.code,
            "amount": float(self.amount),
        }


@dataclass
class CheckoutServices:
    """Collaborators a checkout session talks to."""
    settings: Settings
    orders: "BaseOrderService"
    payments: "BasePaymentService"
    discounts: "BaseDiscountService"
    customer_data: "BaseCustomerDataService"
    guest_carts: "GuestCartStore"
    dispatcher: "ConfirmationDispatcher"
    realtime: "BaseRealtimeService"
    outbox: "BestEffortOutbox"
    pricing_policy: Optional[PricingPolicy] = None

    def __post_init__(self):
        if self.pricing_policy is None:
            self.pricing_policy = PricingPolicy.from_settings(self.settings)


@dataclass
class CheckoutContext:
    """Mutable state of one checkout, owned by its session."""
    session: SessionContext
    cart: CheckoutCart = field(default_factory=CheckoutCart)
    guest_session_id: Optional[str] = None
    require_phone: bool = False
    pricing_policy: Optional[PricingPolicy] = None

    # Form / selections
    guest_email: Optional[str] = None
    discount: Optional[AppliedDiscount] = None
    addresses: List[SavedAddress] = field(default_factory=list)
    selected_address: Optional[SavedAddress] = None

    # Submission outcome
    order_id: Optional[str] = None
    client_secret: Optional[str] = None
    payment_amount: Optional[Decimal] = None
    customer_email: Optional[str] = None
    show_payment: bool = False

    # Completion
    show_success_modal: bool = False
    show_conversion_modal: bool = False
    order_success: bool = False
    guest_checkout_data: Optional[Dict[str, Any]] = None
    tracking_status: Optional[str] = None
    redirect_to: Optional[str] = None

    @property
    def is_guest(self) -> bool:
        return not self.session.is_authenticated

    @property
    def discount_amount(self) -> Decimal:
        return self.discount.amount if self.discount else Decimal("0")

    def pricing(self, lines: Optional[List[CartLine]] = None) -> PricingSnapshot:
        """Totals for ``lines`` (defaults to the live cart) and the applied discount."""
        return build_pricing_snapshot(
            self.cart.lines if lines is None else lines,
            self.discount_amount,
            self.pricing_policy,
        )

    def select_address(self, address_id: Optional[str]) -> Optional[SavedAddress]:
        self.selected_address = next(
            (address for address in self.addresses if address.id == address_id),
            None,
        )
        return self.selected_address
