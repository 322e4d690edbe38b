"""
Order Submission Orchestrator

Runs one checkout submission from the submitted form to a payment intent:

    1.  form event (the HTTP request)
    2.  address validation
    3.  customer e-mail (guest field or account e-mail)
    4.  non-empty cart
    5-7 order line items (prices, product linkage, variant metadata)
    8.  order creation
    9.  discount usage recording (fire-and-forget)
    10. payment intent creation
    11. payment step shown, state ``awaiting_payment``

Every step runs strictly in order against one snapshot of the cart taken
when the submission starts. Each failure is shown on the message board and
re-raised as a ``CheckoutError`` for the HTTP layer to map.

Author: Storefront Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from storefront.checkout.context import CheckoutContext, CheckoutServices
from storefront.checkout.line_items import OrderLineItem, build_order_line_items
from storefront.checkout.messages import MessageBoard
from storefront.checkout.pricing import PricingSnapshot, round_currency
from storefront.checkout.state import SubmissionState, SubmissionStateMachine
from storefront.checkout.validation import (
    describe_address_problem,
    validate_email,
    validate_shipping_address,
)
from storefront.core.exceptions import (
    CheckoutError,
    DataIntegrityError,
    DiscountRecordingError,
    OrderCreationError,
    PaymentInitializationError,
    SubmissionInProgressError,
    ValidationError,
)
from storefront.schemas import FulfillmentMode, ShippingAddress
from storefront.services.orders.base import OrderDraft

logger = logging.getLogger(__name__)

# Fields of a saved address that are not part of the shipping snapshot
_ADDRESS_BOOK_FIELDS = {"id", "user_id", "label", "is_default"}


@dataclass
class CheckoutForm:
    """What the shopper submitted."""
    address: Optional[ShippingAddress] = None
    selected_address_id: Optional[str] = None
    guest_email: Optional[str] = None
    fulfillment_mode: FulfillmentMode = FulfillmentMode.DELIVERY
    scheduled_slot: Optional[str] = None
    order_note: Optional[str] = None
    email_updates_opt_in: bool = False
    sms_updates_opt_in: bool = False


@dataclass
class OrderIntent:
    """A created order waiting for the shopper to pay."""
    order_id: str
    client_secret: str
    amount: Decimal
    currency: str


class CheckoutOrchestrator:
    """
    Drives submissions for one checkout session.

    Args:
        context: The session's checkout context (identity, cart, selections)
        machine: The session's submission state machine
        board: Where user-facing messages go
        services: Collaborators (orders, discounts, payments, outbox, ...)
    """

    def __init__(
        self,
        context: CheckoutContext,
        machine: SubmissionStateMachine,
        board: MessageBoard,
        services: CheckoutServices,
    ):
        self.context = context
        self.machine = machine
        self.board = board
        self.services = services
        self.settings = services.settings

    async def submit(self, form: CheckoutForm) -> OrderIntent:
        """
        Place the order described by ``form`` and open a payment intent.

        Raises:
            SubmissionInProgressError: a submission is already in flight or done
            ValidationError: address, e-mail or cart rejected locally
            DataIntegrityError: a cart line resolved to a non-positive price
            OrderCreationError: the order collaborator failed
            PaymentInitializationError: no client secret came back
            CheckoutError: anything unexpected (generic message)
        """
        if not self.machine.accepts_submission:
            raise SubmissionInProgressError()

        self.machine.transition(SubmissionState.VALIDATING)
        self.board.clear()

        try:
            address = self._validated_address(form)
            customer_email = self._customer_email(form)
            lines = self.context.cart.snapshot()
            if not lines:
                raise ValidationError("Your cart is empty.")
            items = build_order_line_items(lines)
        except ValidationError as e:
            self._fail(e, self.settings.validation_message_seconds)
            raise
        except DataIntegrityError as e:
            logger.error(f"Rejected cart: {e.user_message}")
            self._fail(e, self.settings.error_message_seconds)
            raise

        self.machine.transition(SubmissionState.PLACING_ORDER)

        try:
            intent = await self._place_order(form, address, customer_email, lines, items)
        except CheckoutError as e:
            logger.error(f"Error placing order: {e.user_message}")
            self._fail(e, self.settings.error_message_seconds)
            raise
        except Exception as e:
            logger.exception("Unexpected error placing order")
            error = CheckoutError()
            self._fail(error, self.settings.error_message_seconds)
            raise error from e

        self.machine.transition(SubmissionState.AWAITING_PAYMENT)
        return intent

    # =========================================================================
    # Local checks (steps 2-4)
    # =========================================================================

    def _resolve_address(self, form: CheckoutForm) -> Optional[ShippingAddress]:
        if form.address is not None:
            return form.address
        if form.selected_address_id and not self.context.is_guest:
            self.context.select_address(form.selected_address_id)
        return self.context.selected_address

    def _validated_address(self, form: CheckoutForm) -> ShippingAddress:
        address = self._resolve_address(form)
        result = validate_shipping_address(address, self.context.require_phone)
        if not result.valid:
            raise ValidationError(describe_address_problem(result))
        return address

    def _customer_email(self, form: CheckoutForm) -> str:
        if self.context.is_guest:
            email = (form.guest_email or self.context.guest_email or "").strip()
            if not email:
                raise ValidationError("Please provide your email address.")
            if not validate_email(email):
                raise ValidationError("Please provide a valid email address.")
            self.context.guest_email = email
            return email

        email = (self.context.session.email or "").strip()
        if not email:
            raise ValidationError("Your account email is missing. Please update your profile.")
        if not validate_email(email):
            raise ValidationError("Your account email is invalid. Please update your profile.")
        return email

    # =========================================================================
    # Remote chain (steps 5-11)
    # =========================================================================

    async def _place_order(
        self,
        form: CheckoutForm,
        address: ShippingAddress,
        customer_email: str,
        lines: List[Any],
        items: List[OrderLineItem],
    ) -> OrderIntent:
        ctx = self.context
        pricing = ctx.pricing(lines)
        discount = ctx.discount

        draft = OrderDraft(
            user_id=ctx.session.user_id,
            customer_email=customer_email,
            customer_name=address.full_name,
            shipping_address=self._shipping_payload(form, address),
            items=items,
            discount_code_id=discount.discount_code_id if discount else None,
            discount_amount=pricing.discount_amount,
            guest_session_id=ctx.guest_session_id if ctx.is_guest else None,
            is_guest=ctx.is_guest,
        )

        result = await self.services.orders.create_order(draft)
        if not result.success:
            raise OrderCreationError(result.error_message)

        order_id = result.order_id
        ctx.tracking_status = "pending"
        logger.info(f"Order {order_id} created ({len(items)} items, total ${pricing.grand_total:.2f})")

        if discount and pricing.discount_amount > 0 and ctx.session.is_authenticated:
            self._record_discount_usage(order_id, pricing)

        amount = round_currency(pricing.grand_total)
        payment = await self.services.payments.create_payment_intent(
            amount=amount,
            currency=self.settings.stripe_currency,
            order_id=order_id,
            customer_email=customer_email,
        )
        if not payment.success or not payment.client_secret:
            logger.error(f"Payment intent for order {order_id} failed: {payment.error_message}")
            raise PaymentInitializationError(payment.error_message)

        ctx.order_id = order_id
        ctx.client_secret = payment.client_secret
        ctx.payment_amount = amount
        ctx.customer_email = customer_email
        ctx.show_payment = True

        return OrderIntent(
            order_id=order_id,
            client_secret=payment.client_secret,
            amount=amount,
            currency=self.settings.stripe_currency,
        )

    def _shipping_payload(self, form: CheckoutForm, address: ShippingAddress) -> Dict[str, Any]:
        payload = address.model_dump(exclude=_ADDRESS_BOOK_FIELDS)
        payload["fulfillment_mode"] = form.fulfillment_mode.value
        payload["scheduled_slot"] = form.scheduled_slot
        note = (form.order_note or "").strip()
        if note:
            payload["order_note"] = note
        if self.settings.enable_marketing_optins:
            payload["marketing_preferences"] = {
                "email": form.email_updates_opt_in,
                "sms": form.sms_updates_opt_in,
            }
        return payload

    def _record_discount_usage(self, order_id: str, pricing: PricingSnapshot) -> None:
        discount = self.context.discount
        user_id = self.context.session.user_id
        order_subtotal = pricing.subtotal + pricing.shipping + pricing.tax
        discounts = self.services.discounts

        async def record() -> None:
            result = await discounts.apply_to_order(
                discount.discount_code_id,
                user_id,
                order_id,
                pricing.discount_amount,
                order_subtotal,
            )
            if not result.success:
                raise DiscountRecordingError(
                    f"Failed to record discount code usage: {result.error_message} ({result.error_type})"
                )

        self.services.outbox.submit("record_discount_usage", record)

    def _fail(self, error: CheckoutError, duration: float) -> None:
        self.machine.fail(error.user_message)
        self.board.show(error.user_message, "error", duration)

