"""
Checkout sessions.

A ``CheckoutSession`` is the server-side counterpart of one open checkout
page: it owns the context, the submission state machine, the message
board and the three workers (orchestrator, completion handler, realtime
watcher) and exposes the actions the page can take.

``CheckoutSessionRegistry`` keeps the open sessions of this process,
keyed by a random session id.

Author: Storefront Team
Version: 1.0.0
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from storefront.checkout.completion import PaymentCompletionHandler
from storefront.checkout.context import (
    AppliedDiscount,
    CheckoutCart,
    CheckoutContext,
    CheckoutServices,
    SessionContext,
)
from storefront.checkout.messages import MessageBoard
from storefront.checkout.orchestrator import CheckoutForm, CheckoutOrchestrator, OrderIntent
from storefront.checkout.realtime_watcher import RealtimeReconciliationWatcher
from storefront.checkout.state import SubmissionStateMachine
from storefront.core.exceptions import (
    SessionNotFoundError,
    SubmissionInProgressError,
    ValidationError,
)
from storefront.schemas import CartLine
from storefront.services.auth import BaseAuthService

logger = logging.getLogger(__name__)


class CheckoutSession:
    """One shopper's checkout, from page load to redirect."""

    def __init__(self, session_id: str, context: CheckoutContext, services: CheckoutServices):
        self.session_id = session_id
        self.context = context
        self.services = services
        self.machine = SubmissionStateMachine()
        self.board = MessageBoard()
        self.orchestrator = CheckoutOrchestrator(context, self.machine, self.board, services)
        self.completion = PaymentCompletionHandler(context, self.machine, self.board, services)
        self.watcher = RealtimeReconciliationWatcher(context, self.machine, self.board, services)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def mount(self) -> None:
        """Load the address book and start live updates."""
        ctx = self.context
        if ctx.session.is_authenticated:
            ctx.addresses = await self.services.customer_data.fetch_addresses(ctx.session.user_id)
            default = next((a for a in ctx.addresses if a.is_default), None)
            ctx.selected_address = default or (ctx.addresses[0] if ctx.addresses else None)
        await self.watcher.mount()

    async def unmount(self) -> None:
        await self.watcher.unmount()
        self.completion.cancel()
        self.board.close()

    # =========================================================================
    # Actions
    # =========================================================================

    async def submit(self, form: CheckoutForm) -> OrderIntent:
        return await self.orchestrator.submit(form)

    async def apply_discount_code(self, code: str) -> AppliedDiscount:
        """
        Validate ``code`` against the current totals and apply it.

        Raises:
            SubmissionInProgressError: an order is already being placed or paid
            ValidationError: the code was rejected
        """
        if not self.machine.is_quiescent:
            raise SubmissionInProgressError()

        ctx = self.context
        pricing = ctx.pricing()
        order_total = pricing.subtotal + pricing.shipping + pricing.tax
        result = await self.services.discounts.validate_code(code, ctx.session.user_id, order_total)
        if not result.valid:
            raise ValidationError(result.message or result.error or "Invalid discount code")

        ctx.discount = AppliedDiscount(
            discount_code_id=result.discount_code_id,
            code=result.code,
            amount=result.discount_amount,
        )
        logger.info(f"Session {self.session_id}: applied discount {result.code} (${result.discount_amount})")
        return ctx.discount

    def remove_discount(self) -> None:
        if not self.machine.is_quiescent:
            raise SubmissionInProgressError()
        self.context.discount = None

    async def payment_succeeded(self) -> bool:
        return await self.completion.handle_payment_success()

    def payment_failed(self, message: Optional[str] = None) -> None:
        self.completion.handle_payment_error(message)

    def close_modal(self) -> None:
        self.completion.close_modal()

    async def refresh_cart(self) -> None:
        """
        Re-read the cart from its source.

        Raises:
            SubmissionInProgressError: an order is already being placed or paid
        """
        if not self.machine.is_quiescent:
            raise SubmissionInProgressError()
        await self.watcher.refetch_cart()

    @property
    def is_finished(self) -> bool:
        """Paid and on its way out (modal closed or redirect scheduled)."""
        ctx = self.context
        modal_open = ctx.show_success_modal or ctx.show_conversion_modal
        return ctx.redirect_to is not None or (ctx.order_success and not modal_open)

    # =========================================================================
    # View
    # =========================================================================

    def snapshot(self) -> Dict[str, Any]:
        """Everything the checkout page renders, as plain data."""
        ctx = self.context
        message = self.board.current
        return {
            "session_id": self.session_id,
            "state": self.machine.state.value,
            "failure_reason": self.machine.failure_reason,
            "is_authenticated": ctx.session.is_authenticated,
            "guest_session_id": ctx.guest_session_id,
            "lines": [line.model_dump(mode="json") for line in ctx.cart.lines],
            "pricing": ctx.pricing().to_dict(),
            "discount": ctx.discount.to_dict() if ctx.discount else None,
            "message": message.to_dict() if message else None,
            "notices": [notice.to_dict() for notice in self.board.notices],
            "order_id": ctx.order_id,
            "client_secret": ctx.client_secret if ctx.show_payment else None,
            "show_payment": ctx.show_payment,
            "show_success_modal": ctx.show_success_modal,
            "show_conversion_modal": ctx.show_conversion_modal,
            "order_success": ctx.order_success,
            "guest_checkout_data": ctx.guest_checkout_data,
            "tracking_status": ctx.tracking_status,
            "redirect_to": ctx.redirect_to,
            "selected_address_id": ctx.selected_address.id if ctx.selected_address else None,
            "live_updates": self.watcher.live,
        }


class CheckoutSessionRegistry:
    """
    Open checkout sessions of this process.

    Every ``get`` marks the session as seen. Sessions idle longer than
    ``checkout_session_ttl_seconds`` are evicted, and finished sessions
    (paid, modal dismissed) after ``finished_session_grace_seconds``.
    Eviction unmounts the session so its subscriptions and timers go too.
    """

    def __init__(
        self,
        services: CheckoutServices,
        new_guest_session_id: Callable[[], str] = BaseAuthService.new_guest_session_id,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.services = services
        self.new_guest_session_id = new_guest_session_id
        self.clock = clock
        self.ttl = services.settings.checkout_session_ttl_seconds
        self.finished_grace = services.settings.finished_session_grace_seconds
        self.sweep_interval = services.settings.checkout_session_sweep_seconds
        self._sessions: Dict[str, CheckoutSession] = {}
        self._last_seen: Dict[str, float] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._sessions)

    async def create(
        self,
        session: SessionContext,
        guest_session_id: Optional[str] = None,
        lines: Optional[List[CartLine]] = None,
        require_phone: bool = False,
    ) -> CheckoutSession:
        """
        Open a checkout for ``session``.

        Signed-in shoppers get their server-side cart; guests get the cart
        stored under their guest session id, seeded with ``lines`` if given.
        """
        if session.is_authenticated:
            guest_session_id = None
            cart_lines = await self.services.customer_data.fetch_cart(session.user_id)
        else:
            guest_session_id = guest_session_id or self.new_guest_session_id()
            if lines is not None:
                self.services.guest_carts.set(guest_session_id, lines)
            cart_lines = self.services.guest_carts.get(guest_session_id)

        context = CheckoutContext(
            session=session,
            cart=CheckoutCart(cart_lines),
            guest_session_id=guest_session_id,
            require_phone=require_phone,
            pricing_policy=self.services.pricing_policy,
        )
        checkout = CheckoutSession(str(uuid.uuid4()), context, self.services)
        self._sessions[checkout.session_id] = checkout
        self._last_seen[checkout.session_id] = self.clock()
        await checkout.mount()

        logger.info(
            f"Checkout session {checkout.session_id} opened "
            f"({'user ' + session.user_id if session.is_authenticated else 'guest ' + guest_session_id}, "
            f"{len(cart_lines)} lines)"
        )
        return checkout

    def get(self, session_id: str) -> CheckoutSession:
        checkout = self._sessions.get(session_id)
        if checkout is None:
            raise SessionNotFoundError()
        self._last_seen[session_id] = self.clock()
        return checkout

    async def remove(self, session_id: str) -> None:
        checkout = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if checkout is None:
            raise SessionNotFoundError()
        await checkout.unmount()
        logger.info(f"Checkout session {session_id} closed")

    async def evict_idle(self) -> int:
        """Close expired sessions; returns how many were evicted."""
        now = self.clock()
        expired = []
        for session_id, checkout in self._sessions.items():
            limit = self.finished_grace if checkout.is_finished else self.ttl
            if now - self._last_seen.get(session_id, now) >= limit:
                expired.append(session_id)

        for session_id in expired:
            await self.remove(session_id)
        if expired:
            logger.info(f"Evicted {len(expired)} idle checkout sessions ({len(self._sessions)} open)")
        return len(expired)

    def start_sweeper(self) -> None:
        """Run ``evict_idle`` every ``checkout_session_sweep_seconds``."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep())

    async def _sweep(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.evict_idle()
            except Exception:
                logger.exception("Checkout session sweep failed")

    async def close_all(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        for session_id in list(self._sessions):
            await self.remove(session_id)
