"""
Payment Completion Handler

Invoked by the payment UI callbacks once the shopper has paid (or failed
to). Success is accepted exactly once per order: the only way in is the
``awaiting_payment -> processing_success`` transition, so a duplicate
callback finds the machine elsewhere and is ignored.

After the success bookkeeping the cart is cleared and the confirmation
e-mail requested. Both go through the outbox for signed-in shoppers and
neither can undo a completed payment.
"""

import asyncio
import logging
from typing import Optional

from storefront.checkout.context import CheckoutContext, CheckoutServices
from storefront.checkout.messages import MessageBoard
from storefront.checkout.state import SubmissionState, SubmissionStateMachine

logger = logging.getLogger(__name__)

PAYMENT_FAILED_MESSAGE = "Payment failed. Please try again."


class PaymentCompletionHandler:

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
        self._redirect_timer: Optional[asyncio.TimerHandle] = None

    async def handle_payment_success(self) -> bool:
        """
        Finish a paid order.

        Returns:
            True if this call completed the order, False if it was ignored
            (no payment pending, or success already being handled)
        """
        if not self.machine.try_transition(SubmissionState.PROCESSING_SUCCESS):
            logger.warning(
                f"Ignoring payment success for order {self.context.order_id} "
                f"in state {self.machine.state.value}"
            )
            return False

        ctx = self.context
        order_id = ctx.order_id
        email = ctx.customer_email
        logger.info(f"Processing payment success for order {order_id}")

        try:
            ctx.tracking_status = "processing"
            if ctx.is_guest:
                ctx.guest_checkout_data = {
                    "email": email,
                    "order_id": order_id,
                    "guest_session_id": ctx.guest_session_id,
                }
                ctx.show_conversion_modal = True
            else:
                ctx.show_success_modal = True
            ctx.show_payment = False
            ctx.order_success = True
            self.machine.transition(SubmissionState.SUCCEEDED)
        except Exception:
            logger.exception(f"Error in payment success handling for order {order_id}")
            ctx.show_payment = False
            self.machine.transition(SubmissionState.AWAITING_PAYMENT)
            return False

        # Let the success modal render before the cart empties underneath it
        await asyncio.sleep(self.settings.success_paint_delay_seconds)

        self._clear_cart()
        self._request_confirmation(order_id, email)
        logger.info(f"Payment success flow complete for order {order_id}")
        return True

    def _clear_cart(self) -> None:
        ctx = self.context
        if ctx.session.is_authenticated:
            user_id = ctx.session.user_id
            customer_data = self.services.customer_data
            self.services.outbox.submit("clear_cart", lambda: customer_data.clear_cart(user_id))
        elif ctx.guest_session_id:
            self.services.guest_carts.clear(ctx.guest_session_id)
        ctx.cart.clear()

    def _request_confirmation(self, order_id: Optional[str], email: Optional[str]) -> None:
        if not order_id or not email:
            logger.error(f"Cannot request confirmation: order_id={order_id!r}, email={email!r}")
            return

        dispatcher = self.services.dispatcher
        token = self.context.session.access_token
        self.services.outbox.submit(
            "order_confirmation",
            lambda: dispatcher.send(order_id, email, access_token=token),
        )

    def handle_payment_error(self, message: Optional[str] = None) -> None:
        """Surface a payment UI error; the payment step stays open for a retry."""
        text = message or PAYMENT_FAILED_MESSAGE
        logger.error(f"Payment error for order {self.context.order_id}: {text}")
        self.board.show(text, "error", self.settings.error_message_seconds)

    def close_modal(self) -> None:
        """Dismiss the success/conversion modal and head back to the menu."""
        ctx = self.context
        ctx.show_success_modal = False
        ctx.show_conversion_modal = False
        self.machine.try_transition(SubmissionState.IDLE)

        self.cancel()
        self._redirect_timer = asyncio.get_running_loop().call_later(
            self.settings.redirect_delay_seconds, self._redirect
        )

    def _redirect(self) -> None:
        self._redirect_timer = None
        self.context.redirect_to = self.settings.order_browse_path

    def cancel(self) -> None:
        if self._redirect_timer is not None:
            self._redirect_timer.cancel()
            self._redirect_timer = None
