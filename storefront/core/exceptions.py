"""
Checkout Error Taxonomy

Every failure the checkout flow can surface to a shopper is one of these
exceptions. Each carries a ``user_message`` that is safe to display.

Hierarchy:
    CheckoutError
    ├── ValidationError            address / email / cart-state problems
    ├── DataIntegrityError         non-positive resolved price
    ├── CollaboratorError          a remote collaborator failed
    │   ├── OrderCreationError
    │   ├── PaymentInitializationError
    │   └── DiscountRecordingError
    ├── NotificationError          confirmation dispatch failed (never surfaced)
    ├── RealtimeError              change feed could not attach
    ├── SubmissionStateError       illegal state machine use
    │   ├── SubmissionInProgressError
    │   └── InvalidTransitionError
    └── SessionNotFoundError       unknown checkout session id

Author: Storefront Team
Version: 1.0.0
"""

from typing import Optional


class CheckoutError(Exception):
    """Base class for all checkout failures."""

    default_message = "Failed to place order. Please try again."

    def __init__(self, user_message: Optional[str] = None):
        self.user_message = user_message or self.default_message
        super().__init__(self.user_message)


class ValidationError(CheckoutError):
    """Input rejected locally, before any remote call."""

    default_message = "Please fill in all required shipping address fields."


class DataIntegrityError(CheckoutError):
    """Cart data is inconsistent (e.g. a resolved price of zero)."""

    default_message = "Invalid price for product in your cart."


class CollaboratorError(CheckoutError):
    """A remote collaborator reported a failure."""


class OrderCreationError(CollaboratorError):
    default_message = "Failed to create order"


class PaymentInitializationError(CollaboratorError):
    default_message = "Failed to initialize payment"


class DiscountRecordingError(CollaboratorError):
    default_message = "Failed to record discount code usage"


class NotificationError(CheckoutError):
    default_message = "Failed to send confirmation email"


class RealtimeError(CheckoutError):
    default_message = "Realtime channel unavailable"


class SubmissionStateError(CheckoutError):
    default_message = "Checkout is not in a state that allows this action."


class SubmissionInProgressError(SubmissionStateError):
    default_message = "Your order is already being processed."


class InvalidTransitionError(SubmissionStateError):
    """Raised by the submission state machine on an illegal transition."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move checkout from {current.value} to {target.value}"
        )


class SessionNotFoundError(CheckoutError):
    default_message = "Checkout session not found"
