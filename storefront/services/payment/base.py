"""
Payment Service Abstract Base Class

Defines the interface contract for all payment service implementations.
Both MockPaymentService and StripePaymentService implement these methods,
so checkout behaves identically regardless of which one is active.

Checkout never captures a payment itself: it asks for a payment intent and
hands the resulting client secret to the payment UI, which confirms it.

Design Pattern: Strategy Pattern
    - Allows runtime switching between payment providers
    - Facilitates testing with mock implementations

Author: Storefront Team
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union


Amount = Union[Decimal, float]


@dataclass
class PaymentResult:
    """
    Standardized result from payment intent creation.

    Attributes:
        success: Whether the intent was created
        payment_intent_id: Provider identifier (Stripe format: pi_xxx)
        client_secret: Secret the payment UI confirms the intent with
        amount: Amount in dollars
        currency: Currency code (e.g., "usd")
        error_message: Error description if creation failed
        error_code: Machine-readable error code
        response_time_ms: Time taken by the provider
        metadata: Additional data from the payment provider
    """
    success: bool
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    amount: Optional[float] = None
    currency: str = "usd"
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0
    metadata: Optional[dict] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization (secret excluded)."""
        return {
            "success": self.success,
            "payment_intent_id": self.payment_intent_id,
            "amount": self.amount,
            "currency": self.currency,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "response_time_ms": self.response_time_ms,
            "metadata": self.metadata,
        }


class BasePaymentService(ABC):
    """
    Abstract base class for payment services.

    Example:
        >>> service = get_payment_service()  # Returns Mock or Stripe
        >>> result = await service.create_payment_intent(
        ...     amount=Decimal("48.96"),
        ...     order_id="3f0c...",
        ...     customer_email="jane@example.com",
        ... )
        >>> if result.success:
        ...     print(result.client_secret)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the payment provider (e.g., "mock", "stripe")."""
        pass

    @abstractmethod
    async def create_payment_intent(
        self,
        amount: Amount,
        currency: str = "usd",
        order_id: Optional[str] = None,
        customer_email: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> PaymentResult:
        """
        Create a payment intent for client-side confirmation.

        Args:
            amount: Amount in dollars, already rounded to cents
            currency: Three-letter currency code
            order_id: Order the payment belongs to
            customer_email: Receipt address
            metadata: Additional key-value data to attach

        Returns:
            PaymentResult: Carries the client_secret on success
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify connectivity to the payment service."""
        pass
