"""
Mock Payment Service Implementation

Simulates Stripe-like payment intent creation without making real API calls.
Used in development mode (ENV_MODE=development) to:
    - Exercise the complete checkout flow locally
    - Run load simulations without incurring costs
    - Develop without internet connectivity

Behavior:
    - Simulates response times (configurable)
    - Randomly fails a configurable share of requests
    - Generates Stripe-like IDs (pi_xxx) and client secrets

Author: Storefront Team
Version: 1.0.0
"""

import asyncio
import random
import uuid
import logging
from decimal import Decimal
from typing import Optional

from storefront.services.payment.base import (
    Amount,
    BasePaymentService,
    PaymentResult,
)

logger = logging.getLogger(__name__)


class MockPaymentService(BasePaymentService):
    """
    Mock implementation of the payment service.

    Attributes:
        failure_rate: Probability of a simulated failure (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds
        intents: Every intent created, keyed by payment intent id

    Example:
        >>> service = MockPaymentService(failure_rate=0.0)
        >>> result = await service.create_payment_intent(Decimal("29.99"))
        >>> result.client_secret.startswith("pi_mock_")
        True
    """

    # Simulated failure reasons (mimics real Stripe error codes)
    FAILURE_REASONS = [
        ("api_connection_error", "Payment service temporarily unavailable"),
        ("rate_limit", "Too many requests. Please try again."),
        ("processing_error", "An error occurred while preparing your payment."),
    ]

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.2,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.intents: dict[str, PaymentResult] = {}

        logger.info(
            f"MockPaymentService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    def _generate_payment_intent_id(self) -> str:
        """Generate a Stripe-like payment intent ID."""
        return f"pi_mock_{uuid.uuid4().hex[:24]}"

    async def _simulate_latency(self) -> float:
        """Sleep for a random latency; returns it in milliseconds."""
        latency = random.uniform(self.min_latency, self.max_latency)
        await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def create_payment_intent(
        self,
        amount: Amount,
        currency: str = "usd",
        order_id: Optional[str] = None,
        customer_email: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> PaymentResult:
        """
        Simulate creating a payment intent.

        The client secret follows Stripe's ``{id}_secret_{...}`` shape but
        won't work with Stripe.js.
        """
        latency_ms = await self._simulate_latency()

        if Decimal(str(amount)) <= 0:
            return PaymentResult(
                success=False,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
                response_time_ms=latency_ms,
            )

        if self._should_fail():
            error_code, error_message = random.choice(self.FAILURE_REASONS)
            logger.debug(f"Mock: Payment intent failed - {error_code}")
            return PaymentResult(
                success=False,
                amount=float(amount),
                currency=currency,
                error_message=error_message,
                error_code=error_code,
                response_time_ms=latency_ms,
            )

        payment_intent_id = self._generate_payment_intent_id()
        result = PaymentResult(
            success=True,
            payment_intent_id=payment_intent_id,
            client_secret=f"{payment_intent_id}_secret_{uuid.uuid4().hex[:16]}",
            amount=float(amount),
            currency=currency,
            response_time_ms=latency_ms,
            metadata={
                "order_id": order_id,
                "customer_email": customer_email,
                "mock": True,
                **(metadata or {}),
            },
        )
        self.intents[payment_intent_id] = result

        logger.info(f"Mock: Created payment intent {payment_intent_id} - ${float(amount):.2f}")
        return result

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        logger.debug("Mock: Payment health check passed")
        return True
