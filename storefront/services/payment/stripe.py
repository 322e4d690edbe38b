"""
Stripe Payment Service Implementation

Production implementation using the official Stripe Python SDK.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - STRIPE_SECRET_KEY must be set in environment

Security Notes:
    - The client secret is returned to the shopper's browser only
    - Never log client secrets or card data

Author: Storefront Team
Version: 1.0.0
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import stripe

from storefront.core.config import get_settings
from storefront.services.payment.base import (
    Amount,
    BasePaymentService,
    PaymentResult,
)

logger = logging.getLogger(__name__)


class StripePaymentService(BasePaymentService):
    """
    Production Stripe payment service implementation.

    Creates PaymentIntents with automatic payment methods; the storefront's
    payment UI confirms them with Stripe.js.
    """

    def __init__(self):
        """
        Initialize Stripe with API key from settings.

        Raises:
            ValueError: If STRIPE_SECRET_KEY is not configured
        """
        settings = get_settings()

        if not settings.stripe_secret_key:
            raise ValueError(
                "STRIPE_SECRET_KEY is required for production mode. "
                "Set it in your .env file or environment variables."
            )

        stripe.api_key = settings.stripe_secret_key
        stripe.api_version = "2023-10-16"  # Pin API version for stability

        self._currency = settings.stripe_currency

        logger.info(
            f"StripePaymentService initialized "
            f"(api_version={stripe.api_version})"
        )

    @property
    def provider_name(self) -> str:
        return "stripe"

    def _convert_to_cents(self, amount: Amount) -> int:
        """Stripe expects the smallest currency unit (cents for USD)."""
        cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return int(cents)

    def _convert_from_cents(self, cents: int) -> float:
        return cents / 100.0

    async def create_payment_intent(
        self,
        amount: Amount,
        currency: str = "usd",
        order_id: Optional[str] = None,
        customer_email: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> PaymentResult:
        """
        Create a PaymentIntent for client-side confirmation.

        Stripe errors are translated into a failed PaymentResult; nothing
        raises out of this method.
        """
        start_time = datetime.now()

        if Decimal(str(amount)) <= 0:
            return PaymentResult(
                success=False,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
            )

        params = {
            "amount": self._convert_to_cents(amount),
            "currency": currency or self._currency,
            "automatic_payment_methods": {"enabled": True},
            "metadata": {
                "order_id": order_id or "",
                "source": "storefront_checkout",
                **(metadata or {}),
            },
        }
        if customer_email:
            params["receipt_email"] = customer_email
        if order_id:
            params["idempotency_key"] = f"order-{order_id}"

        try:
            # The SDK call is blocking; keep it off the event loop
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                **params,
            )

        except stripe.CardError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.warning(f"Stripe: Card error - {e.code}: {e.user_message}")
            return PaymentResult(
                success=False,
                error_message=e.user_message,
                error_code=e.code,
                response_time_ms=elapsed_ms,
            )

        except stripe.InvalidRequestError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Stripe: Invalid request - {e}")
            return PaymentResult(
                success=False,
                error_message=str(e),
                error_code="invalid_request",
                response_time_ms=elapsed_ms,
            )

        except stripe.AuthenticationError as e:
            logger.critical(f"Stripe: Authentication failed - {e}")
            return PaymentResult(
                success=False,
                error_message="Payment service configuration error",
                error_code="authentication_error",
            )

        except stripe.APIConnectionError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Stripe: Connection error - {e}")
            return PaymentResult(
                success=False,
                error_message="Payment service temporarily unavailable",
                error_code="connection_error",
                response_time_ms=elapsed_ms,
            )

        except stripe.StripeError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Stripe: Failed to create PaymentIntent - {e}")
            return PaymentResult(
                success=False,
                error_message="Payment processing error",
                error_code="stripe_error",
                response_time_ms=elapsed_ms,
            )

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
        logger.info(f"Stripe: PaymentIntent created - {intent.id} - status={intent.status}")

        return PaymentResult(
            success=True,
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=self._convert_from_cents(intent.amount),
            currency=intent.currency,
            response_time_ms=elapsed_ms,
            metadata={"status": intent.status},
        )

    async def health_check(self) -> bool:
        """Lightweight API call verifying credentials and connectivity."""
        try:
            await asyncio.to_thread(stripe.Account.retrieve)
            logger.debug("Stripe: Health check passed")
            return True
        except stripe.StripeError as e:
            logger.error(f"Stripe: Health check failed - {e}")
            return False
