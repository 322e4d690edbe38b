"""
Notification Service Abstract Base Class

Defines the interface for sending order e-mails.
Supports both Mock (development) and Real (production) implementations.

Author: Storefront Team
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


@dataclass
class OrderConfirmation:
    """Values rendered into the order confirmation e-mail."""
    order_id: str
    email: str
    first_name: str
    total_amount: str  # already formatted to two decimals


class BaseNotificationService(ABC):
    """Abstract base class for notification services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        """Send an email."""
        pass

    async def send_order_confirmation(
        self,
        confirmation: OrderConfirmation,
        restaurant_name: str,
    ) -> NotificationResult:
        """Render and send the order confirmation e-mail."""
        body_text = (
            f"Hi {confirmation.first_name}! Your order #{confirmation.order_id} has been confirmed.\n"
            f"Total: ${confirmation.total_amount}\n"
            f"Thank you for ordering from {restaurant_name}!"
        )
        body_html = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h1 style="color: #ff4757;">Order Confirmed!</h1>
            <p>Hi {confirmation.first_name},</p>
            <p>Your order <strong>#{confirmation.order_id}</strong> has been confirmed.</p>
            <div style="background: #f8f9fa; padding: 15px; border-radius: 8px; margin: 20px 0;">
                <p>Total: <strong>${confirmation.total_amount}</strong></p>
            </div>
            <p>Thank you for ordering from {restaurant_name}!</p>
        </div>
        """
        return await self.send_email(
            to_email=confirmation.email,
            subject=f"Order Confirmed #{confirmation.order_id} - {restaurant_name}",
            body_html=body_html,
            body_text=body_text,
        )

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass
