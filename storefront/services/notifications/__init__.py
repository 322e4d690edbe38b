"""
Notification Service Factory

Returns Mock or Real notification service based on ENV_MODE.
"""

import logging
from functools import lru_cache

from storefront.core.config import get_settings
from storefront.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
    OrderConfirmation,
)
from storefront.services.notifications.dispatch import ConfirmationDispatcher
from storefront.services.notifications.mock import MockNotificationService
from storefront.services.notifications.real import RealNotificationService

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_service() -> BaseNotificationService:
    """Get the configured notification service."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Notification Service: Using MockNotificationService (development mode)")
        return MockNotificationService(failure_rate=settings.mock_failure_rate)

    logger.info(f"Notification Service: Using RealNotificationService ({settings.env_mode.value} mode)")
    return RealNotificationService()


@lru_cache()
def get_confirmation_dispatcher() -> ConfirmationDispatcher:
    return ConfirmationDispatcher(get_settings())


def reset_notification_service() -> None:
    """Clear the cached service instances."""
    get_notification_service.cache_clear()
    get_confirmation_dispatcher.cache_clear()


__all__ = [
    "get_notification_service",
    "get_confirmation_dispatcher",
    "reset_notification_service",
    "BaseNotificationService",
    "NotificationResult",
    "OrderConfirmation",
    "ConfirmationDispatcher",
    "MockNotificationService",
    "RealNotificationService",
]
