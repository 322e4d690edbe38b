"""
Order Service Factory

Returns the in-memory or PostgreSQL order service based on ENV_MODE.
"""

import logging
from functools import lru_cache

from storefront.core.config import get_settings
from storefront.services.orders.base import (
    BaseOrderService,
    OrderCreationResult,
    OrderDraft,
    OrderSummary,
)
from storefront.services.orders.mock import MockOrderService
from storefront.services.orders.sql import SQLOrderService

logger = logging.getLogger(__name__)


@lru_cache()
def get_order_service() -> BaseOrderService:
    """Get the configured order service."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Order Service: Using MockOrderService (development mode)")
        return MockOrderService(
            failure_rate=settings.mock_failure_rate,
            max_latency=settings.mock_max_latency,
        )

    logger.info(f"Order Service: Using SQLOrderService ({settings.env_mode.value} mode)")
    return SQLOrderService()


def reset_order_service() -> None:
    get_order_service.cache_clear()


__all__ = [
    "get_order_service",
    "reset_order_service",
    "BaseOrderService",
    "OrderCreationResult",
    "OrderDraft",
    "OrderSummary",
    "MockOrderService",
    "SQLOrderService",
]
