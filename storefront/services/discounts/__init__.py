"""
Discount Service Factory

Returns the in-memory or PostgreSQL discount service based on ENV_MODE.
"""

import logging
from functools import lru_cache

from storefront.core.config import get_settings
from storefront.services.discounts.base import (
    DUPLICATE_USAGE,
    USAGE_LIMIT_REACHED,
    BaseDiscountService,
    DiscountCodeRecord,
    DiscountUsageResult,
    DiscountValidationResult,
)
from storefront.services.discounts.mock import MockDiscountService
from storefront.services.discounts.sql import SQLDiscountService

logger = logging.getLogger(__name__)


@lru_cache()
def get_discount_service() -> BaseDiscountService:
    settings = get_settings()

    if settings.is_development:
        logger.info("Discount Service: Using MockDiscountService (development mode)")
        return MockDiscountService()

    logger.info(f"Discount Service: Using SQLDiscountService ({settings.env_mode.value} mode)")
    return SQLDiscountService()


def reset_discount_service() -> None:
    get_discount_service.cache_clear()


__all__ = [
    "get_discount_service",
    "reset_discount_service",
    "BaseDiscountService",
    "DiscountCodeRecord",
    "DiscountUsageResult",
    "DiscountValidationResult",
    "MockDiscountService",
    "SQLDiscountService",
    "DUPLICATE_USAGE",
    "USAGE_LIMIT_REACHED",
]
