"""
Customer Data Service Factory

Returns the in-memory or PostgreSQL customer data service based on
ENV_MODE, plus the process-wide guest cart store.
"""

import logging
from functools import lru_cache

from storefront.core.config import get_settings
from storefront.services.customer.base import BaseCustomerDataService
from storefront.services.customer.guest import GuestCartStore
from storefront.services.customer.mock import MockCustomerDataService
from storefront.services.customer.sql import SQLCustomerDataService

logger = logging.getLogger(__name__)


@lru_cache()
def get_customer_data_service() -> BaseCustomerDataService:
    settings = get_settings()

    if settings.is_development:
        logger.info("Customer Data Service: Using MockCustomerDataService (development mode)")
        return MockCustomerDataService()

    logger.info(f"Customer Data Service: Using SQLCustomerDataService ({settings.env_mode.value} mode)")
    return SQLCustomerDataService()


@lru_cache()
def get_guest_cart_store() -> GuestCartStore:
    return GuestCartStore()


def reset_customer_data_service() -> None:
    get_customer_data_service.cache_clear()
    get_guest_cart_store.cache_clear()


__all__ = [
    "get_customer_data_service",
    "get_guest_cart_store",
    "reset_customer_data_service",
    "BaseCustomerDataService",
    "GuestCartStore",
    "MockCustomerDataService",
    "SQLCustomerDataService",
]
