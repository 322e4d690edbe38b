"""
Auth Service Factory

Returns the in-memory token map (development) or the auth provider client
(staging/production) based on ENV_MODE.
"""

import logging
from functools import lru_cache

from storefront.core.config import get_settings
from storefront.services.auth.base import BaseAuthService, bearer_token
from storefront.services.auth.http import HttpAuthService
from storefront.services.auth.mock import MockAuthService

logger = logging.getLogger(__name__)


@lru_cache()
def get_auth_service() -> BaseAuthService:
    """Get the configured auth service."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Auth Service: Using MockAuthService (development mode)")
        return MockAuthService()

    logger.info(f"Auth Service: Using HttpAuthService ({settings.env_mode.value} mode)")
    return HttpAuthService(settings)


__all__ = [
    "get_auth_service",
    "bearer_token",
    "BaseAuthService",
    "HttpAuthService",
    "MockAuthService",
]
