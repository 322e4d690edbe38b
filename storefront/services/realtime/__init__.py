"""
Realtime Service Factory

Returns the in-process broker in development and Redis pub/sub otherwise.
"""

import logging
from functools import lru_cache

from storefront.core.config import get_settings
from storefront.services.realtime.base import (
    BaseRealtimeService,
    ChangeFilter,
    ChannelStatus,
    DROPPED_STATUSES,
    RealtimeChannel,
    RowChange,
)
from storefront.services.realtime.mock import MockRealtimeService
from storefront.services.realtime.redis import RedisRealtimeService

logger = logging.getLogger(__name__)


@lru_cache()
def get_realtime_service() -> BaseRealtimeService:
    settings = get_settings()

    if settings.is_development:
        logger.info("Realtime Service: Using MockRealtimeService (development mode)")
        return MockRealtimeService()

    logger.info(f"Realtime Service: Using RedisRealtimeService ({settings.env_mode.value} mode)")
    return RedisRealtimeService(settings.redis_url, prefix=settings.realtime_channel_prefix)


def reset_realtime_service() -> None:
    get_realtime_service.cache_clear()


__all__ = [
    "get_realtime_service",
    "reset_realtime_service",
    "BaseRealtimeService",
    "ChangeFilter",
    "ChannelStatus",
    "DROPPED_STATUSES",
    "MockRealtimeService",
    "RealtimeChannel",
    "RedisRealtimeService",
    "RowChange",
]
