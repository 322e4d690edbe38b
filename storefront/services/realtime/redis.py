"""
Redis Realtime Service

Change events travel as JSON on one pub/sub topic per table:

    {prefix}:public:{table}

Whatever writes to the tables (an admin tool, a database trigger bridge)
publishes there; every channel gets its own PubSub connection and a reader
task that filters and delivers matching events. Connection loss surfaces
as a CHANNEL_ERROR / TIMED_OUT status, never as an exception in the
caller.

Author: Storefront Team
Version: 1.0.0
"""

import asyncio
import json
import logging
from typing import Dict, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from storefront.core.exceptions import RealtimeError
from storefront.services.realtime.base import (
    BaseRealtimeService,
    ChangeCallback,
    ChangeFilter,
    ChannelStatus,
    RealtimeChannel,
    RowChange,
    StatusCallback,
)

logger = logging.getLogger(__name__)


class RedisRealtimeService(BaseRealtimeService):

    def __init__(self, redis_url: str, prefix: str = "realtime", poll_timeout: float = 1.0):
        self.prefix = prefix
        self.poll_timeout = poll_timeout
        self._client = redis.from_url(redis_url, decode_responses=True)
        self._readers: Dict[int, asyncio.Task] = {}
        self._pubsubs: Dict[int, "redis.client.PubSub"] = {}

    @property
    def provider_name(self) -> str:
        return "redis"

    def topic(self, table: str, schema: str = "public") -> str:
        return f"{self.prefix}:{schema}:{table}"

    async def subscribe(
        self,
        name: str,
        table: str,
        on_change: ChangeCallback,
        on_status: Optional[StatusCallback] = None,
        event: str = "*",
        change_filter: Optional[ChangeFilter] = None,
    ) -> RealtimeChannel:
        channel = RealtimeChannel(name, table, on_change, on_status, event, change_filter)
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(self.topic(table))
        except RedisError as e:
            await pubsub.aclose()
            raise RealtimeError(f"Subscribe to {name} failed: {e}") from e

        self._pubsubs[id(channel)] = pubsub
        self._readers[id(channel)] = asyncio.create_task(
            self._read(channel, pubsub), name=f"realtime:{name}"
        )
        channel.set_status(ChannelStatus.SUBSCRIBED)
        logger.info(f"Subscribed {name} to {self.topic(table)}")
        return channel

    async def _read(self, channel: RealtimeChannel, pubsub) -> None:
        while True:
            try:
                message = await pubsub.get_message(timeout=self.poll_timeout)
            except RedisTimeoutError:
                channel.set_status(ChannelStatus.TIMED_OUT)
                return
            except RedisConnectionError as e:
                logger.warning(f"Channel {channel.name} lost its connection: {e}")
                channel.set_status(ChannelStatus.CHANNEL_ERROR)
                return

            if message is None or message.get("type") != "message":
                continue

            try:
                change = RowChange.from_dict(json.loads(message["data"]))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Ignoring malformed change on {channel.name}: {e}")
                continue

            channel.deliver(change)

    async def remove_channel(self, channel: RealtimeChannel) -> None:
        reader = self._readers.pop(id(channel), None)
        pubsub = self._pubsubs.pop(id(channel), None)

        if reader is not None and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        if pubsub is not None:
            try:
                await pubsub.unsubscribe()
            except RedisError as e:
                logger.debug(f"Unsubscribe of {channel.name} failed: {e}")
            await pubsub.aclose()

    async def publish(self, change: RowChange) -> int:
        try:
            return await self._client.publish(
                self.topic(change.table, change.schema),
                json.dumps(change.to_dict(), default=str),
            )
        except RedisError as e:
            raise RealtimeError(f"Publish to {change.table} failed: {e}") from e

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        for reader in self._readers.values():
            reader.cancel()
        for pubsub in self._pubsubs.values():
            await pubsub.aclose()
        self._readers.clear()
        self._pubsubs.clear()
        await self._client.aclose()
