"""
Mock Realtime Service

In-process change broker for development and tests. Publishing a change
delivers it synchronously to every subscribed channel that matches.
``drop`` simulates a channel timing out or erroring so reconnect logic can
be exercised without a network.

Author: Storefront Team
Version: 1.0.0
"""

import logging
import random
from typing import List, Optional

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


class MockRealtimeService(BaseRealtimeService):
    """
    Attributes:
        failure_rate: Probability that a subscribe attempt raises (0.0-1.0)
        channels: Currently open channels
        subscribe_attempts: Count of subscribe calls, including failed ones
    """

    def __init__(self, failure_rate: float = 0.0):
        self.failure_rate = failure_rate
        self.channels: List[RealtimeChannel] = []
        self.subscribe_attempts = 0

    @property
    def provider_name(self) -> str:
        return "mock"

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def subscribe(
        self,
        name: str,
        table: str,
        on_change: ChangeCallback,
        on_status: Optional[StatusCallback] = None,
        event: str = "*",
        change_filter: Optional[ChangeFilter] = None,
    ) -> RealtimeChannel:
        self.subscribe_attempts += 1
        if self._should_fail():
            raise RealtimeError(f"Mock: subscribe to {name} failed")

        channel = RealtimeChannel(name, table, on_change, on_status, event, change_filter)
        self.channels.append(channel)
        channel.set_status(ChannelStatus.SUBSCRIBED)
        return channel

    async def remove_channel(self, channel: RealtimeChannel) -> None:
        if channel in self.channels:
            self.channels.remove(channel)

    async def publish(self, change: RowChange) -> int:
        delivered = 0
        for channel in list(self.channels):
            if channel.status == ChannelStatus.SUBSCRIBED and channel.matches(change):
                channel.deliver(change)
                delivered += 1
        logger.debug(f"Mock: {change.event_type} on {change.table} delivered to {delivered} channel(s)")
        return delivered

    def drop(self, channel: RealtimeChannel, status: ChannelStatus = ChannelStatus.TIMED_OUT) -> None:
        """Simulate the server dropping ``channel``."""
        if channel in self.channels:
            self.channels.remove(channel)
        channel.set_status(status)

    def channels_for(self, table: str) -> List[RealtimeChannel]:
        return [channel for channel in self.channels if channel.table == table]

    async def health_check(self) -> bool:
        return True
