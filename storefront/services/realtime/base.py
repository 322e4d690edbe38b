"""
Realtime Change Feed Abstract Base Class

Row-level change notifications for the tables checkout cares about
(menu_items, products, addresses). A subscriber opens a channel on one
table, optionally narrowed to an event type and an equality filter, and
receives two kinds of callbacks:

    on_change(RowChange)        a matching row was inserted/updated/deleted
    on_status(ChannelStatus)    the channel subscribed, timed out, closed or errored

Author: Storefront Team
Version: 1.0.0
"""

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class ChannelStatus(str, enum.Enum):
    SUBSCRIBED = "SUBSCRIBED"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"
    CHANNEL_ERROR = "CHANNEL_ERROR"


# Statuses after which the channel delivers nothing until resubscribed
DROPPED_STATUSES = frozenset({
    ChannelStatus.TIMED_OUT,
    ChannelStatus.CLOSED,
    ChannelStatus.CHANNEL_ERROR,
})


@dataclass
class RowChange:
    """One change event as published on the feed."""
    table: str
    event_type: str  # INSERT | UPDATE | DELETE
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)
    schema: str = "public"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema,
            "table": self.table,
            "eventType": self.event_type,
            "new": self.new,
            "old": self.old,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RowChange":
        return cls(
            table=data["table"],
            event_type=data.get("eventType") or data.get("event_type", "UPDATE"),
            new=data.get("new") or {},
            old=data.get("old") or {},
            schema=data.get("schema", "public"),
        )


@dataclass(frozen=True)
class ChangeFilter:
    """
    Equality filter in ``column=eq.value`` form.

    Example:
        >>> ChangeFilter.parse("user_id=eq.42").matches({"user_id": "42"})
        True
    """
    column: str
    value: str

    @classmethod
    def parse(cls, expression: str) -> "ChangeFilter":
        column, _, rest = expression.partition("=")
        operator, _, value = rest.partition(".")
        if not column or operator != "eq":
            raise ValueError(f"Unsupported filter: {expression!r}")
        return cls(column=column, value=value)

    def matches(self, row: Dict[str, Any]) -> bool:
        return str(row.get(self.column)) == self.value

    def __str__(self) -> str:
        return f"{self.column}=eq.{self.value}"


ChangeCallback = Callable[[RowChange], None]
StatusCallback = Callable[[ChannelStatus], None]


class RealtimeChannel:
    """A live subscription handed out by a realtime service."""

    def __init__(
        self,
        name: str,
        table: str,
        on_change: ChangeCallback,
        on_status: Optional[StatusCallback] = None,
        event: str = "*",
        change_filter: Optional[ChangeFilter] = None,
    ):
        self.name = name
        self.table = table
        self.event = event
        self.change_filter = change_filter
        self.status: Optional[ChannelStatus] = None
        self._on_change = on_change
        self._on_status = on_status

    def matches(self, change: RowChange) -> bool:
        if change.table != self.table:
            return False
        if self.event != "*" and change.event_type != self.event:
            return False
        if self.change_filter is not None:
            # DELETE events only carry the old row
            row = change.new or change.old
            return self.change_filter.matches(row)
        return True

    def deliver(self, change: RowChange) -> None:
        if self.status == ChannelStatus.SUBSCRIBED and self.matches(change):
            self._on_change(change)

    def set_status(self, status: ChannelStatus) -> None:
        self.status = status
        logger.debug(f"Channel {self.name}: {status.value}")
        if self._on_status is not None:
            self._on_status(status)

    def __repr__(self) -> str:
        return f"RealtimeChannel({self.name!r}, table={self.table!r}, status={self.status})"


class BaseRealtimeService(ABC):
    """
    Abstract base class for realtime change feeds.

    Implementations:
        - MockRealtimeService: in-process broker (development, tests)
        - RedisRealtimeService: Redis pub/sub (staging/production)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def subscribe(
        self,
        name: str,
        table: str,
        on_change: ChangeCallback,
        on_status: Optional[StatusCallback] = None,
        event: str = "*",
        change_filter: Optional[ChangeFilter] = None,
    ) -> RealtimeChannel:
        """
        Open a channel.

        Raises:
            RealtimeError: the subscription could not be established
        """
        pass

    @abstractmethod
    async def remove_channel(self, channel: RealtimeChannel) -> None:
        pass

    @abstractmethod
    async def publish(self, change: RowChange) -> int:
        """Broadcast a change; returns the number of receivers (best known)."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass
