"""
Auto-clearing user messages.

The checkout shows at most one error/validation message at a time. Each
message clears itself after its own delay, and a new message replaces the
current one and cancels its pending clear, so the visible text is always
the latest one with a fresh timer.

Non-blocking notices (e.g. "price updated") are kept separately as a short
feed; they don't compete with the main message.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserMessage:
    text: str
    level: str = "error"

    def to_dict(self) -> dict:
        return {"text": self.text, "level": self.level}


class MessageBoard:
    """Last-write-wins message slot with per-message auto-clear."""

    def __init__(self, max_notices: int = 20):
        self._current: Optional[UserMessage] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._notices: Deque[UserMessage] = deque(maxlen=max_notices)

    @property
    def current(self) -> Optional[UserMessage]:
        return self._current

    @property
    def notices(self) -> List[UserMessage]:
        return list(self._notices)

    def show(self, text: str, level: str = "error", duration: Optional[float] = None) -> UserMessage:
        """
        Display ``text``, replacing whatever is visible.

        With a ``duration`` (seconds) the message clears itself, unless it has
        been superseded by then.
        """
        self._cancel_timer()
        message = UserMessage(text=text, level=level)
        self._current = message

        if duration is not None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("No running event loop; message will not auto-clear")
            else:
                self._timer = loop.call_later(duration, self._expire, message)
        return message

    def clear(self) -> None:
        self._cancel_timer()
        self._current = None

    def notify(self, text: str, level: str = "info") -> UserMessage:
        """Add a non-blocking notice."""
        notice = UserMessage(text=text, level=level)
        self._notices.append(notice)
        logger.info(f"Notice ({level}): {text}")
        return notice

    def clear_notices(self) -> None:
        self._notices.clear()

    def close(self) -> None:
        """Cancel pending timers; used when the session goes away."""
        self._cancel_timer()

    def _expire(self, message: UserMessage) -> None:
        self._timer = None
        if self._current is message:
            self._current = None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
