"""
Best-effort outbox.

Side effects that must never block or fail a checkout (recording discount
usage, clearing an authenticated cart, requesting the confirmation e-mail)
are submitted here instead of being awaited on the critical path.

Each job runs as its own asyncio task. Failures are logged and counted,
never raised. A job may carry a retry policy; the default is a single
attempt, since none of these side effects is retried today.

Usage:
    outbox.submit(
        "send_order_confirmation",
        lambda: dispatcher.send(order_id, email, token),
    )
    ...
    await outbox.drain()   # tests / shutdown
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from storefront.core.config import get_settings, Settings

logger = logging.getLogger(__name__)

JobFactory = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """How often a best-effort job is attempted and how long to wait between tries."""
    max_attempts: int = 1
    initial_delay: float = 1.0
    backoff_factor: float = 2.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            max_attempts=max(1, settings.outbox_max_attempts),
            initial_delay=settings.outbox_retry_delay_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before attempt number ``attempt + 1`` (attempt is 1-based)."""
        return self.initial_delay * (self.backoff_factor ** (attempt - 1))


@dataclass
class OutboxStats:
    submitted: int = 0
    succeeded: int = 0
    failed: int = 0
    by_job: Dict[str, int] = field(default_factory=dict)


class BestEffortOutbox:
    """Fire-and-forget runner for non-critical checkout side effects."""

    def __init__(self, default_policy: Optional[RetryPolicy] = None):
        self.default_policy = default_policy or RetryPolicy.from_settings()
        self.stats = OutboxStats()
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def submit(
        self,
        name: str,
        factory: JobFactory,
        policy: Optional[RetryPolicy] = None,
    ) -> asyncio.Task:
        """
        Schedule ``factory()`` on the running loop and return immediately.

        ``factory`` is called once per attempt so every retry gets a fresh
        coroutine.
        """
        self.stats.submitted += 1
        self.stats.by_job[name] = self.stats.by_job.get(name, 0) + 1

        task = asyncio.get_running_loop().create_task(
            self._run(name, factory, policy or self.default_policy),
            name=f"outbox:{name}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(self, name: str, factory: JobFactory, policy: RetryPolicy) -> bool:
        for attempt in range(1, policy.max_attempts + 1):
            try:
                await factory()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if attempt < policy.max_attempts:
                    delay = policy.delay_for(attempt)
                    logger.warning(
                        f"Outbox job '{name}' failed (attempt {attempt}/{policy.max_attempts}): "
                        f"{e} - retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                self.stats.failed += 1
                logger.error(f"Outbox job '{name}' failed: {e}")
                return False
            else:
                self.stats.succeeded += 1
                logger.debug(f"Outbox job '{name}' completed")
                return True
        return False

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every pending job to finish."""
        if not self._pending:
            return
        await asyncio.wait(set(self._pending), timeout=timeout)

    async def close(self) -> None:
        """Cancel whatever is still pending."""
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
