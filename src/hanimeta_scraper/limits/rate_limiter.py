"""Minimum-interval request spacing per concurrency slot.

The rate limiter is consulted only while a
:class:`~hanimeta_scraper.limits.concurrency.ConcurrencySlot` is held, so
waiting here never consumes extra concurrency budget.  Each slot remembers
when its previous request completed; the next request through the same
slot starts no earlier than ``min_interval`` after that.

Typical usage::

    limits = ProviderLimits.build("dlsite", max_concurrent=4, min_interval=1.0)

    async with limits.guarded(timeout=15.0) as slot:
        html = await client.get_html(url)
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable

from hanimeta_scraper.limits.concurrency import ConcurrencySlot, ProviderConcurrencyLimiter

logger = logging.getLogger(__name__)


class ProviderRateLimiter:
    """Per-slot minimum spacing between request completion and next start.

    The timestamp table is only touched between awaits, so it is consistent
    for any number of concurrent tasks on one event loop.

    Args:
        provider: Provider key, used for logging.
        min_interval: Seconds between a completion and the next start on
            the same slot.  ``0`` disables waiting.
        clock: Monotonic time source.  Injected by tests.
        sleep: Coroutine used to wait.  Injected by tests.
    """

    def __init__(
        self,
        provider: str,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._last_complete: dict[int, float] = {}

    def get_wait_time(self, slot: ConcurrencySlot) -> float:
        """Seconds ``slot`` must still wait before its next request may start."""
        last = self._last_complete.get(slot.slot_id)
        if last is None or self.min_interval <= 0:
            return 0.0
        return max(0.0, self.min_interval - (self._clock() - last))

    async def wait_if_needed(self, slot: ConcurrencySlot) -> None:
        """Suspend only as long as the interval since the last completion requires."""
        wait = self.get_wait_time(slot)
        if wait <= 0:
            return
        logger.debug("limits: %s slot %d waiting %.2fs", self.provider, slot.slot_id, wait)
        await self._sleep(wait)

    def record_complete(self, slot: ConcurrencySlot) -> None:
        """Stamp ``slot``'s completion time."""
        self._last_complete[slot.slot_id] = self._clock()


@dataclass
class ProviderLimits:
    """The concurrency gate and rate limiter of one provider."""

    provider: str
    concurrency: ProviderConcurrencyLimiter
    rate: ProviderRateLimiter

    @classmethod
    def build(cls, provider: str, max_concurrent: int, min_interval: float) -> ProviderLimits:
        return cls(
            provider=provider,
            concurrency=ProviderConcurrencyLimiter(provider, max_concurrent),
            rate=ProviderRateLimiter(provider, min_interval),
        )

    @asynccontextmanager
    async def guarded(self, timeout: float) -> AsyncIterator[ConcurrencySlot]:
        """Acquire a slot, honour the interval, and stamp completion on exit.

        Completion is recorded on every exit path so that failed requests
        also count toward the spacing.

        Raises:
            ServiceBusyError: If no slot became free within ``timeout``.
        """
        async with self.concurrency.slot(timeout) as slot:
            await self.rate.wait_if_needed(slot)
            try:
                yield slot
            finally:
                self.rate.record_complete(slot)
