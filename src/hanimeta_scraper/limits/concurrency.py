"""Counting admission gate limiting in-flight operations per provider.

Every provider gets its own :class:`ProviderConcurrencyLimiter`.  A caller
either obtains a :class:`ConcurrencySlot` within a bounded timeout or is
told the provider is busy; it never queues indefinitely.

Typical usage::

    async with limiter.slot(timeout=15.0) as slot:
        await rate_limiter.wait_if_needed(slot)
        ...

The slot is released when the ``async with`` block exits for any reason,
including cancellation.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator

from hanimeta_scraper.core.exceptions import ServiceBusyError

logger = logging.getLogger(__name__)


class ConcurrencySlot:
    """An acquired admission ticket.

    ``slot_id`` is stable for the lifetime of the limiter (``0`` to
    ``max_concurrent - 1``) so per-slot state such as the rate limiter's
    last-completion timestamp survives between holders.

    :meth:`release` is idempotent.
    """

    __slots__ = ("_limiter", "slot_id", "_released")

    def __init__(self, limiter: ProviderConcurrencyLimiter, slot_id: int) -> None:
        self._limiter = limiter
        self.slot_id = slot_id
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def provider(self) -> str:
        return self._limiter.provider

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._limiter._release(self)

    async def __aenter__(self) -> ConcurrencySlot:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"<ConcurrencySlot {self.provider}#{self.slot_id} {state}>"


class ProviderConcurrencyLimiter:
    """Semaphore-backed limiter with bounded-wait acquisition.

    Args:
        provider: Provider key, used for logging and error messages.
        max_concurrent: Maximum simultaneous slots.  Values ``<= 0`` are
            coerced to 1.
    """

    def __init__(self, provider: str, max_concurrent: int) -> None:
        self.provider = provider
        self.max_concurrent = max_concurrent if max_concurrent > 0 else 1
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._free_ids: deque[int] = deque(range(self.max_concurrent))
        self.acquired_total = 0
        self.released_total = 0
        self.busy_total = 0

    @property
    def in_use(self) -> int:
        return self.acquired_total - self.released_total

    @property
    def available(self) -> int:
        return self.max_concurrent - self.in_use

    async def try_acquire(self, timeout: float) -> ConcurrencySlot | None:
        """Wait up to ``timeout`` seconds for a slot.

        Args:
            timeout: Maximum wait in seconds.  ``0`` (or less) only succeeds
                when a slot is free right now.

        Returns:
            The acquired slot, or ``None`` when the provider stayed saturated.
        """
        if timeout <= 0:
            if self._semaphore.locked():
                self._note_busy(timeout)
                return None
            await self._semaphore.acquire()
        else:
            try:
                async with asyncio.timeout(timeout):
                    await self._semaphore.acquire()
            except TimeoutError:
                self._note_busy(timeout)
                return None

        slot = ConcurrencySlot(self, self._free_ids.popleft())
        self.acquired_total += 1
        logger.debug(
            "limits: %s slot %d acquired (%d/%d in use)",
            self.provider,
            slot.slot_id,
            self.in_use,
            self.max_concurrent,
        )
        return slot

    @asynccontextmanager
    async def slot(self, timeout: float) -> AsyncIterator[ConcurrencySlot]:
        """Hold a slot for the duration of the block.

        Raises:
            ServiceBusyError: If no slot became free within ``timeout``.
        """
        acquired = await self.try_acquire(timeout)
        if acquired is None:
            raise ServiceBusyError(self.provider, timeout)
        try:
            yield acquired
        finally:
            acquired.release()

    def _release(self, slot: ConcurrencySlot) -> None:
        self._free_ids.append(slot.slot_id)
        self.released_total += 1
        self._semaphore.release()
        logger.debug("limits: %s slot %d released", self.provider, slot.slot_id)

    def _note_busy(self, timeout: float) -> None:
        self.busy_total += 1
        logger.warning(
            "limits: %s saturated, no slot within %.1fs (%d in use)",
            self.provider,
            timeout,
            self.in_use,
        )
