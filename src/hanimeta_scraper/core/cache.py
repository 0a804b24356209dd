"""In-memory LRU + TTL memo for per-ID detail lookups.

Both outcomes of a lookup are cached: a successful
:class:`~hanimeta_scraper.core.metadata.ContentMetadata` and an explicit
not-found marker, each with its own short lifetime.  Search results are
never stored here.

The cache is used from a single asyncio event loop; none of its methods
await, so no lock is needed for concurrent orchestrator calls.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from hanimeta_scraper.core.metadata import ContentMetadata

logger = logging.getLogger(__name__)


class CacheStatus(str, Enum):
    MISS = "miss"
    HIT = "hit"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class CacheLookup:
    """Outcome of :meth:`MetadataCache.get`.

    Attributes:
        status: ``MISS`` (nothing live), ``HIT`` (metadata cached) or
            ``NOT_FOUND`` (the provider recently reported the ID absent).
        metadata: The cached record for ``HIT``; ``None`` otherwise.
    """

    status: CacheStatus
    metadata: ContentMetadata | None = None


@dataclass
class _Entry:
    metadata: ContentMetadata | None
    expires_at: float


class MetadataCache:
    """Capacity-bounded, TTL'd memo keyed by ``(provider, content_id)``.

    Args:
        capacity: Maximum live entries; the least-recently-used entry is
            evicted once exceeded.  Values below 1 are coerced to 1.
        ttl_seconds: Lifetime of a cached metadata record.
        not_found_ttl_seconds: Lifetime of a not-found marker.
        clock: Monotonic time source (seconds).  Injected by tests.
    """

    def __init__(
        self,
        capacity: int = 500,
        ttl_seconds: float = 300.0,
        not_found_ttl_seconds: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.capacity = max(1, capacity)
        self.ttl_seconds = ttl_seconds
        self.not_found_ttl_seconds = not_found_ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[tuple[str, str], _Entry] = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

    @staticmethod
    def _key(provider: str, content_id: str) -> tuple[str, str]:
        return provider.strip().lower(), content_id.strip().upper()

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._entries)

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def get(self, provider: str, content_id: str) -> CacheLookup:
        """Return the live entry for ``(provider, content_id)``.

        An expired entry is removed on the spot and reported as a miss.
        A live entry becomes the most recently used.
        """
        key = self._key(provider, content_id)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return CacheLookup(CacheStatus.MISS)
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self.expirations += 1
            self.misses += 1
            logger.debug("cache: expired %s/%s", *key)
            return CacheLookup(CacheStatus.MISS)
        self._entries.move_to_end(key)
        self.hits += 1
        if entry.metadata is None:
            return CacheLookup(CacheStatus.NOT_FOUND)
        return CacheLookup(CacheStatus.HIT, entry.metadata)

    def set(self, provider: str, content_id: str, metadata: ContentMetadata | None) -> None:
        """Store ``metadata``, or a not-found marker when it is ``None``."""
        key = self._key(provider, content_id)
        ttl = self.ttl_seconds if metadata is not None else self.not_found_ttl_seconds
        if ttl <= 0:
            return
        self._entries[key] = _Entry(metadata=metadata, expires_at=self._clock() + ttl)
        self._entries.move_to_end(key)
        self._purge_expired()
        while len(self._entries) > self.capacity:
            evicted_key, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.debug("cache: evicted %s/%s", *evicted_key)

    def invalidate(self, provider: str, content_id: str) -> bool:
        """Drop one entry.  Returns ``True`` if something was removed."""
        return self._entries.pop(self._key(provider, content_id), None) is not None

    def clear(self) -> int:
        """Drop every entry and return how many were removed."""
        removed = len(self._entries)
        self._entries.clear()
        return removed

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        self.expirations += len(expired)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, float | int]:
        """Counters for ``GET /cache/stats``."""
        self._purge_expired()
        lookups = self.hits + self.misses
        return {
            "entries": len(self._entries),
            "capacity": self.capacity,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "hitRatio": round(self.hits / lookups, 4) if lookups else 0.0,
        }
