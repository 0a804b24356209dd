"""Per-request control flow over the providers.

The orchestrator is written once against
:class:`~hanimeta_scraper.providers.base.MediaProvider` and never branches
on provider identity.  It owns three paths:

- :meth:`ScrapeOrchestrator.lookup`: the cached per-ID path.  The cache is
  checked before and after slot acquisition so that concurrent lookups of
  the same ID racing for slots do not fetch twice.
- :meth:`ScrapeOrchestrator.search`: keyword search plus an ordered detail
  fan-out, all under a single concurrency slot.  Search results are never
  cached.
- :meth:`ScrapeOrchestrator.run`: routes a free-text query by
  :class:`RouteMode`.  ``AUTO`` always searches, even when the query looks
  exactly like an ID.
"""

from __future__ import annotations

import gc
import logging
from enum import Enum
from typing import TYPE_CHECKING

from hanimeta_scraper.api.metrics import (
    busy_rejections_total,
    cache_lookups_total,
    provider_requests_total,
)
from hanimeta_scraper.core.cache import CacheStatus
from hanimeta_scraper.core.exceptions import (
    ContentNotFoundError,
    ExtractionError,
    InvalidIdError,
    ServiceBusyError,
    UnknownProviderError,
)
from hanimeta_scraper.parsing.text import build_query_from_filename
from hanimeta_scraper.pipeline.ordered import ordered_fan_out

if TYPE_CHECKING:
    from hanimeta_scraper.core.cache import MetadataCache
    from hanimeta_scraper.core.metadata import ContentMetadata, SearchHit
    from hanimeta_scraper.limits.rate_limiter import ProviderLimits
    from hanimeta_scraper.providers.base import MediaProvider

logger = logging.getLogger(__name__)


class RouteMode(str, Enum):
    BY_ID = "by_id"
    BY_KEYWORD = "by_keyword"
    AUTO = "auto"


class ScrapeOrchestrator:
    """Routes queries to providers under their admission controls.

    Args:
        providers: Provider instances keyed by lower-case provider key.
        limits: Concurrency and rate limits keyed like ``providers``.
        cache: Result cache for the per-ID path.
        detail_degree: Worker count for the detail fan-out after a search.
        slot_timeout: Seconds to wait for a concurrency slot before failing
            with :class:`ServiceBusyError`.
        aggressive_gc: Run a full garbage collection after each fan-out.
    """

    def __init__(
        self,
        providers: dict[str, MediaProvider],
        limits: dict[str, ProviderLimits],
        cache: MetadataCache,
        *,
        detail_degree: int = 4,
        slot_timeout: float = 15.0,
        aggressive_gc: bool = False,
    ) -> None:
        missing = set(providers) - set(limits)
        if missing:
            raise ValueError(f"no limits configured for providers: {sorted(missing)}")
        self.providers = providers
        self.limits = limits
        self.cache = cache
        self.detail_degree = max(detail_degree, 1)
        self.slot_timeout = slot_timeout
        self.aggressive_gc = aggressive_gc

    def get_provider(self, provider_key: str) -> MediaProvider:
        """Return the provider for ``provider_key`` (case-insensitive).

        Raises:
            UnknownProviderError: If no such provider is configured.
        """
        provider = self.providers.get(provider_key.lower())
        if provider is None:
            raise UnknownProviderError(provider_key)
        return provider

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def run(
        self,
        provider_key: str,
        query: str,
        mode: RouteMode = RouteMode.AUTO,
        max_results: int = 12,
    ) -> list[ContentMetadata]:
        """Resolve ``query`` according to ``mode``.

        Raises:
            InvalidIdError: ``BY_ID`` with a query that holds no valid ID.
                No network call is made.
            ServiceBusyError: No concurrency slot freed up in time.
        """
        provider = self.get_provider(provider_key)
        if mode is RouteMode.BY_ID:
            content_id = provider.parse_id(query)
            if content_id is None:
                raise InvalidIdError(provider.key, query)
            try:
                return [await self.lookup(provider.key, content_id)]
            except ContentNotFoundError:
                return []
        return await self.search(provider.key, query, max_results)

    # ------------------------------------------------------------------
    # Per-ID path
    # ------------------------------------------------------------------

    async def lookup(self, provider_key: str, raw_id: str) -> ContentMetadata:
        """Return metadata for one ID, consulting the cache around the fetch.

        Raises:
            InvalidIdError: ``raw_id`` holds no valid ID for the provider.
            ServiceBusyError: No concurrency slot freed up in time.
            ContentNotFoundError: The provider has no such item, or the
                fetch failed.
        """
        provider = self.get_provider(provider_key)
        content_id = provider.parse_id(raw_id)
        if content_id is None:
            raise InvalidIdError(provider.key, raw_id)

        cached = self._cached(provider.key, content_id)
        if cached is not None:
            return cached

        try:
            async with self.limits[provider.key].guarded(self.slot_timeout):
                cached = self._cached(provider.key, content_id)
                if cached is not None:
                    return cached
                detail_url = provider.build_detail_url(content_id)
                result = await provider.try_fetch_detail(detail_url)
                if result.metadata is not None or result.not_found:
                    self.cache.set(provider.key, content_id, result.metadata)
        except ServiceBusyError:
            busy_rejections_total.labels(provider=provider.key).inc()
            provider_requests_total.labels(provider=provider.key, operation="detail", outcome="busy").inc()
            raise

        if result.metadata is not None:
            provider_requests_total.labels(provider=provider.key, operation="detail", outcome="ok").inc()
            return result.metadata

        outcome = "not_found" if result.not_found else "error"
        provider_requests_total.labels(provider=provider.key, operation="detail", outcome=outcome).inc()
        raise ContentNotFoundError(provider.key, content_id)

    def _cached(self, provider_key: str, content_id: str) -> ContentMetadata | None:
        """Return a cached hit, raise for a cached not-found, else ``None``."""
        entry = self.cache.get(provider_key, content_id)
        cache_lookups_total.labels(provider=provider_key, result=entry.status.value).inc()
        if entry.status is CacheStatus.HIT:
            logger.debug("pipeline: cache hit for %s/%s", provider_key, content_id)
            return entry.metadata
        if entry.status is CacheStatus.NOT_FOUND:
            logger.debug("pipeline: cached not-found for %s/%s", provider_key, content_id)
            raise ContentNotFoundError(provider_key, content_id)
        return None

    # ------------------------------------------------------------------
    # Keyword path
    # ------------------------------------------------------------------

    async def search(self, provider_key: str, query: str, max_results: int = 12) -> list[ContentMetadata]:
        """Search ``query`` and return detail records in search-hit order.

        Search extraction failures degrade to an empty list.  Details that
        fail to load are dropped; the remaining records have empty titles
        and primary images filled in from their search hit.

        Raises:
            ServiceBusyError: No concurrency slot freed up in time.
        """
        provider = self.get_provider(provider_key)
        keyword = build_query_from_filename(query) or query.strip()
        if not keyword or max_results <= 0:
            return []

        try:
            async with self.limits[provider.key].guarded(self.slot_timeout):
                try:
                    hits = await provider.search(keyword, max_results)
                except ExtractionError as exc:
                    logger.warning("pipeline: %s search for %r failed: %s", provider.key, keyword, exc)
                    provider_requests_total.labels(
                        provider=provider.key, operation="search", outcome="error"
                    ).inc()
                    return []
                provider_requests_total.labels(provider=provider.key, operation="search", outcome="ok").inc()

                hits = hits[:max_results]
                logger.info(
                    "pipeline: %s search %r -> %d hits, fetching details", provider.key, keyword, len(hits)
                )
                results = await ordered_fan_out(hits, self.detail_degree, self._detail_worker(provider))
        except ServiceBusyError:
            busy_rejections_total.labels(provider=provider.key).inc()
            provider_requests_total.labels(provider=provider.key, operation="search", outcome="busy").inc()
            raise

        if self.aggressive_gc:
            gc.collect()
        return results

    @staticmethod
    def _detail_worker(provider: MediaProvider):
        async def fetch(hit: SearchHit) -> ContentMetadata | None:
            result = await provider.try_fetch_detail(hit.detail_url)
            if result.metadata is None:
                outcome = "not_found" if result.not_found else "error"
                provider_requests_total.labels(provider=provider.key, operation="detail", outcome=outcome).inc()
                return None
            provider_requests_total.labels(provider=provider.key, operation="detail", outcome="ok").inc()
            return result.metadata.with_hit_fallbacks(hit)

        return fetch
