"""Process-scoped runtime container.

Everything with a lifetime longer than one request lives here: the shared
HTTP client, the single browser engine, the session manager, the
providers with their limits, the result cache and the orchestrator.  The
API builds one ``ScraperRuntime`` at startup and tears it down through
:meth:`ScraperRuntime.aclose` at shutdown; nothing reaches these objects
through module globals.

Usage::

    runtime = ScraperRuntime.build(get_settings())
    try:
        items = await runtime.orchestrator.search("dlsite", "Love Story", 12)
    finally:
        await runtime.aclose()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from hanimeta_scraper.browser.engine import BrowserEngine
from hanimeta_scraper.browser.session_manager import BrowserSessionManager, SessionOptions
from hanimeta_scraper.config.settings import Settings
from hanimeta_scraper.core.cache import MetadataCache
from hanimeta_scraper.limits.rate_limiter import ProviderLimits
from hanimeta_scraper.pipeline.orchestrator import ScrapeOrchestrator
from hanimeta_scraper.providers.base import MediaProvider
from hanimeta_scraper.providers.registry import get_provider_class, provider_keys
from hanimeta_scraper.scraper.http_client import HttpNetworkClient
from hanimeta_scraper.scraper.playwright_client import PlaywrightNetworkClient

logger = logging.getLogger(__name__)

_DEFAULT_MAX_CONCURRENT = 2
_DEFAULT_MIN_INTERVAL = 1.0


def limits_for(settings: Settings, provider_key: str) -> ProviderLimits:
    """Build a provider's limits from ``<key>_max_concurrent_requests`` and
    ``<key>_min_interval_seconds``, falling back to conservative defaults."""
    return ProviderLimits.build(
        provider_key,
        max_concurrent=getattr(settings, f"{provider_key}_max_concurrent_requests", _DEFAULT_MAX_CONCURRENT),
        min_interval=getattr(settings, f"{provider_key}_min_interval_seconds", _DEFAULT_MIN_INTERVAL),
    )


@dataclass
class ScraperRuntime:
    """Long-lived collaborators shared by every request."""

    settings: Settings
    http: HttpNetworkClient
    engine: BrowserEngine
    sessions: BrowserSessionManager
    browser_client: PlaywrightNetworkClient
    providers: dict[str, MediaProvider]
    limits: dict[str, ProviderLimits]
    cache: MetadataCache
    orchestrator: ScrapeOrchestrator

    @classmethod
    def build(cls, settings: Settings) -> ScraperRuntime:
        """Wire every registered provider to its network client and limits.

        Nothing touches the network here; the browser launches on first use.
        """
        http = HttpNetworkClient(
            timeout=settings.http_timeout_seconds,
            max_retries=settings.http_max_retries,
        )
        engine = BrowserEngine(headless=settings.browser_headless)
        sessions = BrowserSessionManager(engine, SessionOptions.from_settings(settings))
        browser_client = PlaywrightNetworkClient(
            sessions,
            http,
            human_like=settings.human_like_actions,
        )

        providers: dict[str, MediaProvider] = {}
        limits: dict[str, ProviderLimits] = {}
        for key in provider_keys():
            provider_cls = get_provider_class(key)
            net = browser_client if provider_cls.requires_browser else http
            providers[key] = provider_cls(net)
            limits[key] = limits_for(settings, key)
            logger.info(
                "runtime: provider %s via %s (max %d concurrent, %.1fs interval)",
                key,
                type(net).__name__,
                limits[key].concurrency.max_concurrent,
                limits[key].rate.min_interval,
            )

        cache = MetadataCache(
            capacity=settings.cache_capacity,
            ttl_seconds=settings.cache_ttl_seconds,
            not_found_ttl_seconds=settings.cache_not_found_ttl_seconds,
        )
        orchestrator = ScrapeOrchestrator(
            providers,
            limits,
            cache,
            detail_degree=settings.detail_concurrency,
            slot_timeout=settings.slot_acquire_timeout_seconds,
            aggressive_gc=settings.aggressive_memory_optimization,
        )
        return cls(
            settings=settings,
            http=http,
            engine=engine,
            sessions=sessions,
            browser_client=browser_client,
            providers=providers,
            limits=limits,
            cache=cache,
            orchestrator=orchestrator,
        )

    async def aclose(self) -> None:
        """Close sessions, then the browser engine, then the HTTP client."""
        await self.sessions.aclose()
        await self.engine.stop()
        await self.http.aclose()
        logger.info("runtime: closed")
