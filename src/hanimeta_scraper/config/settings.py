"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
Every tunable of the scraping backend is read through this module;
never call ``os.getenv`` directly elsewhere in the codebase.

Usage::

    from hanimeta_scraper.config.settings import get_settings

    settings = get_settings()
    port = settings.port
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service-wide configuration backed by environment variables and an optional .env file.

    Every field has a default so the service starts with no configuration at
    all.  Host, port and the auth token also accept the ``SCRAPER_*`` names
    used by existing deployments (``SCRAPER_PORT``, ``SCRAPER_AUTH_TOKEN``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    app_name: str = "Hanimeta Scraper Backend"
    """Human-readable service name shown on ``GET /``."""

    log_level: str = "INFO"
    """Root log level.  ``DEBUG`` switches structlog to the console renderer."""

    host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("SCRAPER_HOST", "HOST"))
    """Interface the Uvicorn server binds to."""

    port: int = Field(default=8585, validation_alias=AliasChoices("SCRAPER_PORT", "PORT"))
    """TCP port the Uvicorn server listens on."""

    allowed_origins: list[str] = ["*"]
    """CORS allow-list.  The API is read-only so a wildcard is the default."""

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    auth_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SCRAPER_AUTH_TOKEN", "AUTH_TOKEN"),
    )
    """Shared secret expected in :attr:`token_header_name`.

    When unset (or empty) authentication is disabled entirely.
    """

    token_header_name: str = "X-API-Token"
    """Request header carrying the auth token."""

    # ------------------------------------------------------------------
    # Per-provider admission control
    # ------------------------------------------------------------------

    hanime_max_concurrent_requests: int = 2
    """Concurrent in-flight operations allowed against hanime1.me."""

    hanime_min_interval_seconds: float = 3.0
    """Minimum spacing between successive requests through one Hanime slot."""

    dlsite_max_concurrent_requests: int = 4
    """Concurrent in-flight operations allowed against dlsite.com."""

    dlsite_min_interval_seconds: float = 1.0
    """Minimum spacing between successive requests through one DLsite slot."""

    slot_acquire_timeout_seconds: float = 15.0
    """How long a request waits for a concurrency slot before answering 429."""

    request_timeout_seconds: float = 60.0
    """Upper bound on a single provider operation (search + fan-out, or one lookup)."""

    detail_concurrency: int = 4
    """Worker degree for ordered detail fetching after a search."""

    search_default_results: int = 12
    """``max`` used by the search endpoint when the caller omits it."""

    search_max_results: int = 50
    """Hard ceiling for the search endpoint's ``max`` parameter."""

    api_rate_limit: str = "120/minute"
    """Per-client inbound throttle applied by slowapi to the ``/api`` routes."""

    # ------------------------------------------------------------------
    # Result cache
    # ------------------------------------------------------------------

    cache_capacity: int = 500
    """Maximum number of (provider, id) entries before LRU eviction."""

    cache_ttl_seconds: float = 300.0
    """Lifetime of a cached successful lookup."""

    cache_not_found_ttl_seconds: float = 120.0
    """Lifetime of a cached not-found marker."""

    # ------------------------------------------------------------------
    # HTTP client
    # ------------------------------------------------------------------

    http_timeout_seconds: float = 30.0
    """Per-request timeout for plain HTTP fetches."""

    http_max_retries: int = 2
    """Retries for transient transport failures (never for HTTP status errors)."""

    # ------------------------------------------------------------------
    # Browser sessions
    # ------------------------------------------------------------------

    browser_headless: bool = True
    """Run Chromium without a visible window."""

    session_isolation: Literal["shared", "split"] = "shared"
    """``shared``: one context for all traffic; ``split``: search and detail rotate independently."""

    session_ttl_minutes: float = 8.0
    """Context lifetime before forced rotation.  ``0`` disables the TTL."""

    session_max_pages: int = 50
    """Pages opened in one context before forced rotation.  ``0`` disables the cap."""

    session_rotate_on_challenge: bool = True
    """Rotate a context on the next acquire once a challenge was seen on it."""

    browser_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    )
    """User agent applied to every new browser context."""

    browser_locale: str = "zh-CN"
    """``navigator.language`` of new contexts."""

    browser_timezone: str = "Australia/Melbourne"
    """IANA timezone of new contexts."""

    browser_accept_language: str = "zh-CN,zh;q=0.9"
    """``Accept-Language`` header sent by new contexts."""

    browser_viewport_width: int = 1280
    browser_viewport_height: int = 900

    browser_init_script_path: Optional[str] = None
    """Optional stealth script injected into every new context."""

    human_like_actions: bool = False
    """Simulate mouse movement and scrolling after each page load."""

    # ------------------------------------------------------------------
    # Runtime
    # ------------------------------------------------------------------

    aggressive_memory_optimization: bool = False
    """Force a garbage collection pass after each search fan-out."""

    @property
    def auth_enabled(self) -> bool:
        """``True`` when a non-empty auth token is configured."""
        return bool(self.auth_token)


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Uses ``functools.lru_cache`` so that Pydantic Settings reads the environment
    and .env file exactly once per process lifetime.  In tests, call
    ``get_settings.cache_clear()`` after patching environment variables.

    Returns:
        Settings: The validated settings object.
    """
    return Settings()
