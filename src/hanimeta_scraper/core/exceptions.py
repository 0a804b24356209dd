"""Application-wide exception hierarchy for the scraping backend.

All custom exceptions subclass ``ScraperError``, enabling consistent error
handling at the API boundary and structured logging everywhere else.

Hierarchy::

    ScraperError
    ├── InvalidIdError           (provider, raw_id)
    ├── UnknownProviderError     (provider)
    ├── ServiceBusyError         (provider, timeout)
    ├── ContentNotFoundError     (provider, content_id)
    ├── SessionError
    └── ExtractionError          (provider, url)
        ├── NetworkFetchError    (status_code)
        ├── ChallengeDetectedError
        └── LayoutError

Extraction errors never escape a provider's detail fetch: they are turned
into an :class:`~hanimeta_scraper.providers.base.ExtractError` value and the
lookup degrades to "not found".
"""

from __future__ import annotations


class ScraperError(Exception):
    """Base class for all scraping backend exceptions."""


# ---------------------------------------------------------------------------
# Request-level errors (surface at the API boundary)
# ---------------------------------------------------------------------------


class InvalidIdError(ScraperError):
    """Raised when an ID lookup receives input the provider cannot parse.

    Args:
        provider: Provider key (e.g. ``"dlsite"``).
        raw_id: The rejected input.
    """

    def __init__(self, provider: str, raw_id: str) -> None:
        super().__init__(f"Invalid {provider} ID: {raw_id}")
        self.provider = provider
        self.raw_id = raw_id


class UnknownProviderError(ScraperError):
    """Raised when a request names a provider that is not registered."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Unknown provider: {provider}")
        self.provider = provider


class ServiceBusyError(ScraperError):
    """Raised when no concurrency slot became free within the admission timeout.

    Args:
        provider: Provider whose limiter was saturated.
        timeout: Seconds the caller waited before giving up.
    """

    def __init__(self, provider: str, timeout: float) -> None:
        super().__init__(
            f"Service busy: all {provider} concurrency slots occupied "
            f"for {timeout:.1f}s. Please retry later."
        )
        self.provider = provider
        self.timeout = timeout


class ContentNotFoundError(ScraperError):
    """Raised when a per-ID lookup resolves to no content."""

    def __init__(self, provider: str, content_id: str) -> None:
        super().__init__(f"Content not found: {content_id}")
        self.provider = provider
        self.content_id = content_id


# ---------------------------------------------------------------------------
# Browser session errors
# ---------------------------------------------------------------------------


class SessionError(ScraperError):
    """Raised when the browser engine is unavailable or a context died mid-use."""


# ---------------------------------------------------------------------------
# Extraction errors (contained inside providers)
# ---------------------------------------------------------------------------


class ExtractionError(ScraperError):
    """Raised when a page could not be fetched or understood.

    Args:
        message: Human-readable description of the failure.
        provider: Provider key, when known.
        url: Page URL that failed.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.url = url


class NetworkFetchError(ExtractionError):
    """Raised on transport failures and HTTP error statuses.

    Args:
        message: Human-readable description of the failure.
        url: Requested URL.
        status_code: HTTP status when the server answered, else ``None``.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        provider: str | None = None,
    ) -> None:
        super().__init__(message, provider=provider, url=url)
        self.status_code = status_code


class ChallengeDetectedError(ExtractionError):
    """Raised when an anti-bot interstitial was served instead of content."""


class LayoutError(ExtractionError):
    """Raised when a fetched page lacks every marker of the expected layout."""
