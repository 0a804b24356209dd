"""Abstract base class for all metadata providers.

Every content source must subclass ``MediaProvider`` and implement the
required interface methods.  The orchestrator and the limiters are written
once against this interface and never branch on provider identity.

Example usage::

    from hanimeta_scraper.providers.base import MediaProvider
    from hanimeta_scraper.providers.registry import register

    @register
    class MyProvider(MediaProvider):
        key = "mysite"
        name = "MySite"

        def parse_id(self, text): ...
        def build_detail_url(self, content_id): ...
        async def search(self, keyword, max_results): ...
        async def fetch_detail_page(self, detail_url): ...

Failure policy: :meth:`MediaProvider.try_fetch_detail` never raises for
extraction problems.  Network errors, challenges and broken layouts come
back as an :class:`ExtractError` value so callers can tell "legitimately
absent" from "extraction broke"; cancellation always propagates.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from hanimeta_scraper.core.exceptions import (
    ChallengeDetectedError,
    ExtractionError,
    LayoutError,
    NetworkFetchError,
)

if TYPE_CHECKING:
    from hanimeta_scraper.core.metadata import ContentMetadata, SearchHit
    from hanimeta_scraper.scraper.network import NetworkClient

logger = logging.getLogger(__name__)


class ExtractErrorKind(str, Enum):
    """Why a detail fetch produced no metadata.

    Attributes:
        NOT_FOUND: The page loaded but holds no content item.
        NETWORK: Transport failure, timeout or HTTP error status.
        CHALLENGE: An anti-bot interstitial was served.
        LAYOUT: The page could not be understood.
    """

    NOT_FOUND = "not_found"
    NETWORK = "network"
    CHALLENGE = "challenge"
    LAYOUT = "layout"


@dataclass(frozen=True)
class ExtractError:
    kind: ExtractErrorKind
    message: str
    url: str | None = None


@dataclass(frozen=True)
class DetailResult:
    """Typed outcome of a detail fetch: metadata, or an error, never both."""

    metadata: ContentMetadata | None = None
    error: ExtractError | None = None

    @property
    def not_found(self) -> bool:
        """``True`` when the source reported the item absent, as opposed to failing."""
        return self.error is not None and self.error.kind is ExtractErrorKind.NOT_FOUND

    @classmethod
    def ok(cls, metadata: ContentMetadata) -> DetailResult:
        return cls(metadata=metadata)

    @classmethod
    def failed(cls, kind: ExtractErrorKind, message: str, url: str | None = None) -> DetailResult:
        return cls(error=ExtractError(kind=kind, message=message, url=url))


class MediaProvider(ABC):
    """Abstract base class for all source-specific providers.

    Class attributes that subclasses must set:

    - ``key`` (str): Registry key and URL segment (e.g. ``"dlsite"``).
    - ``name`` (str): Display name (e.g. ``"DLsite"``).
    - ``requires_browser`` (bool): ``True`` when the source only renders
      in a real browser; the runtime then hands it the Playwright client.

    Args:
        net: Network capability suited to the source.
    """

    key: str = ""
    name: str = ""
    requires_browser: bool = False

    def __init__(self, net: NetworkClient) -> None:
        self.net = net

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @abstractmethod
    def parse_id(self, text: str) -> str | None:
        """Return the canonical ID contained in ``text``, or ``None``.

        Accepts bare IDs and detail-page URLs.  Never touches the network.
        """

    @abstractmethod
    def build_detail_url(self, content_id: str) -> str:
        """Return the canonical detail-page URL for ``content_id``."""

    @abstractmethod
    async def search(self, keyword: str, max_results: int) -> list[SearchHit]:
        """Search the source and return up to ``max_results`` hits in page order.

        Raises:
            ExtractionError: If the results page could not be fetched.
        """

    @abstractmethod
    async def fetch_detail_page(self, detail_url: str) -> ContentMetadata | None:
        """Fetch and parse one detail page.

        Returns:
            The parsed record, or ``None`` when the page holds no item.

        Raises:
            ExtractionError: On network failure, challenge or broken layout.
        """

    # ------------------------------------------------------------------
    # Contained detail fetch
    # ------------------------------------------------------------------

    async def try_fetch_detail(self, detail_url: str) -> DetailResult:
        """Fetch ``detail_url`` and report the outcome as a value.

        Extraction problems are logged with provider and URL and returned as
        :class:`ExtractError`; cancellation propagates.
        """
        try:
            metadata = await self.fetch_detail_page(detail_url)
        except asyncio.CancelledError:
            raise
        except ChallengeDetectedError as exc:
            logger.warning("providers: %s challenge on %s: %s", self.key, detail_url, exc)
            return DetailResult.failed(ExtractErrorKind.CHALLENGE, str(exc), detail_url)
        except NetworkFetchError as exc:
            if exc.status_code == 404:
                logger.info("providers: %s 404 for %s", self.key, detail_url)
                return DetailResult.failed(ExtractErrorKind.NOT_FOUND, str(exc), detail_url)
            logger.warning("providers: %s network error on %s: %s", self.key, detail_url, exc)
            return DetailResult.failed(ExtractErrorKind.NETWORK, str(exc), detail_url)
        except LayoutError as exc:
            logger.warning("providers: %s layout error on %s: %s", self.key, detail_url, exc)
            return DetailResult.failed(ExtractErrorKind.LAYOUT, str(exc), detail_url)
        except ExtractionError as exc:
            logger.warning("providers: %s extraction failed on %s: %s", self.key, detail_url, exc)
            return DetailResult.failed(ExtractErrorKind.NETWORK, str(exc), detail_url)
        except Exception as exc:  # noqa: BLE001
            logger.exception("providers: %s unexpected error parsing %s", self.key, detail_url)
            return DetailResult.failed(ExtractErrorKind.LAYOUT, f"{type(exc).__name__}: {exc}", detail_url)

        if metadata is None:
            logger.info("providers: %s found no content at %s", self.key, detail_url)
            return DetailResult.failed(ExtractErrorKind.NOT_FOUND, "no content on page", detail_url)
        return DetailResult.ok(metadata)

    async def fetch_detail(self, detail_url: str) -> ContentMetadata | None:
        """Metadata for ``detail_url``, or ``None`` on any extraction failure."""
        return (await self.try_fetch_detail(detail_url)).metadata

    def __repr__(self) -> str:
        return f"<{type(self).__name__} key={self.key!r}>"
