"""Network access abstraction shared by the HTTP and browser clients.

Providers only talk to a :class:`NetworkClient`.  Both implementations can
fetch raw HTML and JSON; only the browser-backed client can hand out a live
page for interactive waits.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator

if TYPE_CHECKING:
    from playwright.async_api import Page


class NetworkClient(ABC):
    """Uniform fetch capability consumed by providers."""

    #: ``True`` when :meth:`open_page` yields real pages.
    supports_pages: bool = False

    @abstractmethod
    async def get_html(self, url: str) -> str:
        """Return the page source of ``url``.

        Raises:
            NetworkFetchError: On transport failure or an HTTP error status.
            ChallengeDetectedError: When an interstitial was served instead.
        """

    @abstractmethod
    async def get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        """Return the decoded JSON body of ``url``.

        Raises:
            NetworkFetchError: On transport failure, an HTTP error status or
                an undecodable body.
        """

    @asynccontextmanager
    async def open_page(
        self, url: str, *, for_detail: bool | None = None
    ) -> AsyncIterator[Page | None]:
        """Yield a loaded page for ``url``, or ``None`` if unsupported/failed.

        The page is closed when the block exits.
        """
        yield None

    async def aclose(self) -> None:
        """Release pooled connections."""
