"""Browser-backed network client for JavaScript-rendered sources.

Pages are opened on contexts borrowed from the
:class:`~hanimeta_scraper.browser.session_manager.BrowserSessionManager`.
Only pages are closed here; contexts belong to the manager.

Each open is one primary attempt followed, on failure, by a single slow
retry with longer timeouts.  A challenge (or a dead session) on the primary
attempt flags the traffic class so the retry runs on a fresh context; a
slow retry that succeeds after any other failure flags it too, so the next
request starts clean.

Install the browser binary once per host::

    playwright install chromium
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from hanimeta_scraper.core.exceptions import (
    ChallengeDetectedError,
    ExtractionError,
    NetworkFetchError,
    SessionError,
)
from hanimeta_scraper.scraper.antibot import human_like_actions
from hanimeta_scraper.scraper.config import (
    DEFAULT_READY_SELECTORS,
    DETAIL_URL_MARKER,
    PRIMARY_GOTO_TIMEOUT_MS,
    READY_SELECTOR_TIMEOUT_MS,
    SLOW_GOTO_TIMEOUT_MS,
    SLOW_READY_SELECTOR_TIMEOUT_MS,
)
from hanimeta_scraper.scraper.network import NetworkClient

if TYPE_CHECKING:
    from playwright.async_api import Page

    from hanimeta_scraper.browser.session_manager import BrowserSessionManager
    from hanimeta_scraper.scraper.http_client import HttpNetworkClient

logger = logging.getLogger(__name__)


async def close_page_quietly(page: Page | None) -> None:
    """Close ``page`` if it is still open, ignoring errors other than cancellation."""
    if page is None:
        return
    try:
        if not page.is_closed():
            await page.close()
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.debug("scraper: ignoring error while closing page: %s", exc)


class PlaywrightNetworkClient(NetworkClient):
    """:class:`NetworkClient` that renders pages in Chromium.

    Args:
        sessions: Context pool and rotation policy.
        http_client: Plain HTTP client used for JSON side requests.
        ready_selectors: Selectors awaited after navigation; a timeout on
            any one of them is tolerated.
        human_like: Run :func:`human_like_actions` after each load.
    """

    supports_pages = True

    def __init__(
        self,
        sessions: BrowserSessionManager,
        http_client: HttpNetworkClient,
        *,
        ready_selectors: Sequence[str] = DEFAULT_READY_SELECTORS,
        human_like: bool = False,
    ) -> None:
        self._sessions = sessions
        self._http = http_client
        self.ready_selectors = tuple(ready_selectors)
        self.human_like = human_like

    # ------------------------------------------------------------------
    # NetworkClient
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def open_page(
        self, url: str, *, for_detail: bool | None = None
    ) -> AsyncIterator[Page | None]:
        """Yield a loaded, challenge-free page for ``url``, or ``None``.

        Args:
            url: Page to open.
            for_detail: Traffic class.  Derived from the URL when omitted:
                watch pages are detail traffic, everything else search.
        """
        if for_detail is None:
            for_detail = DETAIL_URL_MARKER in url.lower()
        page, _ = await self._open_with_retry(url, for_detail)
        try:
            yield page
        finally:
            await close_page_quietly(page)

    async def get_html(self, url: str) -> str:
        for_detail = DETAIL_URL_MARKER in url.lower()
        page, error = await self._open_with_retry(url, for_detail)
        if page is None:
            if isinstance(error, ExtractionError):
                raise error
            raise NetworkFetchError(f"failed to load {url}: {error}", url=url) from error
        try:
            return await page.content()
        except PlaywrightError as exc:
            raise NetworkFetchError(f"failed to read {url}: {exc}", url=url) from exc
        finally:
            await close_page_quietly(page)

    async def get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        merged = self._sessions.options.fingerprint.http_headers()
        merged.update(headers or {})
        return await self._http.get_json(url, merged)

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    async def _open_with_retry(
        self, url: str, for_detail: bool
    ) -> tuple[Page | None, Exception | None]:
        try:
            return await self._open_once(url, for_detail, primary=True), None
        except asyncio.CancelledError:
            raise
        except Exception as first:  # noqa: BLE001
            logger.warning("scraper: primary attempt failed for %s: %s", url, first)
            primary_error = first

        flagged = isinstance(primary_error, (ChallengeDetectedError, SessionError))
        if flagged:
            self._sessions.flag_challenge(for_detail)

        try:
            page = await self._open_once(url, for_detail, primary=False)
        except asyncio.CancelledError:
            raise
        except Exception as second:  # noqa: BLE001
            logger.warning("scraper: slow retry failed for %s: %s", url, second)
            return None, second

        if not flagged:
            self._sessions.flag_challenge(for_detail)
        logger.info("scraper: slow retry succeeded for %s, context flagged for rotation", url)
        return page, None

    async def _open_once(self, url: str, for_detail: bool, *, primary: bool) -> Page:
        context = await self._sessions.acquire(for_detail)
        try:
            page = await context.new_page()
        except PlaywrightError as exc:
            raise SessionError(f"cannot open a page on the current context: {exc}") from exc
        self._sessions.record_page_opened(context, for_detail)

        goto_timeout = PRIMARY_GOTO_TIMEOUT_MS if primary else SLOW_GOTO_TIMEOUT_MS
        selector_timeout = READY_SELECTOR_TIMEOUT_MS if primary else SLOW_READY_SELECTOR_TIMEOUT_MS
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=goto_timeout)
            for selector in self.ready_selectors:
                try:
                    await page.locator(selector).first.wait_for(timeout=selector_timeout)
                except PlaywrightTimeoutError:
                    logger.debug("scraper: ready selector %r not seen on %s", selector, url)

            if self.human_like:
                await human_like_actions(page)

            html = await page.content()
            if self._sessions.is_challenge(page.url, html):
                raise ChallengeDetectedError("challenge page served", url=url)
            return page
        except BaseException:
            await close_page_quietly(page)
            raise
