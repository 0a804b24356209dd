"""Unit tests for the browser-backed network client.

Tests cover:
- a successful open yields the page and closes it afterwards
- a challenge on the primary attempt flags the context and the slow retry
  runs with the longer timeouts
- a slow retry that succeeds after a plain failure also flags the context
- when both attempts fail open_page() yields None and get_html() raises
- cancellation is never retried
- get_json() goes over HTTP with the fingerprint headers

Sessions, contexts and pages are MagicMock/AsyncMock stand-ins.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from hanimeta_scraper.core.exceptions import ChallengeDetectedError, NetworkFetchError
from hanimeta_scraper.scraper.config import PRIMARY_GOTO_TIMEOUT_MS, SLOW_GOTO_TIMEOUT_MS
from hanimeta_scraper.scraper.playwright_client import PlaywrightNetworkClient

WATCH_URL = "https://hanime1.me/watch?v=12345"
SEARCH_URL = "https://hanime1.me/search?query=love"


def _page(
    html: str = "<html><body>ok</body></html>",
    goto_error: BaseException | type | None = None,
) -> MagicMock:
    page = MagicMock(name="Page")
    page.url = WATCH_URL
    page.goto = AsyncMock(side_effect=goto_error)
    page.locator.return_value.first.wait_for = AsyncMock()
    page.content = AsyncMock(return_value=html)
    page.is_closed = MagicMock(return_value=False)
    page.close = AsyncMock()
    return page


def _sessions(pages: list[MagicMock], challenged: list[bool] | None = None) -> MagicMock:
    context = MagicMock(name="BrowserContext")
    context.new_page = AsyncMock(side_effect=pages)
    sessions = MagicMock(name="BrowserSessionManager")
    sessions.context = context
    sessions.acquire = AsyncMock(return_value=context)
    sessions.is_challenge = MagicMock(side_effect=challenged or [False] * len(pages))
    return sessions


def _client(sessions: MagicMock, http: AsyncMock | None = None) -> PlaywrightNetworkClient:
    return PlaywrightNetworkClient(sessions, http or AsyncMock())


@pytest.mark.asyncio
class TestOpenPage:
    async def test_success_closes_page(self) -> None:
        page = _page()
        sessions = _sessions([page])

        async with _client(sessions).open_page(WATCH_URL) as opened:
            assert opened is page
            page.close.assert_not_awaited()

        page.close.assert_awaited_once()
        sessions.acquire.assert_awaited_once_with(True)
        sessions.record_page_opened.assert_called_once_with(sessions.context, True)
        sessions.flag_challenge.assert_not_called()
        assert page.goto.call_args.kwargs["timeout"] == PRIMARY_GOTO_TIMEOUT_MS

    async def test_search_urls_are_search_traffic(self) -> None:
        sessions = _sessions([_page()])
        async with _client(sessions).open_page(SEARCH_URL):
            pass
        sessions.acquire.assert_awaited_once_with(False)

    async def test_challenge_rotates_then_slow_retry(self) -> None:
        first, second = _page(), _page()
        sessions = _sessions([first, second], challenged=[True, False])

        async with _client(sessions).open_page(WATCH_URL) as opened:
            assert opened is second

        sessions.flag_challenge.assert_called_once_with(True)
        first.close.assert_awaited_once()
        second.close.assert_awaited_once()
        assert second.goto.call_args.kwargs["timeout"] == SLOW_GOTO_TIMEOUT_MS

    async def test_slow_retry_success_after_timeout_flags_context(self) -> None:
        first = _page(goto_error=PlaywrightTimeoutError("Timeout 60000ms exceeded"))
        second = _page()
        sessions = _sessions([first, second])

        async with _client(sessions).open_page(WATCH_URL, for_detail=False) as opened:
            assert opened is second

        sessions.flag_challenge.assert_called_once_with(False)
        first.close.assert_awaited_once()

    async def test_new_page_failure_is_retried_on_fresh_context(self) -> None:
        page = _page()
        sessions = _sessions([PlaywrightError("Target closed"), page])

        async with _client(sessions).open_page(WATCH_URL) as opened:
            assert opened is page

        sessions.flag_challenge.assert_called_once_with(True)

    async def test_both_attempts_fail(self) -> None:
        pages = [_page(goto_error=PlaywrightError("net::ERR_CONNECTION_RESET")) for _ in range(2)]
        sessions = _sessions(pages)

        async with _client(sessions).open_page(WATCH_URL) as opened:
            assert opened is None

        for page in pages:
            page.close.assert_awaited_once()

    async def test_cancellation_is_not_retried(self) -> None:
        page = _page(goto_error=asyncio.CancelledError)
        sessions = _sessions([page, _page()])

        with pytest.raises(asyncio.CancelledError):
            async with _client(sessions).open_page(WATCH_URL):
                pass

        sessions.acquire.assert_awaited_once()
        page.close.assert_awaited_once()


@pytest.mark.asyncio
class TestGetHtml:
    async def test_returns_content(self) -> None:
        page = _page("<h3 id='shareBtn-title'>Love Story</h3>")
        html = await _client(_sessions([page])).get_html(WATCH_URL)

        assert "Love Story" in html
        page.close.assert_awaited_once()

    async def test_network_failure_raises(self) -> None:
        pages = [_page(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED")) for _ in range(2)]
        with pytest.raises(NetworkFetchError):
            await _client(_sessions(pages)).get_html(WATCH_URL)

    async def test_persistent_challenge_raises(self) -> None:
        sessions = _sessions([_page(), _page()], challenged=[True, True])
        with pytest.raises(ChallengeDetectedError):
            await _client(sessions).get_html(WATCH_URL)


@pytest.mark.asyncio
class TestGetJson:
    async def test_uses_fingerprint_headers(self) -> None:
        sessions = _sessions([])
        sessions.options.fingerprint.http_headers.return_value = {
            "User-Agent": "Mozilla/5.0 Test",
            "Accept-Language": "ja-JP",
        }
        http = AsyncMock()
        http.get_json.return_value = {"ok": True}

        payload = await _client(sessions, http).get_json("https://hanime1.me/api", {"Referer": WATCH_URL})

        assert payload == {"ok": True}
        http.get_json.assert_awaited_once_with(
            "https://hanime1.me/api",
            {"User-Agent": "Mozilla/5.0 Test", "Accept-Language": "ja-JP", "Referer": WATCH_URL},
        )
