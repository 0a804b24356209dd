"""Async plain-HTTP network client.

Uses ``httpx`` for all requests.  Suitable for sources that render their
content server-side (DLsite).  Transient transport failures are retried
with exponential backoff through ``tenacity``; HTTP error statuses are not.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from hanimeta_scraper.core.exceptions import ChallengeDetectedError, NetworkFetchError
from hanimeta_scraper.scraper.challenge import is_challenge_page
from hanimeta_scraper.scraper.config import (
    DEFAULT_HTTP_TIMEOUT,
    HTTP_ACCEPT,
    HTTP_ACCEPT_LANGUAGE,
    HTTP_RETRY_INITIAL_DELAY,
    HTTP_RETRY_MAX_DELAY,
    HTTP_USER_AGENT,
)
from hanimeta_scraper.scraper.network import NetworkClient

logger = logging.getLogger(__name__)

#: Exceptions worth another attempt: the server never produced a response.
_TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


def default_headers(
    user_agent: str = HTTP_USER_AGENT,
    accept_language: str = HTTP_ACCEPT_LANGUAGE,
) -> dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": HTTP_ACCEPT,
        "Accept-Language": accept_language,
    }


class HttpNetworkClient(NetworkClient):
    """``httpx.AsyncClient`` wrapper implementing :class:`NetworkClient`.

    Args:
        client: Shared client to use.  When omitted one is created (with
            redirects followed and browser-like headers) and owned by this
            instance.
        timeout: Per-request timeout in seconds.
        max_retries: Retries for transient transport failures.
        retry_delay: Initial backoff between retries in seconds.
    """

    supports_pages = False

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        max_retries: int = 2,
        retry_delay: float = HTTP_RETRY_INITIAL_DELAY,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers=default_headers(),
            follow_redirects=True,
            timeout=timeout,
        )
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_delay, max=HTTP_RETRY_MAX_DELAY),
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True,
        )

    async def _get(self, url: str, headers: dict[str, str] | None) -> httpx.Response:
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._client.get(url, headers=headers, timeout=self.timeout)
                    response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NetworkFetchError(
                f"HTTP {exc.response.status_code} from {url}",
                url=url,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.RequestError as exc:
            raise NetworkFetchError(f"request error fetching {url}: {exc}", url=url) from exc
        return response

    # ------------------------------------------------------------------
    # NetworkClient
    # ------------------------------------------------------------------

    async def get_html(self, url: str) -> str:
        response = await self._get(url, None)
        if is_challenge_page(response.text, url):
            raise ChallengeDetectedError(f"challenge page served for {url}", url=url)
        return response.text

    async def get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        merged = {"Accept": "application/json, text/javascript, */*; q=0.01"}
        merged.update(headers or {})
        response = await self._get(url, merged)
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise NetworkFetchError(f"invalid JSON from {url}: {exc}", url=url) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
