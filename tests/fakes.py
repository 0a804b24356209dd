"""In-memory fakes shared by the test suite."""

from __future__ import annotations

import asyncio
import re
from typing import Any
from unittest.mock import MagicMock

from hanimeta_scraper.core.metadata import ContentMetadata, SearchHit
from hanimeta_scraper.providers.base import MediaProvider


class FakeClock:
    """Callable monotonic clock advanced explicitly by the test."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_metadata(content_id: str = "RJ000001", **fields: Any) -> ContentMetadata:
    return ContentMetadata(id=content_id, **fields)


class FakeProvider(MediaProvider):
    """Scriptable provider.

    Args:
        hits: Search hits returned (truncated to ``max_results``).
        details: ``detail_url -> ContentMetadata | Exception | None``.  An
            exception instance is raised from ``fetch_detail_page``.
        delays: ``detail_url -> seconds`` slept before answering.
        search_error: Raised from ``search`` when set.
    """

    key = "fake"
    name = "Fake"
    requires_browser = False

    _ID_RE = re.compile(r"^RJ\d+$", re.IGNORECASE)

    def __init__(
        self,
        hits: list[SearchHit] | None = None,
        details: dict[str, Any] | None = None,
        delays: dict[str, float] | None = None,
        search_error: Exception | None = None,
    ) -> None:
        super().__init__(MagicMock())
        self.hits = hits or []
        self.details = details or {}
        self.delays = delays or {}
        self.search_error = search_error
        self.search_calls: list[tuple[str, int]] = []
        self.detail_calls: list[str] = []

    def parse_id(self, text: str) -> str | None:
        text = (text or "").strip()
        return text.upper() if self._ID_RE.match(text) else None

    def build_detail_url(self, content_id: str) -> str:
        return f"https://fake.test/work/{content_id}"

    async def search(self, keyword: str, max_results: int) -> list[SearchHit]:
        self.search_calls.append((keyword, max_results))
        if self.search_error is not None:
            raise self.search_error
        return self.hits[:max_results]

    async def fetch_detail_page(self, detail_url: str) -> ContentMetadata | None:
        self.detail_calls.append(detail_url)
        delay = self.delays.get(detail_url)
        if delay:
            await asyncio.sleep(delay)
        outcome = self.details.get(detail_url)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
