"""HTTP-level tests for the FastAPI application.

Tests cover:
- the success/error envelope on search and detail routes
- status mapping: 400 invalid input, 404 unknown provider or missing item,
  429 busy provider, 504 timeout, 500 unexpected domain error
- search ``max`` defaulting and clamping
- token authentication and the public paths that bypass it
- the DLsite redirect
- cache management, service info, health and metrics endpoints

The application is served in-process through ``httpx.ASGITransport`` with a
fake runtime built around ``FakeProvider``; nothing touches the network.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import AsyncIterator
from unittest.mock import MagicMock

import httpx
import pytest

from hanimeta_scraper.api.limiter import limiter
from hanimeta_scraper.api.main import create_app
from hanimeta_scraper.config.settings import Settings
from hanimeta_scraper.core.cache import MetadataCache
from hanimeta_scraper.core.exceptions import NetworkFetchError, SessionError
from hanimeta_scraper.core.metadata import SearchHit
from hanimeta_scraper.limits.rate_limiter import ProviderLimits
from hanimeta_scraper.pipeline.orchestrator import ScrapeOrchestrator
from tests.fakes import FakeProvider, build_metadata

TOKEN = "s3cret-token"


def _runtime(provider: FakeProvider | None = None, **overrides) -> SimpleNamespace:
    provider = provider or FakeProvider()
    settings = Settings(_env_file=None, **overrides)
    cache = MetadataCache()
    limits = {provider.key: ProviderLimits.build(provider.key, max_concurrent=1, min_interval=0)}
    orchestrator = ScrapeOrchestrator({provider.key: provider}, limits, cache, slot_timeout=0.05)
    sessions = MagicMock(name="BrowserSessionManager")
    sessions.stats.return_value = {"contexts": 0, "rotationReasons": {}}
    return SimpleNamespace(
        settings=settings,
        providers={provider.key: provider},
        limits=limits,
        cache=cache,
        orchestrator=orchestrator,
        sessions=sessions,
    )


@asynccontextmanager
async def _client(runtime: SimpleNamespace) -> AsyncIterator[httpx.AsyncClient]:
    limiter.reset()
    transport = httpx.ASGITransport(app=create_app(runtime))
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


def _hits(count: int) -> list[SearchHit]:
    return [
        SearchHit(detail_url=f"https://fake.test/work/RJ{i:06d}", title=f"Hit {i}")
        for i in range(count)
    ]


def _search_provider(count: int) -> FakeProvider:
    hits = _hits(count)
    details = {h.detail_url: build_metadata(f"RJ{i:06d}", title=f"Work {i}") for i, h in enumerate(hits)}
    return FakeProvider(hits=hits, details=details)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestSearchRoute:
    async def test_returns_enriched_records_in_order(self) -> None:
        provider = _search_provider(3)
        async with _client(_runtime(provider)) as client:
            response = await client.get(
                "/api/fake/search", params={"title": "Love Story 1080p.mkv", "max": 3}
            )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [item["id"] for item in body["data"]] == ["RJ000000", "RJ000001", "RJ000002"]
        assert "primaryImage" in body["data"][0]
        assert provider.search_calls[0][0] == "Love Story"

    @pytest.mark.parametrize(
        ("requested", "expected"),
        [(None, 12), ("0", 1), ("-4", 1), ("500", 50), ("7", 7)],
    )
    async def test_max_is_defaulted_and_clamped(self, requested: str | None, expected: int) -> None:
        provider = FakeProvider()
        params = {"title": "Love Story"}
        if requested is not None:
            params["max"] = requested
        async with _client(_runtime(provider)) as client:
            response = await client.get("/api/fake/search", params=params)

        assert response.status_code == 200
        assert provider.search_calls == [("Love Story", expected)]

    async def test_missing_title(self) -> None:
        async with _client(_runtime()) as client:
            response = await client.get("/api/fake/search", params={"title": "  "})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Query parameter 'title' is required"}

    async def test_non_numeric_max(self) -> None:
        async with _client(_runtime()) as client:
            response = await client.get("/api/fake/search", params={"title": "x", "max": "many"})

        assert response.status_code == 400
        assert response.json()["success"] is False

    async def test_unknown_provider(self) -> None:
        async with _client(_runtime()) as client:
            response = await client.get("/api/javdb/search", params={"title": "x"})

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Unknown provider: javdb"}

    async def test_search_failure_is_empty_list(self) -> None:
        provider = FakeProvider(search_error=NetworkFetchError("HTTP 503", status_code=503))
        async with _client(_runtime(provider)) as client:
            response = await client.get("/api/fake/search", params={"title": "x"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": []}

    async def test_unexpected_domain_error_is_500(self) -> None:
        provider = FakeProvider(search_error=SessionError("browser engine is closed"))
        async with _client(_runtime(provider)) as client:
            response = await client.get("/api/fake/search", params={"title": "x"})

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "browser engine is closed"}


# ---------------------------------------------------------------------------
# Detail
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestDetailRoute:
    async def test_found(self) -> None:
        url = "https://fake.test/work/RJ1"
        provider = FakeProvider(details={url: build_metadata("RJ1", title="One", original_title="One")})
        async with _client(_runtime(provider)) as client:
            response = await client.get("/api/fake/rj1")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["id"] == "RJ1"
        assert body["data"]["originalTitle"] == "One"
        assert response.headers["X-Request-ID"]

    async def test_not_found(self) -> None:
        async with _client(_runtime()) as client:
            response = await client.get("/api/fake/RJ404")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Content not found: RJ404"}

    async def test_invalid_id(self) -> None:
        provider = FakeProvider()
        async with _client(_runtime(provider)) as client:
            response = await client.get("/api/fake/not-an-id")

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid fake ID: not-an-id"}
        assert provider.detail_calls == []

    async def test_busy_provider(self) -> None:
        runtime = _runtime()
        held = await runtime.limits["fake"].concurrency.try_acquire(0)
        assert held is not None
        try:
            async with _client(runtime) as client:
                response = await client.get("/api/fake/RJ1")
        finally:
            held.release()

        assert response.status_code == 429
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("Service busy")

    async def test_timeout(self) -> None:
        url = "https://fake.test/work/RJ1"
        provider = FakeProvider(details={url: build_metadata("RJ1")}, delays={url: 5})
        runtime = _runtime(provider, request_timeout_seconds=0.05)
        async with _client(runtime) as client:
            response = await client.get("/api/fake/RJ1")

        assert response.status_code == 504
        body = response.json()
        assert body["success"] is False
        assert "timed out" in body["error"]
        slots = runtime.limits["fake"].concurrency
        assert slots.acquired_total == slots.released_total

    async def test_second_lookup_is_cached(self) -> None:
        url = "https://fake.test/work/RJ1"
        provider = FakeProvider(details={url: build_metadata("RJ1")})
        async with _client(_runtime(provider)) as client:
            await client.get("/api/fake/RJ1")
            await client.get("/api/fake/RJ1")

        assert provider.detail_calls == [url]


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestAuth:
    async def test_missing_token(self) -> None:
        async with _client(_runtime(auth_token=TOKEN)) as client:
            response = await client.get("/api/fake/RJ1")

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Missing X-API-Token header"}

    async def test_wrong_token(self) -> None:
        async with _client(_runtime(auth_token=TOKEN)) as client:
            response = await client.get("/api/fake/RJ1", headers={"X-API-Token": "nope"})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Invalid API token"}

    async def test_valid_token(self) -> None:
        async with _client(_runtime(auth_token=TOKEN)) as client:
            response = await client.get("/api/fake/RJ1", headers={"X-API-Token": TOKEN})

        assert response.status_code == 404

    async def test_cache_routes_are_protected(self) -> None:
        async with _client(_runtime(auth_token=TOKEN)) as client:
            response = await client.delete("/cache/clear")

        assert response.status_code == 401

    @pytest.mark.parametrize("path", ["/", "/health", "/metrics", "/r/dlsite/RJ01234567"])
    async def test_public_paths(self, path: str) -> None:
        async with _client(_runtime(auth_token=TOKEN)) as client:
            response = await client.get(path)

        assert response.status_code != 401

    async def test_auth_disabled_without_token(self) -> None:
        async with _client(_runtime()) as client:
            response = await client.get("/api/fake/RJ1")

        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Redirect, cache, service routes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestRedirect:
    async def test_redirects_to_work_page(self) -> None:
        async with _client(_runtime()) as client:
            response = await client.get("/r/dlsite/rj01234567")

        assert response.status_code == 302
        assert response.headers["location"] == (
            "https://www.dlsite.com/maniax/work/=/product_id/RJ01234567.html"
        )

    async def test_invalid_id(self) -> None:
        async with _client(_runtime()) as client:
            response = await client.get("/r/dlsite/not-an-id")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Invalid DLsite ID: not-an-id"}


@pytest.mark.asyncio
class TestCacheRoutes:
    async def test_stats_remove_and_clear(self) -> None:
        runtime = _runtime()
        runtime.cache.set("fake", "RJ1", build_metadata("RJ1"))
        runtime.cache.set("fake", "RJ2", None)

        async with _client(runtime) as client:
            stats = (await client.get("/cache/stats")).json()
            removed = (await client.delete("/cache/fake/rj1")).json()
            missing = (await client.delete("/cache/fake/RJ1")).json()
            cleared = (await client.delete("/cache/clear")).json()

        assert stats["entries"] == 2
        assert "timestamp" in stats
        assert removed["removed"] is True
        assert removed["message"] == "Cache entry removed for fake:rj1"
        assert missing["removed"] is False
        assert cleared["message"] == "Cache cleared successfully"
        assert cleared["removed"] == 1
        assert len(runtime.cache) == 0


@pytest.mark.asyncio
class TestServiceRoutes:
    async def test_service_info(self) -> None:
        async with _client(_runtime()) as client:
            response = await client.get("/")

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        data = body["data"]
        assert data["providers"] == [{"key": "fake", "name": "Fake", "requiresBrowser": False}]
        assert data["authEnabled"] is False
        assert data["limits"]["fake"]["maxConcurrent"] == 1
        assert data["browser"] == {"contexts": 0, "rotationReasons": {}}
        assert "GET /api/{provider}/{id}" in data["endpoints"]

    async def test_health(self) -> None:
        async with _client(_runtime()) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_metrics(self) -> None:
        async with _client(_runtime()) as client:
            await client.get("/health")
            response = await client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
