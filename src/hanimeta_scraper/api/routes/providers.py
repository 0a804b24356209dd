"""Per-provider query routes.

``GET /api/{provider}/search``
    Keyword search with ordered detail enrichment.  ``title`` may be a raw
    filename; quality, codec and container noise is stripped before the
    search.  ``max`` defaults to 12 and is clamped to ``1..50``.

``GET /api/{provider}/{id}``
    Single-item lookup through the result cache.  Answers 429 when the
    provider's concurrency slots stay occupied past the admission timeout.

``GET /r/dlsite/{id}``
    302 redirect to the DLsite work page.

Each provider call is bounded by ``Settings.request_timeout_seconds``;
expiry surfaces as 504 through the application's exception handlers.
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import structlog
from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse, RedirectResponse, Response

from hanimeta_scraper.api.dependencies import OrchestratorDep, SettingsDep
from hanimeta_scraper.api.responses import fail, ok
from hanimeta_scraper.parsing.ids import dlsite_detail_url, parse_dlsite_id
from hanimeta_scraper.pipeline.orchestrator import RouteMode

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["providers"])

MAX_RESULTS_CEILING = 50


def clamp_max_results(requested: int | None, default: int, ceiling: int = MAX_RESULTS_CEILING) -> int:
    """Apply the default and clamp into ``1..ceiling``."""
    value = default if requested is None else requested
    return max(1, min(value, ceiling))


@router.get("/api/{provider}/search")
async def search(
    provider: str,
    orchestrator: OrchestratorDep,
    settings: SettingsDep,
    title: Annotated[str | None, Query()] = None,
    max_results: Annotated[int | None, Query(alias="max")] = None,
) -> JSONResponse:
    """Search ``provider`` for ``title`` and return enriched records in hit order."""
    if not title or not title.strip():
        return fail("Query parameter 'title' is required", status.HTTP_400_BAD_REQUEST)

    orchestrator.get_provider(provider)
    limit = clamp_max_results(
        max_results,
        settings.search_default_results,
        min(settings.search_max_results, MAX_RESULTS_CEILING),
    )
    logger.info("search_started", provider=provider, title=title, max_results=limit)

    async with asyncio.timeout(settings.request_timeout_seconds):
        items = await orchestrator.run(provider, title, RouteMode.AUTO, limit)

    logger.info("search_complete", provider=provider, results=len(items))
    return ok([item.to_api() for item in items])


@router.get("/api/{provider}/{content_id}")
async def detail(
    provider: str,
    content_id: str,
    orchestrator: OrchestratorDep,
    settings: SettingsDep,
) -> JSONResponse:
    """Return one item by ID, served from the cache when possible."""
    async with asyncio.timeout(settings.request_timeout_seconds):
        item = await orchestrator.lookup(provider, content_id)
    return ok(item.to_api())


@router.get("/r/dlsite/{content_id}", response_model=None)
async def dlsite_redirect(content_id: str) -> Response:
    """Redirect to the canonical DLsite work page for ``content_id``."""
    parsed = parse_dlsite_id(content_id)
    if parsed is None:
        logger.warning("dlsite_redirect_invalid_id", content_id=content_id)
        return fail(f"Invalid DLsite ID: {content_id}", status.HTTP_404_NOT_FOUND)
    return RedirectResponse(dlsite_detail_url(parsed), status_code=status.HTTP_302_FOUND)
