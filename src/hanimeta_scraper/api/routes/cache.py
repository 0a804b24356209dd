"""Result-cache management routes.

These report operational status rather than content, so they return plain
JSON objects with a ``timestamp`` instead of the success envelope.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter

from hanimeta_scraper.api.dependencies import CacheDep

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/cache", tags=["cache"])


def _now() -> str:
    return datetime.now(UTC).isoformat()


@router.get("/stats")
async def cache_stats(cache: CacheDep) -> dict:
    return {**cache.stats(), "timestamp": _now()}


@router.delete("/clear")
async def cache_clear(cache: CacheDep) -> dict:
    removed = cache.clear()
    logger.info("cache_cleared", removed=removed)
    return {"message": "Cache cleared successfully", "removed": removed, "timestamp": _now()}


@router.delete("/{provider}/{content_id}")
async def cache_remove(provider: str, content_id: str, cache: CacheDep) -> dict:
    """Drop one entry so the next lookup refetches it."""
    removed = cache.invalidate(provider, content_id)
    logger.info("cache_entry_removed", provider=provider, content_id=content_id, removed=removed)
    return {
        "message": f"Cache entry removed for {provider}:{content_id}",
        "removed": removed,
        "timestamp": _now(),
    }
