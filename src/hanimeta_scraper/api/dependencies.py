"""FastAPI dependency providers.

The runtime is created at application startup and stored on
``app.state.runtime``; route handlers receive it (or one of its parts)
through these dependencies so tests can substitute a fake runtime.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from hanimeta_scraper.config.settings import Settings
from hanimeta_scraper.core.cache import MetadataCache
from hanimeta_scraper.core.runtime import ScraperRuntime
from hanimeta_scraper.pipeline.orchestrator import ScrapeOrchestrator


def get_runtime(request: Request) -> ScraperRuntime:
    return request.app.state.runtime


def get_app_settings(runtime: Annotated[ScraperRuntime, Depends(get_runtime)]) -> Settings:
    return runtime.settings


def get_orchestrator(runtime: Annotated[ScraperRuntime, Depends(get_runtime)]) -> ScrapeOrchestrator:
    return runtime.orchestrator


def get_cache(runtime: Annotated[ScraperRuntime, Depends(get_runtime)]) -> MetadataCache:
    return runtime.cache


RuntimeDep = Annotated[ScraperRuntime, Depends(get_runtime)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
OrchestratorDep = Annotated[ScrapeOrchestrator, Depends(get_orchestrator)]
CacheDep = Annotated[MetadataCache, Depends(get_cache)]
