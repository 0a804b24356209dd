"""Request orchestration: routing, cached lookups and ordered detail fan-out."""

from __future__ import annotations

from hanimeta_scraper.pipeline.orchestrator import RouteMode, ScrapeOrchestrator
from hanimeta_scraper.pipeline.ordered import ordered_fan_out

__all__ = ["RouteMode", "ScrapeOrchestrator", "ordered_fan_out"]
