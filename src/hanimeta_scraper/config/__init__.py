"""Configuration package for the scraping backend.

Re-exports the settings symbols so callers can write::

    from hanimeta_scraper.config import get_settings
"""

from __future__ import annotations

from hanimeta_scraper.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
