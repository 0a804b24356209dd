"""Per-provider admission control: concurrency slots and request spacing."""

from __future__ import annotations

from hanimeta_scraper.limits.concurrency import ConcurrencySlot, ProviderConcurrencyLimiter
from hanimeta_scraper.limits.rate_limiter import ProviderLimits, ProviderRateLimiter

__all__ = [
    "ConcurrencySlot",
    "ProviderConcurrencyLimiter",
    "ProviderLimits",
    "ProviderRateLimiter",
]
