"""Prometheus metrics for hanimeta-scraper.

Exposes application-level metrics alongside the standard process metrics
from prometheus_client.

All metrics are module-level singletons registered on the default
``REGISTRY``.

Metrics defined here:

  provider_requests_total{provider, operation, outcome}
      Counter: provider calls (search, detail) by outcome
      (ok, not_found, error, busy).

  cache_lookups_total{provider, result}
      Counter: result-cache lookups by result (hit, not_found, miss).

  busy_rejections_total{provider}
      Counter: requests rejected because no concurrency slot freed up.

  session_rotations_total{traffic, reason}
      Counter: browser session rotations by traffic class and reason.

  http_requests_total{method, path, status}
      Counter: HTTP requests handled by the FastAPI application.

  http_request_duration_seconds{method, path}
      Histogram: HTTP request latency in seconds.

Usage::

    from hanimeta_scraper.api.metrics import busy_rejections_total
    busy_rejections_total.labels(provider="hanime").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# Scraping metrics
# ---------------------------------------------------------------------------

provider_requests_total: Counter = Counter(
    "provider_requests_total",
    "Provider calls by provider, operation and outcome.",
    labelnames=["provider", "operation", "outcome"],
)
"""Counter incremented once per search or detail call made by the orchestrator.

Labels:
  provider:  provider key (dlsite, hanime)
  operation: search or detail
  outcome:   ok, not_found, error or busy
"""

cache_lookups_total: Counter = Counter(
    "cache_lookups_total",
    "Result-cache lookups by provider and result.",
    labelnames=["provider", "result"],
)

busy_rejections_total: Counter = Counter(
    "busy_rejections_total",
    "Requests rejected because the provider concurrency limit stayed saturated.",
    labelnames=["provider"],
)

session_rotations_total: Counter = Counter(
    "session_rotations_total",
    "Browser session rotations by traffic class and reason.",
    labelnames=["traffic", "reason"],
)
"""Counter incremented whenever a browser session is (re)created.

Labels:
  traffic: shared, search or detail
  reason:  initial, dead, challenge, ttl or max_pages
"""

# ---------------------------------------------------------------------------
# HTTP metrics (populated by middleware in main.py)
# ---------------------------------------------------------------------------

http_requests_total: Counter = Counter(
    "http_requests_total",
    "HTTP requests handled by the FastAPI application.",
    labelnames=["method", "path", "status"],
)

http_request_duration_seconds: Histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)
"""Histogram of HTTP request durations.

Labels:
  method: HTTP method
  path:   route template where one matched, otherwise the raw path
"""


# ---------------------------------------------------------------------------
# Response helper
# ---------------------------------------------------------------------------


def get_metrics_response() -> tuple[bytes, str]:
    """Generate a Prometheus text-format metrics response.

    Returns:
        A tuple of (body_bytes, content_type_string) suitable for constructing
        a FastAPI ``Response`` object.
    """
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # noqa: PLC0415

    return generate_latest(), CONTENT_TYPE_LATEST
