"""Service information, liveness and metrics routes.

``GET /``
    Service name, version, configured providers, whether authentication
    is enabled, and the endpoint list.

``GET /health``
    Process liveness.  Performs no I/O and never touches a provider.

``GET /metrics``
    Prometheus text exposition.

All three are reachable without the API token.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse

from hanimeta_scraper import __version__
from hanimeta_scraper.api.dependencies import RuntimeDep
from hanimeta_scraper.api.metrics import get_metrics_response
from hanimeta_scraper.api.responses import ok

router = APIRouter(tags=["system"])

ENDPOINTS: tuple[str, ...] = (
    "GET /api/{provider}/search?title={title}&max={n}",
    "GET /api/{provider}/{id}",
    "GET /r/dlsite/{id}",
    "GET /cache/stats",
    "DELETE /cache/clear",
    "DELETE /cache/{provider}/{id}",
    "GET /health",
    "GET /metrics",
)


@router.get("/")
async def service_info(runtime: RuntimeDep) -> JSONResponse:
    providers = runtime.orchestrator.providers
    return ok(
        {
            "name": runtime.settings.app_name,
            "version": __version__,
            "providers": [
                {"key": key, "name": provider.name, "requiresBrowser": provider.requires_browser}
                for key, provider in sorted(providers.items())
            ],
            "authEnabled": runtime.settings.auth_enabled,
            "limits": {
                key: {
                    "maxConcurrent": limits.concurrency.max_concurrent,
                    "inUse": limits.concurrency.in_use,
                    "busyRejections": limits.concurrency.busy_total,
                    "minIntervalSeconds": limits.rate.min_interval,
                }
                for key, limits in sorted(runtime.limits.items())
            },
            "browser": runtime.sessions.stats(),
            "endpoints": list(ENDPOINTS),
        }
    )


@router.get("/health")
async def health() -> JSONResponse:
    return JSONResponse({"status": "healthy", "timestamp": datetime.now(UTC).isoformat()})


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    body, content_type = get_metrics_response()
    return Response(content=body, media_type=content_type)
