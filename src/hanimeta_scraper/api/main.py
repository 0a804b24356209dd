"""FastAPI application factory and entry point.

Creates the application instance, registers middleware (CORS, per-client
throttling, token auth, request logging), maps the exception hierarchy
onto JSON envelopes, and mounts the route routers.  The scraping runtime
is built at startup and closed at shutdown.

Usage::

    # Development server (from project root)
    uvicorn hanimeta_scraper.api.main:app --reload

    # Console script installed with the package
    hanimeta-scraper
"""

from __future__ import annotations

import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from hanimeta_scraper import __version__
from hanimeta_scraper.api.auth import check_token, is_public_path
from hanimeta_scraper.api.limiter import limiter
from hanimeta_scraper.api.metrics import http_request_duration_seconds, http_requests_total
from hanimeta_scraper.api.responses import fail
from hanimeta_scraper.config.settings import get_settings
from hanimeta_scraper.core.exceptions import (
    ContentNotFoundError,
    InvalidIdError,
    ScraperError,
    ServiceBusyError,
    UnknownProviderError,
)
from hanimeta_scraper.core.logging_config import configure_logging, request_id_var
from hanimeta_scraper.core.runtime import ScraperRuntime

# ---------------------------------------------------------------------------
# Logging configuration, applied once at import so that records emitted
# during app construction are captured.  The level is re-applied inside
# create_app() after settings are loaded.
# ---------------------------------------------------------------------------

configure_logging("INFO")

logger = structlog.get_logger(__name__)

_ERROR_STATUS: tuple[tuple[type[ScraperError], int], ...] = (
    (InvalidIdError, status.HTTP_400_BAD_REQUEST),
    (UnknownProviderError, status.HTTP_404_NOT_FOUND),
    (ContentNotFoundError, status.HTTP_404_NOT_FOUND),
    (ServiceBusyError, status.HTTP_429_TOO_MANY_REQUESTS),
)


def status_for(exc: ScraperError) -> int:
    """HTTP status for a domain error; anything unmapped is a 500."""
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(runtime: ScraperRuntime | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    Args:
        runtime: Pre-built runtime to serve.  Tests pass a fake here; when
            omitted the runtime is built from settings at startup and
            closed at shutdown.

    Returns:
        A fully configured ``FastAPI`` instance.
    """
    settings = runtime.settings if runtime is not None else get_settings()
    owns_runtime = runtime is None

    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        description="Metadata scraping backend for DLsite and Hanime.",
        version=__version__,
        redirect_slashes=False,
    )
    application.state.runtime = runtime
    application.state.limiter = limiter

    # ---- Middleware --------------------------------------------------------
    # Starlette runs the last-registered middleware first, so the request
    # logger below wraps auth, throttling and CORS.

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(SlowAPIMiddleware)

    @application.middleware("http")
    async def auth_middleware(request: Request, call_next: Callable) -> Response:
        """Reject non-public requests that lack the configured API token."""
        if request.method == "OPTIONS" or is_public_path(request.url.path):
            return await call_next(request)
        error = check_token(settings, request.headers.get(settings.token_header_name))
        if error is not None:
            logger.warning("auth_rejected", reason=error)
            return fail(error, status.HTTP_401_UNAUTHORIZED)
        return await call_next(request)

    @application.middleware("http")
    async def request_logging_middleware(request: Request, call_next: Callable) -> Response:
        """Log every request with its status and duration, and record HTTP metrics.

        Attaches a unique ``request_id`` to the structlog context so that all
        log lines emitted during a request can be correlated, including
        those from provider and browser code.
        """
        request_id = str(uuid.uuid4())
        request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response: Response | None = None
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("unhandled_exception", exc_info=exc)
            raise
        finally:
            elapsed = time.perf_counter() - start
            status_code = getattr(response, "status_code", 500)
            route = request.scope.get("route")
            path_label = getattr(route, "path", "unmatched")
            http_requests_total.labels(method=request.method, path=path_label, status=str(status_code)).inc()
            http_request_duration_seconds.labels(method=request.method, path=path_label).observe(elapsed)
            log_fn = logger.warning if status_code >= 400 else logger.info
            log_fn("request_complete", status_code=status_code, elapsed_ms=round(elapsed * 1000, 2))

        response.headers["X-Request-ID"] = request_id
        return response

    # ---- Exception handlers ------------------------------------------------

    @application.exception_handler(ScraperError)
    async def scraper_error_handler(request: Request, exc: ScraperError) -> Response:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("scraper_error", error=str(exc), error_type=type(exc).__name__)
        return fail(str(exc), status_code)

    @application.exception_handler(TimeoutError)
    async def timeout_handler(request: Request, exc: TimeoutError) -> Response:
        logger.warning("request_timeout", timeout_s=settings.request_timeout_seconds)
        return fail(
            f"Request timed out after {settings.request_timeout_seconds:.0f}s",
            status.HTTP_504_GATEWAY_TIMEOUT,
        )

    @application.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
            for err in exc.errors()
        )
        return fail(f"Invalid request: {details}", status.HTTP_400_BAD_REQUEST)

    @application.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
        return fail(f"Rate limit exceeded: {exc.detail}", status.HTTP_429_TOO_MANY_REQUESTS)

    @application.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> Response:
        return fail(f"Internal error: {type(exc).__name__}", status.HTTP_500_INTERNAL_SERVER_ERROR)

    # ---- Routers ------------------------------------------------------------

    from hanimeta_scraper.api.routes import (  # noqa: PLC0415
        cache as cache_routes,
        health as health_routes,
        providers as provider_routes,
    )

    application.include_router(health_routes.router)
    application.include_router(cache_routes.router)
    application.include_router(provider_routes.router)

    # ---- Lifecycle events -------------------------------------------------

    @application.on_event("startup")
    async def on_startup() -> None:
        """Build the scraping runtime unless one was injected."""
        if application.state.runtime is None:
            application.state.runtime = ScraperRuntime.build(settings)
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            log_level=settings.log_level,
            auth_enabled=settings.auth_enabled,
            providers=sorted(application.state.runtime.providers),
        )

    @application.on_event("shutdown")
    async def on_shutdown() -> None:
        """Close the browser, sessions and HTTP client the app created."""
        if owns_runtime and application.state.runtime is not None:
            await application.state.runtime.aclose()
            application.state.runtime = None
        logger.info("application_shutdown")

    return application


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

app = create_app()
"""The FastAPI application instance.

This is the ASGI callable passed to Uvicorn.
"""


def run() -> None:
    """Console-script entry point: serve ``app`` on the configured host and port."""
    import uvicorn  # noqa: PLC0415

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
