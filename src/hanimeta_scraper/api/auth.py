"""Shared-token authentication.

When ``Settings.auth_token`` is set, every request outside the public
paths must carry the configured header (``X-API-Token`` by default) with
exactly that token.  With no token configured authentication is disabled.

Public paths: ``/``, ``/health``, ``/metrics`` and the ``/r/...``
redirects, which are linked from downstream UIs that cannot add headers.
"""

from __future__ import annotations

import secrets

from hanimeta_scraper.config.settings import Settings

PUBLIC_PATHS: frozenset[str] = frozenset({"/", "/health", "/metrics"})
PUBLIC_PREFIXES: tuple[str, ...] = ("/r/",)


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def check_token(settings: Settings, supplied: str | None) -> str | None:
    """Validate ``supplied`` against the configured token.

    Returns:
        ``None`` when the request may proceed, otherwise the error message
        for the 401 response.
    """
    if not settings.auth_enabled:
        return None
    if not supplied:
        return f"Missing {settings.token_header_name} header"
    if not secrets.compare_digest(supplied.encode(), settings.auth_token.encode()):
        return "Invalid API token"
    return None
