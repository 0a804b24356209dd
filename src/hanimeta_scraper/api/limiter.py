"""Shared slowapi rate-limiter singleton.

Keeping the ``Limiter`` instance in its own module breaks the circular
import that would arise if route modules imported directly from ``main.py``
(which itself imports every route module).

This throttles inbound API clients by remote address.  It is unrelated to
the per-provider limits in :mod:`hanimeta_scraper.limits`, which protect
the scraped sites.

The ``Limiter`` is configured in ``main.create_app()`` where it is
attached to ``app.state`` and the ``SlowAPIMiddleware`` is registered.
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from hanimeta_scraper.config.settings import get_settings

limiter: Limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[get_settings().api_rate_limit],
)
"""Global rate-limiter instance.

Default limit comes from ``Settings.api_rate_limit`` and is enforced on
every route via ``SlowAPIMiddleware``.
"""
