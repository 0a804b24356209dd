"""Provider registry.

Providers register themselves on import using the ``@register`` decorator.
The registry maps ``key`` strings (the ``{provider}`` URL segment) to
``MediaProvider`` subclasses.

Example: looking up a provider::

    from hanimeta_scraper.providers.registry import get_provider_class, list_providers

    cls = get_provider_class("dlsite")
    provider = cls(http_client)

    list_providers()
    # [{"key": "dlsite", "name": "DLsite", "requiresBrowser": False}, ...]
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from hanimeta_scraper.core.exceptions import UnknownProviderError

if TYPE_CHECKING:
    from hanimeta_scraper.providers.base import MediaProvider

logger = logging.getLogger(__name__)

_REGISTRY: dict[str, type[MediaProvider]] = {}


def register(cls: type[MediaProvider]) -> type[MediaProvider]:
    """Decorator that registers a ``MediaProvider`` subclass under its ``key``.

    Re-registering a key overwrites the previous class and logs a warning.
    """
    key = cls.key.lower()
    if not key:
        raise AttributeError(f"{cls.__qualname__} does not define a provider key")
    if key in _REGISTRY:
        logger.warning(
            "Provider '%s' is already registered (was %s). Overwriting with %s.",
            key,
            _REGISTRY[key].__qualname__,
            cls.__qualname__,
        )
    _REGISTRY[key] = cls
    logger.debug("Registered provider: key=%s class=%s", key, cls.__qualname__)
    return cls


def get_provider_class(key: str) -> type[MediaProvider]:
    """Return the provider class registered under ``key`` (case-insensitive).

    Raises:
        UnknownProviderError: If no provider is registered under ``key``.
    """
    try:
        return _REGISTRY[key.lower()]
    except KeyError:
        raise UnknownProviderError(key) from None


def provider_keys() -> list[str]:
    return sorted(_REGISTRY)


def list_providers() -> list[dict[str, Any]]:
    """Return metadata for every registered provider, ordered by key."""
    return [
        {
            "key": cls.key,
            "name": cls.name,
            "requiresBrowser": cls.requires_browser,
        }
        for _, cls in sorted(_REGISTRY.items())
    ]
