"""Source-specific metadata providers.

Importing this package registers every built-in provider.
"""

from hanimeta_scraper.providers import dlsite, hanime  # noqa: F401
from hanimeta_scraper.providers.base import DetailResult, ExtractError, ExtractErrorKind, MediaProvider
from hanimeta_scraper.providers.registry import get_provider_class, list_providers, register

__all__ = [
    "DetailResult",
    "ExtractError",
    "ExtractErrorKind",
    "MediaProvider",
    "get_provider_class",
    "list_providers",
    "register",
]
