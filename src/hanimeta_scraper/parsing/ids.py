"""ID grammars and canonical URLs for the supported sources.

DLsite product codes are a fixed prefix plus digits (``RJ01234567``,
``VJ015443``).  Hanime videos are addressed by a numeric ``v`` query
parameter of at least three digits.
"""

from __future__ import annotations

import posixpath
import re
from urllib.parse import parse_qs, urlparse

# ---------------------------------------------------------------------------
# DLsite
# ---------------------------------------------------------------------------

DLSITE_BASE_URL = "https://www.dlsite.com"

_DLSITE_ID_RE = re.compile(r"^(RJ|VJ)\d+$", re.IGNORECASE)
_DLSITE_PRODUCT_FILE_RE = re.compile(r"^(RJ|VJ)\d+\.html$", re.IGNORECASE)


def parse_dlsite_id_from_url(raw_url: str | None) -> str | None:
    """Extract an upper-cased product code from a DLsite URL.

    Accepts ``…/product_id/RJ01234567.html`` style paths as well as any
    path segment that is itself a product code.
    """
    if not raw_url:
        return None
    parsed = urlparse(raw_url.strip())
    if not parsed.scheme or not parsed.netloc:
        return None
    base_name = posixpath.basename(parsed.path)
    if _DLSITE_PRODUCT_FILE_RE.match(base_name):
        return base_name[: base_name.rfind(".")].upper()
    for segment in parsed.path.split("/"):
        if segment and _DLSITE_ID_RE.match(segment):
            return segment.upper()
    return None


def parse_dlsite_id(text: str | None) -> str | None:
    """Parse a bare product code or a DLsite URL into ``RJ…``/``VJ…``."""
    candidate = (text or "").strip()
    if not candidate:
        return None
    if _DLSITE_ID_RE.match(candidate):
        return candidate.upper()
    return parse_dlsite_id_from_url(candidate)


def dlsite_detail_url(content_id: str, site: str = "maniax") -> str:
    """Canonical work page, e.g. ``…/maniax/work/=/product_id/RJ01234567.html``."""
    return f"{DLSITE_BASE_URL}/{site}/work/=/product_id/{content_id}.html"


def dlsite_site_from_url(url: str) -> str:
    """``"pro"`` for ``/pro/`` URLs, ``"maniax"`` otherwise."""
    return "pro" if "/pro/" in url else "maniax"


# ---------------------------------------------------------------------------
# Hanime
# ---------------------------------------------------------------------------

HANIME_BASE_URL = "https://hanime1.me"

_HANIME_URL_RE = re.compile(r"https?://(?:www\.)?hanime1\.me/watch\?v=(\d{3,})", re.IGNORECASE)
_HANIME_BARE_ID_RE = re.compile(r"^\d{3,}$")


def parse_hanime_id_from_url(raw_url: str | None) -> str | None:
    """Read the ``v`` query parameter from a ``hanime1.me`` URL."""
    if not raw_url:
        return None
    parsed = urlparse(raw_url.strip())
    host = (parsed.hostname or "").lower()
    if not host.endswith("hanime1.me"):
        return None
    for value in parse_qs(parsed.query).get("v", []):
        if _HANIME_BARE_ID_RE.match(value):
            return value
    return None


def parse_hanime_id(text: str | None) -> str | None:
    """Parse a bare numeric ID (3+ digits) or a watch URL.

    Non-numeric titles are *not* IDs and must go through search instead.
    """
    candidate = (text or "").strip()
    if not candidate:
        return None
    match = _HANIME_URL_RE.search(candidate)
    if match:
        return match.group(1)
    if _HANIME_BARE_ID_RE.match(candidate):
        return candidate
    return parse_hanime_id_from_url(candidate)


def hanime_detail_url(content_id: str) -> str:
    return f"{HANIME_BASE_URL}/watch?v={content_id}"
