"""Text normalisation and search-keyword construction."""

from __future__ import annotations

import html
import posixpath
import re
from urllib.parse import urljoin

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_WHITESPACE_RE = re.compile(r"\s+")

#: Release-group noise stripped from filenames before searching: resolutions,
#: codecs, audio formats, source tags and subtitle/language markers.
_QUALITY_TOKEN_RE = re.compile(
    r"\b(1080p|2160p|720p|480p|hevc|x26[45]|h\.?26[45]|aac|flac|hdr|dv|10bit|8bit"
    r"|webrip|web-dl|bluray|remux|sub|chs|cht|eng|multi|unrated|proper|repack)\b",
    re.IGNORECASE,
)

#: Container suffixes dropped from filenames; any other dot belongs to the title.
_MEDIA_EXTENSION_RE = re.compile(
    r"\.(mkv|mp4|avi|wmv|flv|mov|ts|m2ts|mpg|mpeg|m4v|webm|rmvb|iso)$", re.IGNORECASE
)

_BRACKET_RE = re.compile(r"[\[\](){}【】（）]")
_SEPARATOR_RE = re.compile(r"[_.]+")

_TAG_NOISE: tuple[str, ...] = ('"', "“", "”", "：", ":", "\u00a0", "&nbsp;")


# ---------------------------------------------------------------------------
# Cleaning
# ---------------------------------------------------------------------------


def clean(text: str | None) -> str:
    """Decode HTML entities, fold the ideographic space and collapse whitespace.

    Args:
        text: Raw text, possibly containing entities such as ``&amp;``.

    Returns:
        A single-line string, or ``""`` for empty input.
    """
    if not text:
        return ""
    text = html.unescape(text).replace("\u3000", " ").strip()
    return _WHITESPACE_RE.sub(" ", text)


def clean_tag(raw: str | None) -> str:
    """Strip quotes, colons and non-breaking spaces from a genre/tag label."""
    if not raw or not raw.strip():
        return ""
    for noise in _TAG_NOISE:
        raw = raw.replace(noise, "")
    return raw.strip()


def abs_url(maybe_relative: str | None, base_url: str) -> str:
    """Resolve ``maybe_relative`` against ``base_url``.

    Protocol-relative URLs (``//cdn…``) are forced to ``https:``.
    """
    if not maybe_relative or not maybe_relative.strip():
        return ""
    maybe_relative = maybe_relative.strip()
    if maybe_relative.startswith("//"):
        return "https:" + maybe_relative
    return urljoin(base_url, maybe_relative)


# ---------------------------------------------------------------------------
# Search keywords
# ---------------------------------------------------------------------------


def build_query_from_filename(filename_or_text: str | None) -> str:
    """Turn a media filename (or free text) into a search phrase.

    The directory part and a media container extension are dropped, then quality/codec
    tokens, brackets, underscores and dots are replaced by spaces.

    Example::

        >>> build_query_from_filename("[Group] Love_Story 1080p HEVC.mkv")
        'Group Love Story'

    Args:
        filename_or_text: A bare filename, a path, or a plain title.

    Returns:
        The cleaned phrase; ``""`` when nothing meaningful remains.
    """
    if not filename_or_text or not filename_or_text.strip():
        return ""
    name = posixpath.basename(filename_or_text.strip().replace("\\", "/"))
    name = _MEDIA_EXTENSION_RE.sub("", name)
    cleaned = _QUALITY_TOKEN_RE.sub(" ", name)
    cleaned = _BRACKET_RE.sub(" ", cleaned)
    cleaned = _SEPARATOR_RE.sub(" ", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def normalize_keyword(text: str | None) -> str:
    """Reduce ``text`` to letters, digits, ``_`` and ``-`` joined by ``+``.

    Used for URL path segments that expect ``+``-separated terms.
    """
    if not text or not text.strip():
        return ""
    kept = "".join(
        ch if ch.isalnum() or ch.isspace() or ch in "_-" else " " for ch in text.strip()
    )
    return _WHITESPACE_RE.sub(" ", kept).strip().replace(" ", "+")
