"""Image URL selection and normalisation."""

from __future__ import annotations

from urllib.parse import urljoin


def url_eq(a: str | None, b: str | None) -> bool:
    """Case-insensitive, whitespace-trimmed URL equality.  Empty never matches."""
    if not a or not b or not a.strip() or not b.strip():
        return False
    return a.strip().casefold() == b.strip().casefold()


def webp_to_jpg(url: str) -> str:
    """Rewrite a ``.webp`` suffix to ``.jpg``; other URLs pass through."""
    if url.lower().endswith(".webp"):
        return url[: url.rfind(".")] + ".jpg"
    return url


def _absolute(candidate: str, base_url: str) -> str:
    if candidate.startswith("//"):
        return "https:" + candidate
    return urljoin(base_url, candidate)


def _jpg_candidate(candidate: str, base_url: str) -> str:
    candidate = candidate.strip()
    if not candidate:
        return ""
    url = _absolute(candidate, base_url)
    lowered = url.lower()
    if lowered.endswith(".jpg"):
        return url
    if lowered.endswith(".webp"):
        return webp_to_jpg(url)
    return ""


def pick_jpg(src: str | None, srcset: str | None, base_url: str) -> str:
    """Pick a JPEG URL from an ``<img>``'s ``src`` and ``srcset``.

    ``src`` is preferred; otherwise the first ``srcset`` entry whose URL ends
    in ``.jpg`` or ``.webp`` wins.  ``.webp`` URLs are rewritten to ``.jpg``
    since both sources serve a JPEG twin beside every WebP.

    Args:
        src: The ``src`` attribute (may be relative or protocol-relative).
        srcset: The ``srcset`` attribute (``"url 1x, url 2x"``).
        base_url: Page URL used to resolve relative candidates.

    Returns:
        An absolute JPEG URL, or ``""`` when no candidate qualifies.
    """
    picked = _jpg_candidate(src or "", base_url)
    if picked:
        return picked
    for part in (srcset or "").split(","):
        part = part.strip()
        if not part:
            continue
        picked = _jpg_candidate(part.split(" ")[0], base_url)
        if picked:
            return picked
    return ""
