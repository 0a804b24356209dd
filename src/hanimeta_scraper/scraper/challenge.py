"""Anti-bot interstitial detection.

Three tiers, checked in order of confidence:

1. Definitive signatures: markup that only exists on challenge pages.
2. Combined indicators: at least two of a challenge phrase in the body,
   a Ray ID, challenge error DOM.
3. Weak heuristic: a very short page saying "Just a moment" that mentions
   Cloudflare and a Ray ID with almost no body text.

A real content page that merely mentions "cloudflare" in a script URL
trips none of these.
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup

from hanimeta_scraper.scraper.config import (
    CHALLENGE_DOM_HINTS,
    CHALLENGE_PHRASES,
    CHALLENGE_URL_HINTS,
    DEFINITIVE_CHALLENGE_SIGNATURES,
    SUSPICIOUS_BODY_MAX_CHARS,
    SUSPICIOUS_PAGE_MAX_CHARS,
)

logger = logging.getLogger(__name__)


def _body_text(soup: BeautifulSoup) -> str:
    body = soup.body
    if body is None:
        return ""
    return body.get_text(" ", strip=True)


def has_definitive_signature(html: str) -> bool:
    return any(signature in html for signature in DEFINITIVE_CHALLENGE_SIGNATURES)


def has_combined_indicators(html: str) -> bool:
    """``True`` when at least two independent challenge indicators are present."""
    soup = BeautifulSoup(html, "html.parser")
    body_text = _body_text(soup).casefold()

    has_phrase = any(phrase.casefold() in body_text for phrase in CHALLENGE_PHRASES)
    has_ray_id = "ray id:" in body_text or "data-ray" in html.casefold()
    has_dom = (
        soup.select_one("div#challenge-error-title") is not None
        or soup.select_one("div.cf-error-details") is not None
    )
    return sum((has_phrase, has_ray_id, has_dom)) >= 2


def has_suspicious_pattern(html: str) -> bool:
    if len(html) > SUSPICIOUS_PAGE_MAX_CHARS:
        return False
    body_text = _body_text(BeautifulSoup(html, "html.parser"))
    lowered = body_text.casefold()
    return (
        "just a moment" in lowered
        and "cloudflare" in html.casefold()
        and "ray id:" in lowered
        and len(body_text) < SUSPICIOUS_BODY_MAX_CHARS
    )


def is_challenge_page(html: str | None, url: str | None = None) -> bool:
    """Return ``True`` if ``html`` is an anti-bot interstitial.

    Args:
        html: Full page source.
        url: Page URL, used for logging only.
    """
    if not html:
        return False
    if has_definitive_signature(html):
        logger.debug("challenge: definitive signature on %s", url)
        return True
    if has_combined_indicators(html):
        logger.debug("challenge: combined indicators on %s", url)
        return True
    if has_suspicious_pattern(html):
        logger.debug("challenge: suspicious short page on %s", url)
        return True
    return False


def url_has_challenge_hint(
    url: str | None, hints: tuple[str, ...] = CHALLENGE_URL_HINTS
) -> bool:
    """``True`` if a (final, post-redirect) URL points at a challenge path."""
    if not url:
        return False
    lowered = url.casefold()
    return any(hint.casefold() in lowered for hint in hints)


def dom_has_challenge_hint(
    html: str | None, hints: tuple[str, ...] = CHALLENGE_DOM_HINTS
) -> bool:
    """``True`` if the page matches a configured DOM hint or the detector."""
    if not html:
        return False
    lowered = html.casefold()
    if any(hint.casefold() in lowered for hint in hints):
        return True
    return is_challenge_page(html)
