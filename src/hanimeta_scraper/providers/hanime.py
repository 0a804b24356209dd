"""Hanime provider.

hanime1.me assembles its search results client-side and sits behind an
anti-bot layer, so this provider prefers a browser-backed client.  With a
page-capable client the search waits briefly for result cards; with a
plain HTTP client it parses whatever HTML the server returns.

Video IDs are the numeric ``v`` parameter of ``/watch`` URLs.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import quote

from bs4 import BeautifulSoup, NavigableString, Tag
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from hanimeta_scraper.core.exceptions import NetworkFetchError
from hanimeta_scraper.core.metadata import ContentMetadata, SearchHit
from hanimeta_scraper.parsing.dates import parse_iso_date
from hanimeta_scraper.parsing.ids import (
    HANIME_BASE_URL,
    hanime_detail_url,
    parse_hanime_id,
    parse_hanime_id_from_url,
)
from hanimeta_scraper.parsing.text import abs_url, clean, clean_tag
from hanimeta_scraper.providers.base import MediaProvider
from hanimeta_scraper.providers.registry import register

logger = logging.getLogger(__name__)

SEARCH_SORT = "最新上市"
SEARCH_RESULT_SELECTOR = "div[title] a.overlay"
SEARCH_WAIT_TIMEOUT_MS = 5_000

_FIRST_BRACKET_RE = re.compile(r"\[.*?\]")
_PERCENT_RE = re.compile(r"(\d+)%")


def search_url(keyword: str) -> str:
    return f"{HANIME_BASE_URL}/search?query={quote(keyword)}&sort={quote(SEARCH_SORT)}"


def _own_text(node: Tag) -> str:
    """Concatenated text nodes that are direct children of ``node``."""
    return "".join(str(child) for child in node.children if isinstance(child, NavigableString))


# ---------------------------------------------------------------------------
# Pure parsing helpers
# ---------------------------------------------------------------------------


def parse_search_html(html: str, max_results: int) -> list[SearchHit]:
    """Extract watch-page hits from a search results page, in page order."""
    soup = BeautifulSoup(html, "html.parser")
    hits: list[SearchHit] = []
    seen: set[str] = set()
    watch_prefix = f"{HANIME_BASE_URL}/watch".casefold()

    for anchor in soup.select("a.overlay[href]"):
        detail_url = abs_url(anchor.get("href"), HANIME_BASE_URL)
        if not detail_url.casefold().startswith(watch_prefix):
            continue
        if detail_url.casefold() in seen:
            continue
        seen.add(detail_url.casefold())

        container = anchor.find_parent("div", attrs={"title": True})
        title = container.get("title") if container is not None else anchor.get("title")
        cover = ""
        if container is not None:
            img = container.select_one("img[src*='/thumbnail/']") or container.select_one("img[src]")
            if img is not None:
                cover = abs_url(img.get("src"), HANIME_BASE_URL)

        hits.append(SearchHit(detail_url=detail_url, title=clean(title) or None, cover_url=cover or None))
        if max_results > 0 and len(hits) >= max_results:
            break
    return hits


def parse_detail_html(html: str, detail_url: str) -> ContentMetadata | None:
    """Parse a watch page.

    Returns ``None`` when the page has no title, no poster and no tags,
    which is what a removed or unknown video renders as.
    """
    soup = BeautifulSoup(html, "html.parser")
    title_node = soup.select_one("h3#shareBtn-title")
    video = soup.select_one("video[poster]")
    if title_node is None and video is None and not soup.select("div.single-video-tag"):
        return None

    meta = ContentMetadata(id=parse_hanime_id_from_url(detail_url) or "")
    meta.add_source_url(detail_url)

    if title_node is not None:
        title = _FIRST_BRACKET_RE.sub("", title_node.get_text(), count=1).strip()
        meta.original_title = title or None
        meta.title = title or None

    caption = soup.select_one("div.video-caption-text")
    if caption is not None:
        meta.description = caption.get_text().strip() or None

    seen_tags: set[str] = set()
    for tag_div in soup.select("div.single-video-tag:not([data-toggle]):not([data-target])"):
        link = tag_div.find("a", recursive=False)
        if link is not None:
            raw = _own_text(link) or link.get_text()
        else:
            raw = tag_div.get_text()
        tag = clean_tag(raw)
        if tag and tag.casefold() not in seen_tags:
            seen_tags.add(tag.casefold())
            meta.genres.append(tag)

    like = soup.select_one("div#video-like-form-wrapper div.single-icon")
    if like is not None:
        match = _PERCENT_RE.search(_own_text(like))
        if match:
            meta.rating = int(match.group(1)) / 20.0

    artist = soup.select_one("a#video-artist-name")
    if artist is not None:
        studio = artist.get_text().strip()
        if studio:
            meta.studios.append(studio)

    panel = soup.select_one("div.video-description-panel-hover")
    if panel is not None:
        meta.set_release_date(parse_iso_date(panel.get_text(" ")))

    if video is not None:
        poster = (video.get("poster") or "").strip()
        if poster:
            meta.primary_image = abs_url(poster, detail_url)

    meta.prune_thumbnails()
    return meta


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


@register
class HanimeProvider(MediaProvider):
    """hanime1.me, rendered through Playwright when available."""

    key = "hanime"
    name = "Hanime"
    requires_browser = True

    def parse_id(self, text: str) -> str | None:
        return parse_hanime_id(text)

    def build_detail_url(self, content_id: str) -> str:
        return hanime_detail_url(content_id)

    async def search(self, keyword: str, max_results: int) -> list[SearchHit]:
        url = search_url(keyword)
        if not self.net.supports_pages:
            html = await self.net.get_html(url)
            return parse_search_html(html, max_results)

        async with self.net.open_page(url, for_detail=False) as page:
            if page is None:
                raise NetworkFetchError(f"failed to open search page {url}", url=url, provider=self.key)
            try:
                await page.locator(SEARCH_RESULT_SELECTOR).first.wait_for(timeout=SEARCH_WAIT_TIMEOUT_MS)
            except PlaywrightTimeoutError:
                logger.info("providers: hanime search %r has no results", keyword)
                return []
            html = await page.content()

        hits = parse_search_html(html, max_results)
        logger.info("providers: hanime search %r returned %d hits", keyword, len(hits))
        return hits

    async def fetch_detail_page(self, detail_url: str) -> ContentMetadata | None:
        if not self.net.supports_pages:
            return parse_detail_html(await self.net.get_html(detail_url), detail_url)

        async with self.net.open_page(detail_url, for_detail=True) as page:
            if page is None:
                raise NetworkFetchError(
                    f"failed to open detail page {detail_url}", url=detail_url, provider=self.key
                )
            html = await page.content()
        return parse_detail_html(html, detail_url)
