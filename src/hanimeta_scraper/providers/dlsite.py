"""DLsite provider.

DLsite renders work pages server-side, so plain HTTP plus BeautifulSoup is
enough.  Product codes are ``RJ``/``VJ`` followed by digits.  A work lives
under either the ``maniax`` or the ``pro`` storefront; detail fetches try
``maniax`` first and fall back to ``pro``.  The star rating is not in the
page HTML and comes from the ``product/info/ajax`` JSON endpoint.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from bs4 import BeautifulSoup, Tag

from hanimeta_scraper.core.exceptions import ExtractionError
from hanimeta_scraper.core.metadata import ContentMetadata, SearchHit
from hanimeta_scraper.parsing.dates import parse_japanese_date
from hanimeta_scraper.parsing.ids import (
    DLSITE_BASE_URL,
    dlsite_detail_url,
    dlsite_site_from_url,
    parse_dlsite_id,
    parse_dlsite_id_from_url,
)
from hanimeta_scraper.parsing.images import pick_jpg
from hanimeta_scraper.parsing.people import is_staff_role, map_staff_role
from hanimeta_scraper.parsing.richtext import RichTextOptions, extract_rich_text
from hanimeta_scraper.parsing.text import abs_url, clean, normalize_keyword
from hanimeta_scraper.parsing.title_cleaner import clean_title
from hanimeta_scraper.providers.base import MediaProvider
from hanimeta_scraper.providers.registry import register

logger = logging.getLogger(__name__)

SEARCH_URL_TEMPLATE = f"{DLSITE_BASE_URL}/maniax/fsr/=/keyword/{{keyword}}/work_type_category[0]/movie/"
RATING_URL_TEMPLATE = f"{DLSITE_BASE_URL}/{{site}}/product/info/ajax?product_id={{product_id}}"

DESCRIPTION_OPTIONS = RichTextOptions(max_paragraphs=10, max_chars=1600)

_STUDIO_HEADERS: tuple[str, ...] = ("ブランド名", "サークル名")


# ---------------------------------------------------------------------------
# Pure parsing helpers
# ---------------------------------------------------------------------------


def parse_search_html(html: str, base_url: str, max_results: int) -> list[SearchHit]:
    """Extract product hits from a DLsite search results page.

    Hits are deduplicated by canonical detail URL and returned in page order.
    """
    soup = BeautifulSoup(html, "html.parser")
    hits: list[SearchHit] = []
    seen: set[str] = set()
    for anchor in soup.select('#search_result_list li a[href*="/work/=/product_id/"]'):
        absolute = abs_url(anchor.get("href"), base_url)
        content_id = parse_dlsite_id_from_url(absolute)
        if not content_id:
            continue
        detail_url = dlsite_detail_url(content_id)
        if detail_url.casefold() in seen:
            continue
        seen.add(detail_url.casefold())

        img = anchor.select_one("img[src]")
        cover = abs_url(img.get("src"), base_url) if img is not None else ""
        hits.append(
            SearchHit(
                detail_url=detail_url,
                title=clean(anchor.get("title")) or None,
                cover_url=cover or None,
            )
        )
        if max_results > 0 and len(hits) >= max_results:
            break
    return hits


def _outline_rows(soup: BeautifulSoup, table_id: str) -> list[tuple[str, Tag]]:
    rows = []
    for tr in soup.select(f"table#{table_id} tr"):
        th = tr.find("th")
        td = tr.find("td")
        if th is None or td is None:
            continue
        rows.append((clean(th.get_text(" ")), td))
    return rows


def _cell_text(td: Tag) -> str:
    """Text of the first link in a cell, else of the whole cell."""
    link = td.find("a")
    return clean((link or td).get_text(" "))


def _find_cell(rows: list[tuple[str, Tag]], *header_fragments: str) -> Tag | None:
    for header, td in rows:
        if any(fragment in header for fragment in header_fragments):
            return td
    return None


def parse_rating(payload: Any, content_id: str) -> float | None:
    """Read ``rate_average_2dp`` (already 0-5) for ``content_id`` from the ajax payload."""
    if not isinstance(payload, dict):
        return None
    entry = payload.get(content_id)
    if not isinstance(entry, dict):
        return None
    value = entry.get("rate_average_2dp")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_detail_html(html: str, detail_url: str) -> ContentMetadata | None:
    """Parse a DLsite work page.

    Returns ``None`` when the page lacks the title, outline and maker tables
    together, which is how DLsite renders missing or withdrawn works.
    """
    content_id = parse_dlsite_id_from_url(detail_url)
    if not content_id:
        return None

    soup = BeautifulSoup(html, "html.parser")
    title_node = soup.select_one("h1#work_name")
    if (
        title_node is None
        and soup.select_one("table#work_outline") is None
        and soup.select_one("table#work_maker") is None
    ):
        return None

    meta = ContentMetadata(id=content_id)
    meta.add_source_url(detail_url)

    if title_node is not None:
        meta.title = clean(title_node.get_text(" ")) or None

    description_root = soup.select_one('div[itemprop="description"].work_parts_container')
    meta.description = extract_rich_text(description_root, DESCRIPTION_OPTIONS) or None

    maker_rows = _outline_rows(soup, "work_maker")
    studio_cell = _find_cell(maker_rows, *_STUDIO_HEADERS)
    if studio_cell is not None:
        studio = _cell_text(studio_cell)
        if studio:
            meta.studios.append(studio)

    outline_rows = _outline_rows(soup, "work_outline")
    series_cell = _find_cell(outline_rows, "シリーズ")
    if series_cell is not None:
        series = _cell_text(series_cell)
        if series:
            meta.series.append(series)

    genre_cell = _find_cell(outline_rows, "ジャンル")
    if genre_cell is not None:
        for link in genre_cell.select("div.main_genre a"):
            genre = clean(link.get_text(" "))
            if genre and genre not in meta.genres:
                meta.genres.append(genre)

    date_cell = _find_cell(outline_rows, "販売日")
    if date_cell is not None:
        meta.set_release_date(parse_japanese_date(_cell_text(date_cell)))

    for header, td in outline_rows:
        if not header or not is_staff_role(header):
            continue
        links = td.find_all("a")
        names = [clean(a.get_text(" ")) for a in links] if links else [clean(td.get_text(" "))]
        person_type = map_staff_role(header)
        for name in names:
            meta.add_person(name, person_type, header)

    _parse_images(soup, meta, detail_url)

    if meta.title:
        meta.title = clean_title(meta.title) or meta.title
    if meta.original_title:
        meta.original_title = clean_title(meta.original_title) or meta.original_title
    return meta


def _parse_images(soup: BeautifulSoup, meta: ContentMetadata, detail_url: str) -> None:
    main_img = soup.select_one(
        "#work_left div.work_slider_container li.slider_item.active img"
    )
    if main_img is not None:
        picked = pick_jpg(main_img.get("src"), main_img.get("srcset"), detail_url)
        if picked:
            meta.primary_image = picked
            meta.backdrop_image = picked

    slider_data = soup.select_one("#work_left div.product-slider-data")
    if slider_data is not None:
        first = slider_data.find("div")
        first_thumb = abs_url(first.get("data-thumb"), detail_url) if first is not None else ""
        if first_thumb:
            meta.backdrop_image = first_thumb
            meta.add_thumbnail(first_thumb)

        for node in slider_data.select("div[data-src], div[data-thumb]"):
            url = abs_url(node.get("data-src"), detail_url) or abs_url(node.get("data-thumb"), detail_url)
            meta.add_thumbnail(url)

    meta.prune_thumbnails()


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


@register
class DlsiteProvider(MediaProvider):
    """DLsite over plain HTTP."""

    key = "dlsite"
    name = "DLsite"
    requires_browser = False

    def parse_id(self, text: str) -> str | None:
        return parse_dlsite_id(text)

    def build_detail_url(self, content_id: str) -> str:
        return dlsite_detail_url(content_id, site="maniax")

    async def search(self, keyword: str, max_results: int) -> list[SearchHit]:
        normalized = normalize_keyword(keyword)
        if not normalized:
            return []
        search_url = SEARCH_URL_TEMPLATE.format(keyword=quote(normalized, safe="+"))
        html = await self.net.get_html(search_url)
        hits = parse_search_html(html, search_url, max_results)
        logger.info("providers: dlsite search %r returned %d hits", keyword, len(hits))
        return hits

    async def fetch_detail_page(self, detail_url: str) -> ContentMetadata | None:
        content_id = parse_dlsite_id_from_url(detail_url)
        if content_id:
            candidates = [dlsite_detail_url(content_id, "maniax"), dlsite_detail_url(content_id, "pro")]
        else:
            candidates = [detail_url]

        last_error: ExtractionError | None = None
        for url in candidates:
            try:
                html = await self.net.get_html(url)
            except ExtractionError as exc:
                logger.debug("providers: dlsite candidate %s failed: %s", url, exc)
                last_error = exc
                continue
            meta = parse_detail_html(html, url)
            if meta is None:
                continue
            meta.rating = await self._fetch_rating(meta.id, url)
            meta.add_source_url(detail_url)
            return meta

        if last_error is not None:
            last_error.provider = self.key
            raise last_error
        return None

    async def _fetch_rating(self, content_id: str, detail_url: str) -> float | None:
        ajax_url = RATING_URL_TEMPLATE.format(
            site=dlsite_site_from_url(detail_url),
            product_id=quote(content_id),
        )
        try:
            payload = await self.net.get_json(
                ajax_url,
                {"X-Requested-With": "XMLHttpRequest", "Referer": detail_url},
            )
        except ExtractionError as exc:
            logger.debug("providers: dlsite rating fetch failed for %s: %s", content_id, exc)
            return None
        return parse_rating(payload, content_id)
