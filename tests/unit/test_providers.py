"""Unit tests for the DLsite and Hanime providers.

Tests cover:
- DLsite search page parsing: canonical URLs, dedupe, page order, cap
- DLsite work page parsing: cleaned title, studio, series, genres, date,
  voice actors and the slider images
- DLsite rating payload parsing
- DlsiteProvider falls back from the maniax to the pro storefront
- Hanime search and watch page parsing
- HanimeProvider over a page-capable client and over plain HTML
- try_fetch_detail() maps each extraction failure to its error kind
- the provider registry
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from hanimeta_scraper.core.exceptions import (
    ChallengeDetectedError,
    LayoutError,
    NetworkFetchError,
    UnknownProviderError,
)
from hanimeta_scraper.providers import dlsite, hanime
from hanimeta_scraper.providers.base import ExtractErrorKind, MediaProvider
from hanimeta_scraper.providers.dlsite import DlsiteProvider
from hanimeta_scraper.providers.hanime import HanimeProvider
from hanimeta_scraper.providers.registry import get_provider_class, list_providers, register
from tests.fakes import FakeProvider, build_metadata

IMG = "https://img.dlsite.jp/modpub/images2/work/doujin/RJ01235000"
MANIAX_URL = "https://www.dlsite.com/maniax/work/=/product_id/RJ01234567.html"
PRO_URL = "https://www.dlsite.com/pro/work/=/product_id/RJ01234567.html"

DLSITE_SEARCH_HTML = f"""
<ul id="search_result_list">
  <li>
    <a href="{MANIAX_URL}" title="Love Story &amp; Friends">
      <img src="//img.dlsite.jp/modpub/images2/work/doujin/RJ01235000/RJ01234567_img_sam.jpg">
    </a>
    <a href="/maniax/work/=/product_id/RJ01234567.html" title="duplicate link"></a>
  </li>
  <li><a href="/pro/work/=/product_id/VJ015443.html" title="Second Work"></a></li>
  <li><a href="/maniax/circle/profile/=/maker_id/RG1.html" title="circle page"></a></li>
</ul>
"""

DLSITE_DETAIL_HTML = f"""
<html><body>
<h1 id="work_name">【中文字幕】 Love Story (SUB)</h1>
<table id="work_maker">
  <tr><th>ブランド名</th><td><span class="maker_name"><a href="#">Studio Koi</a></span></td></tr>
</table>
<table id="work_outline">
  <tr><th>販売日</th><td><a href="#">2023年05月12日</a></td></tr>
  <tr><th>シリーズ名</th><td><a href="#">Love Series</a></td></tr>
  <tr><th>声優</th><td><a href="#">Aoi</a> / <a href="#">Mio</a></td></tr>
  <tr><th>ジャンル</th><td><div class="main_genre">
    <a href="#">Romance</a><a href="#">Drama</a><a href="#">Romance</a>
  </div></td></tr>
</table>
<div itemprop="description" class="work_parts_container">
  <p>First line<br>second line</p>
  <p>Another paragraph</p>
</div>
<div id="work_left">
  <div class="work_slider_container"><ul>
    <li class="slider_item active"><img src="{IMG}/RJ01234567_img_main.webp"></li>
  </ul></div>
  <div class="product-slider-data">
    <div data-src="{IMG}/RJ01234567_img_main.jpg" data-thumb="{IMG}/RJ01234567_img_main_240x240.jpg"></div>
    <div data-src="{IMG}/RJ01234567_img_smp1.webp" data-thumb="{IMG}/RJ01234567_img_smp1_240x240.jpg"></div>
  </div>
</div>
</body></html>
"""

HANIME_SEARCH_HTML = """
<div class="home-rows-videos-wrapper">
  <div title="[中文字幕] Love Story 1">
    <a class="overlay" href="https://hanime1.me/watch?v=12345"></a>
    <img src="https://vdownload.hembed.com/image/thumbnail/12345l.jpg">
  </div>
  <div title="Love Story 2">
    <a class="overlay" href="/watch?v=12346"></a>
    <img src="https://vdownload.hembed.com/image/thumbnail/12346l.jpg">
  </div>
  <div title="duplicate"><a class="overlay" href="https://hanime1.me/watch?v=12345"></a></div>
  <div title="A playlist"><a class="overlay" href="https://hanime1.me/playlist?list=9"></a></div>
</div>
"""

HANIME_DETAIL_HTML = """
<html><body>
<h3 id="shareBtn-title">[中文字幕] Love Story 1</h3>
<video poster="https://vdownload.hembed.com/image/thumbnail/12345l.jpg"></video>
<div class="video-caption-text">  An episode description.  </div>
<div class="single-video-tag"><a href="/search?tags[]=x">純愛<span>(120)</span></a></div>
<div class="single-video-tag"><a href="/search?tags[]=y">"巨乳"</a></div>
<div class="single-video-tag"><a href="/search?tags[]=x">純愛</a></div>
<div class="single-video-tag" data-toggle="modal"><a href="#">add tag</a></div>
<div id="video-like-form-wrapper">
  <div class="single-icon"><i class="material-icons">thumb_up</i>95%</div>
</div>
<a id="video-artist-name" href="#"> Studio Fun </a>
<div class="video-description-panel-hover">2023-05-12 觀看次數 1234</div>
</body></html>
"""

EMPTY_PAGE = "<html><body><p>Nothing to see here.</p></body></html>"


class _PageNet:
    """Page-capable network stand-in yielding one prepared page."""

    supports_pages = True

    def __init__(self, page: MagicMock | None) -> None:
        self.page = page
        self.opened: list[tuple[str, bool | None]] = []

    @asynccontextmanager
    async def open_page(self, url: str, *, for_detail: bool | None = None):
        self.opened.append((url, for_detail))
        yield self.page


def _page(html: str, wait_error: Exception | None = None) -> MagicMock:
    page = MagicMock(name="Page")
    page.content = AsyncMock(return_value=html)
    page.locator.return_value.first.wait_for = AsyncMock(side_effect=wait_error)
    return page


# ---------------------------------------------------------------------------
# DLsite
# ---------------------------------------------------------------------------


class TestDlsiteParsing:
    def test_parse_id(self) -> None:
        provider = DlsiteProvider(MagicMock())
        assert provider.parse_id("rj01234567") == "RJ01234567"
        assert provider.parse_id(PRO_URL) == "RJ01234567"
        assert provider.parse_id("Love Story") is None

    def test_search_hits_are_canonical_and_deduplicated(self) -> None:
        hits = dlsite.parse_search_html(DLSITE_SEARCH_HTML, "https://www.dlsite.com/maniax/fsr/", 10)

        assert [h.detail_url for h in hits] == [
            MANIAX_URL,
            "https://www.dlsite.com/maniax/work/=/product_id/VJ015443.html",
        ]
        assert hits[0].title == "Love Story & Friends"
        assert hits[0].cover_url == f"{IMG}/RJ01234567_img_sam.jpg"
        assert hits[1].title == "Second Work"
        assert hits[1].cover_url is None

    def test_search_respects_max_results(self) -> None:
        hits = dlsite.parse_search_html(DLSITE_SEARCH_HTML, "https://www.dlsite.com/maniax/fsr/", 1)
        assert len(hits) == 1

    def test_detail_page(self) -> None:
        meta = dlsite.parse_detail_html(DLSITE_DETAIL_HTML, MANIAX_URL)

        assert meta is not None
        assert meta.id == "RJ01234567"
        assert meta.title == "Love Story"
        assert meta.studios == ["Studio Koi"]
        assert meta.series == ["Love Series"]
        assert meta.genres == ["Romance", "Drama"]
        assert meta.release_date == datetime(2023, 5, 12, tzinfo=UTC)
        assert meta.year == 2023
        assert [(p.name, p.type, p.role) for p in meta.people] == [
            ("Aoi", "Actor", "声優"),
            ("Mio", "Actor", "声優"),
        ]
        assert "First line" in meta.description
        assert "Another paragraph" in meta.description
        assert meta.source_urls == [MANIAX_URL]

    def test_detail_images(self) -> None:
        meta = dlsite.parse_detail_html(DLSITE_DETAIL_HTML, MANIAX_URL)

        assert meta is not None
        assert meta.primary_image == f"{IMG}/RJ01234567_img_main.jpg"
        assert meta.backdrop_image == f"{IMG}/RJ01234567_img_main_240x240.jpg"
        assert meta.thumbnails == [f"{IMG}/RJ01234567_img_smp1.jpg"]

    def test_missing_work_page(self) -> None:
        assert dlsite.parse_detail_html(EMPTY_PAGE, MANIAX_URL) is None

    def test_non_dlsite_url(self) -> None:
        assert dlsite.parse_detail_html(DLSITE_DETAIL_HTML, "https://example.com/page") is None

    @pytest.mark.parametrize(
        ("payload", "expected"),
        [
            ({"RJ01234567": {"rate_average_2dp": 4.57}}, 4.57),
            ({"RJ01234567": {"rate_average_2dp": 4}}, 4.0),
            ({"RJ01234567": {"rate_average_2dp": None}}, None),
            ({"RJ01234567": {"rate_average_2dp": True}}, None),
            ({"RJ99999999": {"rate_average_2dp": 3.0}}, None),
            ([], None),
        ],
    )
    def test_rating(self, payload: object, expected: float | None) -> None:
        assert dlsite.parse_rating(payload, "RJ01234567") == expected


@pytest.mark.asyncio
class TestDlsiteProvider:
    async def test_search_builds_keyword_url(self) -> None:
        net = AsyncMock()
        net.get_html.return_value = DLSITE_SEARCH_HTML
        provider = DlsiteProvider(net)

        hits = await provider.search("Love Story!", 5)

        assert len(hits) == 2
        net.get_html.assert_awaited_once_with(
            "https://www.dlsite.com/maniax/fsr/=/keyword/Love+Story/work_type_category[0]/movie/"
        )

    async def test_blank_keyword_skips_network(self) -> None:
        net = AsyncMock()
        assert await DlsiteProvider(net).search("!!!", 5) == []
        net.get_html.assert_not_awaited()

    async def test_falls_back_to_pro_storefront(self) -> None:
        async def get_html(url: str) -> str:
            if "/maniax/" in url:
                raise NetworkFetchError("HTTP 404", url=url, status_code=404)
            return DLSITE_DETAIL_HTML

        net = AsyncMock()
        net.get_html.side_effect = get_html
        net.get_json.return_value = {"RJ01234567": {"rate_average_2dp": 4.5}}
        provider = DlsiteProvider(net)

        meta = await provider.fetch_detail_page(provider.build_detail_url("RJ01234567"))

        assert meta is not None
        assert meta.rating == 4.5
        assert meta.source_urls == [PRO_URL, MANIAX_URL]
        ajax_url = net.get_json.call_args.args[0]
        assert ajax_url == "https://www.dlsite.com/pro/product/info/ajax?product_id=RJ01234567"

    async def test_rating_failure_keeps_record(self) -> None:
        net = AsyncMock()
        net.get_html.return_value = DLSITE_DETAIL_HTML
        net.get_json.side_effect = NetworkFetchError("invalid JSON")

        meta = await DlsiteProvider(net).fetch_detail_page(MANIAX_URL)

        assert meta is not None
        assert meta.rating is None

    async def test_both_storefronts_missing_is_not_found(self) -> None:
        net = AsyncMock()
        net.get_html.side_effect = lambda url: _raise(NetworkFetchError("HTTP 404", url=url, status_code=404))

        result = await DlsiteProvider(net).try_fetch_detail(MANIAX_URL)

        assert result.metadata is None
        assert result.error.kind is ExtractErrorKind.NOT_FOUND
        assert net.get_html.await_count == 2


def _raise(exc: Exception):
    raise exc


# ---------------------------------------------------------------------------
# Hanime
# ---------------------------------------------------------------------------


class TestHanimeParsing:
    def test_parse_id(self) -> None:
        provider = HanimeProvider(MagicMock())
        assert provider.parse_id("https://hanime1.me/watch?v=12345") == "12345"
        assert provider.parse_id("12345") == "12345"
        assert provider.parse_id("12") is None
        assert provider.parse_id("Love Story") is None

    def test_search_hits(self) -> None:
        hits = hanime.parse_search_html(HANIME_SEARCH_HTML, 10)

        assert [h.detail_url for h in hits] == [
            "https://hanime1.me/watch?v=12345",
            "https://hanime1.me/watch?v=12346",
        ]
        assert hits[0].title == "[中文字幕] Love Story 1"
        assert hits[1].cover_url == "https://vdownload.hembed.com/image/thumbnail/12346l.jpg"

    def test_search_respects_max_results(self) -> None:
        assert len(hanime.parse_search_html(HANIME_SEARCH_HTML, 1)) == 1

    def test_detail_page(self) -> None:
        meta = hanime.parse_detail_html(HANIME_DETAIL_HTML, "https://hanime1.me/watch?v=12345")

        assert meta is not None
        assert meta.id == "12345"
        assert meta.title == "Love Story 1"
        assert meta.original_title == "Love Story 1"
        assert meta.description == "An episode description."
        assert meta.genres == ["純愛", "巨乳"]
        assert meta.rating == pytest.approx(4.75)
        assert meta.studios == ["Studio Fun"]
        assert meta.release_date == datetime(2023, 5, 12, tzinfo=UTC)
        assert meta.year == 2023
        assert meta.primary_image == "https://vdownload.hembed.com/image/thumbnail/12345l.jpg"
        assert meta.thumbnails == []

    def test_removed_video(self) -> None:
        assert hanime.parse_detail_html(EMPTY_PAGE, "https://hanime1.me/watch?v=1") is None


@pytest.mark.asyncio
class TestHanimeProvider:
    async def test_search_over_pages(self) -> None:
        net = _PageNet(_page(HANIME_SEARCH_HTML))

        hits = await HanimeProvider(net).search("Love Story", 10)

        assert len(hits) == 2
        assert net.opened == [(hanime.search_url("Love Story"), False)]

    async def test_search_without_result_cards(self) -> None:
        net = _PageNet(_page("<html></html>", PlaywrightTimeoutError("Timeout 5000ms exceeded")))
        assert await HanimeProvider(net).search("nothing", 10) == []

    async def test_search_page_failure_raises(self) -> None:
        with pytest.raises(NetworkFetchError):
            await HanimeProvider(_PageNet(None)).search("Love Story", 10)

    async def test_search_over_plain_html(self) -> None:
        net = AsyncMock()
        net.supports_pages = False
        net.get_html.return_value = HANIME_SEARCH_HTML

        hits = await HanimeProvider(net).search("Love Story", 10)

        assert len(hits) == 2
        net.get_html.assert_awaited_once_with(hanime.search_url("Love Story"))

    async def test_detail_over_pages(self) -> None:
        url = "https://hanime1.me/watch?v=12345"
        net = _PageNet(_page(HANIME_DETAIL_HTML))

        meta = await HanimeProvider(net).fetch_detail_page(url)

        assert meta is not None
        assert meta.title == "Love Story 1"
        assert net.opened == [(url, True)]

    async def test_detail_page_failure_is_network_error(self) -> None:
        result = await HanimeProvider(_PageNet(None)).try_fetch_detail("https://hanime1.me/watch?v=1")
        assert result.error.kind is ExtractErrorKind.NETWORK


# ---------------------------------------------------------------------------
# Contained detail fetch
# ---------------------------------------------------------------------------


URL = "https://fake.test/work/RJ1"


@pytest.mark.asyncio
class TestTryFetchDetail:
    @pytest.mark.parametrize(
        ("outcome", "kind"),
        [
            (None, ExtractErrorKind.NOT_FOUND),
            (NetworkFetchError("HTTP 404", url=URL, status_code=404), ExtractErrorKind.NOT_FOUND),
            (NetworkFetchError("HTTP 503", url=URL, status_code=503), ExtractErrorKind.NETWORK),
            (NetworkFetchError("timeout", url=URL), ExtractErrorKind.NETWORK),
            (ChallengeDetectedError("challenge page served", url=URL), ExtractErrorKind.CHALLENGE),
            (LayoutError("no title", url=URL), ExtractErrorKind.LAYOUT),
            (ValueError("unexpected markup"), ExtractErrorKind.LAYOUT),
        ],
    )
    async def test_error_kinds(self, outcome: object, kind: ExtractErrorKind) -> None:
        result = await FakeProvider(details={URL: outcome}).try_fetch_detail(URL)

        assert result.metadata is None
        assert result.not_found is (kind is ExtractErrorKind.NOT_FOUND)
        assert result.error is not None
        assert result.error.kind is kind
        assert result.error.url == URL

    async def test_success(self) -> None:
        provider = FakeProvider(details={URL: build_metadata("RJ1", title="One")})

        result = await provider.try_fetch_detail(URL)

        assert result.metadata is not None
        assert not result.not_found
        assert result.error is None
        assert (await provider.fetch_detail(URL)).title == "One"

    async def test_cancellation_propagates(self) -> None:
        provider = FakeProvider(details={URL: build_metadata("RJ1")}, delays={URL: 10})
        task = asyncio.create_task(provider.try_fetch_detail(URL))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_builtin_providers_are_registered(self) -> None:
        assert list_providers() == [
            {"key": "dlsite", "name": "DLsite", "requiresBrowser": False},
            {"key": "hanime", "name": "Hanime", "requiresBrowser": True},
        ]

    def test_lookup_is_case_insensitive(self) -> None:
        assert get_provider_class("DLsite") is DlsiteProvider
        assert get_provider_class("hanime") is HanimeProvider

    def test_unknown_provider(self) -> None:
        with pytest.raises(UnknownProviderError):
            get_provider_class("javdb")

    def test_provider_without_key_is_rejected(self) -> None:
        class Nameless(FakeProvider):
            key = ""

        with pytest.raises(AttributeError):
            register(Nameless)

    def test_fake_provider_is_not_registered(self) -> None:
        assert issubclass(FakeProvider, MediaProvider)
        with pytest.raises(UnknownProviderError):
            get_provider_class("fake")
