"""Provider-agnostic metadata schema.

``ContentMetadata`` is the record every provider produces and the API
returns.  Field names serialise in camelCase (``originalTitle``,
``primaryImage``, ``sourceUrls`` …) because downstream media-library
plugins bind to those names.

A record is assembled by exactly one provider during a detail fetch; after
it is handed to the orchestrator or the cache it is treated as immutable.
Backfilling from a search hit produces a copy (:meth:`ContentMetadata.with_hit_fallbacks`).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hanimeta_scraper.parsing.images import url_eq, webp_to_jpg


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> dict[str, Any]:
        """Return a JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class Person(_CamelModel):
    """One credited contributor.

    Attributes:
        name: Display name as printed on the source page.
        type: Normalised role (``Actor``, ``Director``, ``Writer``,
            ``Producer``, ``Composer``, ``Illustrator``, ``Editor``) or the
            raw source label when no mapping exists.  Serialised as
            ``normalizedType``.
        role: Source-language role label (e.g. ``"声優"``), serialised as
            ``originalRole``.
    """

    name: str
    type: str = Field(alias="normalizedType")
    role: Optional[str] = Field(default=None, alias="originalRole")


class ContentMetadata(_CamelModel):
    """Canonical metadata record for one content item."""

    id: str = ""
    title: Optional[str] = None
    original_title: Optional[str] = None
    description: Optional[str] = None
    rating: Optional[float] = None
    """0.0 to 5.0 regardless of the source's native scale."""
    release_date: Optional[datetime] = None
    year: Optional[int] = None
    studios: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    series: list[str] = Field(default_factory=list)
    people: list[Person] = Field(default_factory=list)
    primary_image: Optional[str] = None
    backdrop_image: Optional[str] = None
    thumbnails: list[str] = Field(default_factory=list)
    source_urls: list[str] = Field(default_factory=list)

    # ------------------------------------------------------------------
    # Construction helpers (used by providers while building a record)
    # ------------------------------------------------------------------

    def add_person(self, name: str | None, person_type: str, role: str | None = None) -> None:
        """Append a person unless the (name, type) pair is already present."""
        if not name or not name.strip():
            return
        name = name.strip()
        for existing in self.people:
            if (
                existing.name.casefold() == name.casefold()
                and existing.type.casefold() == person_type.casefold()
            ):
                return
        self.people.append(Person(name=name, type=person_type, role=role))

    def add_thumbnail(self, url: str | None) -> None:
        """Append a thumbnail (``.webp`` rewritten to ``.jpg``), skipping duplicates."""
        if not url or not url.strip():
            return
        url = webp_to_jpg(url.strip())
        if any(url_eq(url, existing) for existing in self.thumbnails):
            return
        self.thumbnails.append(url)

    def add_source_url(self, url: str | None) -> None:
        if url and url not in self.source_urls:
            self.source_urls.append(url)

    def set_release_date(self, value: datetime | None) -> None:
        """Set ``release_date`` and derive ``year`` from it."""
        if value is None:
            return
        self.release_date = value
        self.year = value.year

    def prune_thumbnails(self) -> None:
        """Drop thumbnails equal to the primary or backdrop image."""
        self.thumbnails = [
            t
            for t in self.thumbnails
            if not url_eq(t, self.primary_image) and not url_eq(t, self.backdrop_image)
        ]

    # ------------------------------------------------------------------
    # Post-fetch enrichment
    # ------------------------------------------------------------------

    def with_hit_fallbacks(self, hit: SearchHit) -> ContentMetadata:
        """Return a copy with empty title/primary image filled from ``hit``.

        Detail-page values always win; the original record is left untouched.
        A backfilled primary image is removed from the copy's thumbnails.
        """
        update: dict[str, Any] = {}
        if not (self.title and self.title.strip()) and hit.title:
            update["title"] = hit.title
        if not (self.primary_image and self.primary_image.strip()) and hit.cover_url:
            update["primary_image"] = hit.cover_url
        if not update:
            return self
        filled = self.model_copy(update=update, deep=True)
        if "primary_image" in update:
            filled.prune_thumbnails()
        return filled


@dataclass(frozen=True)
class SearchHit:
    """Lightweight search result awaiting detail enrichment.

    Attributes:
        detail_url: Absolute URL of the item's detail page.
        title: Title as shown on the results page, if any.
        cover_url: Cover image shown on the results page, if any.
    """

    detail_url: str
    title: str | None = None
    cover_url: str | None = None
