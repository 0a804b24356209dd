"""Date parsing for Japanese and ISO-formatted page text."""

from __future__ import annotations

import re
from datetime import UTC, datetime

_JP_DATE_RE = re.compile(r"(\d{4})年(\d{1,2})月(\d{1,2})日")
_ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def parse_japanese_date(text: str | None) -> datetime | None:
    """Parse the first ``YYYY年M月D日`` occurrence in ``text`` as a UTC midnight.

    Returns ``None`` when there is no match or the date is impossible
    (e.g. ``2024年2月30日``).
    """
    if not text:
        return None
    match = _JP_DATE_RE.search(text)
    if match is None:
        return None
    year, month, day = (int(g) for g in match.groups())
    try:
        return datetime(year, month, day, tzinfo=UTC)
    except ValueError:
        return None


def parse_iso_date(text: str | None) -> datetime | None:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC.

    A bare ``YYYY-MM-DD`` embedded in longer text is also accepted.
    """
    if not text or not text.strip():
        return None
    candidate = text.strip()
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        match = _ISO_DATE_RE.search(candidate)
        if match is None:
            return None
        try:
            parsed = datetime.fromisoformat(match.group(0))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed

