"""Removal of subtitle/version annotations from scraped titles."""

from __future__ import annotations

import re

_LANGUAGE_LABELS: tuple[str, ...] = (
    "中文字幕", "繁体字幕", "简体字幕", "英文字幕", "日文字幕", "Korean字幕", "한국어자막", "중국어자막",
    "中文", "繁体", "简体", "英文", "日文", "Korean", "한국어", "중국어",
)

_RELEASE_LABELS: tuple[str, ...] = (
    "字幕", "SUB", "DUB", "RAW", "无修正", "有修正", "修正版", "无码", "有码",
)

#: (open, close) bracket pairs annotations appear in.
_BRACKETS: tuple[tuple[str, str], ...] = (("[", "]"), ("(", ")"), ("【", "】"), ("＜", "＞"))


def _annotation_pattern(labels: tuple[str, ...]) -> re.Pattern[str]:
    alternatives = [
        re.escape(open_) + re.escape(label) + re.escape(close)
        for open_, close in _BRACKETS
        for label in labels
    ]
    return re.compile("|".join(alternatives), re.IGNORECASE)


_LANGUAGE_RE = _annotation_pattern(_LANGUAGE_LABELS)
_RELEASE_RE = _annotation_pattern(_RELEASE_LABELS)
_WHITESPACE_RE = re.compile(r"\s+")


def clean_title(title: str | None) -> str:
    """Strip bracketed subtitle/release annotations and collapse whitespace.

    Example::

        >>> clean_title("【中文字幕】 Love Story (SUB)")
        'Love Story'
    """
    if not title or not title.strip():
        return ""
    cleaned = _LANGUAGE_RE.sub("", title.strip())
    cleaned = _RELEASE_RE.sub("", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()
