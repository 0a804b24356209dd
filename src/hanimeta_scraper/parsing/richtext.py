"""Rich-text to plain-text extraction for description blocks.

Walks a BeautifulSoup subtree collecting paragraph- and list-item-level
text.  Line breaks inside paragraphs survive as ``\\n``, paragraphs are
separated by a blank line, and the result can be filtered and capped::

    from hanimeta_scraper.parsing.richtext import RichTextOptions, extract_rich_text

    text = extract_rich_text(node, RichTextOptions(max_paragraphs=10, max_chars=1600))
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable

from bs4 import Comment, NavigableString, Tag

_INLINE_SPACE_RE = re.compile(r"[ \t\r\f\v]+")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")

_SKIPPED_TAGS: frozenset[str] = frozenset({"script", "style", "noscript", "template"})


@dataclass
class RichTextOptions:
    """Behaviour switches for :func:`extract_rich_text`.

    Attributes:
        keep_new_lines: Render ``<br>`` as ``\\n`` and keep line structure.
            When ``False`` every paragraph collapses onto one line.
        preserve_empty_lines: Keep blank lines produced by consecutive ``<br>``.
        render_lists: Collect ``ul``/``ol`` items as bulleted paragraphs.
        bullet: Prefix for list-item paragraphs.
        max_paragraphs: Keep at most this many paragraphs (``None`` = all).
        max_chars: Truncate to this many characters including the trailing
            ellipsis (``None`` = no cap).
        exclude_contains: Drop paragraphs containing any of these
            substrings (case-insensitive).
        exclude_regex: Drop paragraphs matching any of these patterns.
        post_process: Final transformation applied to the joined text.
    """

    keep_new_lines: bool = True
    preserve_empty_lines: bool = False
    render_lists: bool = True
    bullet: str = "• "
    max_paragraphs: int | None = None
    max_chars: int | None = None
    exclude_contains: list[str] = field(default_factory=list)
    exclude_regex: list[re.Pattern[str]] = field(default_factory=list)
    post_process: Callable[[str], str] | None = None


# ---------------------------------------------------------------------------
# Node text
# ---------------------------------------------------------------------------


def _raw_text(node: Tag, options: RichTextOptions) -> str:
    parts: list[str] = []

    def walk(current: Tag) -> None:
        for child in current.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                parts.append(str(child))
                continue
            if not isinstance(child, Tag):
                continue
            name = (child.name or "").lower()
            if name in _SKIPPED_TAGS:
                continue
            if name == "br":
                parts.append("\n" if options.keep_new_lines else " ")
                continue
            walk(child)

    walk(node)
    return "".join(parts)


def _normalize_inline(text: str, options: RichTextOptions) -> str:
    if not text or not text.strip():
        return ""
    text = _INLINE_SPACE_RE.sub(" ", text.replace("\u00a0", " "))
    if options.keep_new_lines:
        lines = [line.strip() for line in text.split("\n")]
        text = "\n".join(line for line in lines if line or options.preserve_empty_lines)
    else:
        text = text.replace("\n", " ")
        text = _INLINE_SPACE_RE.sub(" ", text)
    return text.strip()


def node_text(node: Tag, options: RichTextOptions | None = None) -> str:
    """Return the normalised text of a single node (``<br>`` aware)."""
    options = options or RichTextOptions()
    return _normalize_inline(_raw_text(node, options), options)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _is_excluded(paragraph: str, options: RichTextOptions) -> bool:
    lowered = paragraph.casefold()
    if any(keyword.casefold() in lowered for keyword in options.exclude_contains):
        return True
    return any(pattern.search(paragraph) for pattern in options.exclude_regex)


def extract_rich_text(root: Tag | None, options: RichTextOptions | None = None) -> str:
    """Extract readable plain text from a description subtree.

    Collection order: DLsite-style ``work_parts_multitype_item type_text``
    blocks (their ``<p>`` children, or the block itself), then every other
    ``<p>``, then list items.  When none of those yield text, the whole
    subtree's text is used.  Exclusions, the paragraph cap, whitespace
    normalisation, the character cap and ``post_process`` are applied in
    that order.

    Args:
        root: Subtree to read; ``None`` yields ``""``.
        options: Extraction switches; defaults to :class:`RichTextOptions`.

    Returns:
        Paragraphs joined by ``"\\n\\n"``.
    """
    if root is None:
        return ""
    options = options or RichTextOptions()

    paragraphs: list[str] = []
    seen: set[int] = set()

    def add(node: Tag) -> None:
        if id(node) in seen:
            return
        seen.add(id(node))
        text = node_text(node, options)
        if text:
            paragraphs.append(text)

    for item in root.select("div.work_parts_multitype_item.type_text"):
        inner = item.find_all("p")
        if inner:
            for p in inner:
                add(p)
        else:
            add(item)

    for p in root.find_all("p"):
        add(p)

    if options.render_lists:
        for li in root.select("ul > li, ol > li"):
            text = node_text(li, options)
            if text:
                paragraphs.append(options.bullet + text)

    if not paragraphs:
        text = node_text(root, options)
        if text:
            paragraphs.append(text)

    if options.exclude_contains or options.exclude_regex:
        paragraphs = [p for p in paragraphs if p.strip() and not _is_excluded(p, options)]

    if options.max_paragraphs and options.max_paragraphs > 0:
        paragraphs = paragraphs[: options.max_paragraphs]

    text = "\n\n".join(p for p in paragraphs if p.strip())
    if options.keep_new_lines:
        text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
    text = text.strip()

    if options.max_chars and options.max_chars > 0 and len(text) > options.max_chars:
        text = text[: max(0, options.max_chars - 1)] + "…"

    if options.post_process is not None:
        text = options.post_process(text)
    return text
