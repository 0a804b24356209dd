"""Staff-role mapping from Japanese credit labels to the normalised vocabulary."""

from __future__ import annotations

#: Ordered (label fragments, normalised type) pairs.  The first entry whose
#: fragment occurs in the header wins, so more specific roles come first.
STAFF_ROLE_MAP: tuple[tuple[tuple[str, ...], str], ...] = (
    (("監督", "ディレクター"), "Director"),
    (("シナリオ", "脚本"), "Writer"),
    (("原画", "イラスト"), "Illustrator"),
    (("制作", "企画", "プロデューサ"), "Producer"),
    (("編集",), "Editor"),
    (("音楽",), "Composer"),
    (("声優", "出演者", "キャスト"), "Actor"),
)

#: The closed set of normalised person types.
KNOWN_PERSON_TYPES: frozenset[str] = frozenset(t for _, t in STAFF_ROLE_MAP)


def map_staff_role(header: str | None) -> str:
    """Map a credit header such as ``"声優"`` to its normalised type.

    Unrecognised headers are returned unchanged so that no credit is lost.

    Args:
        header: Cleaned text of the table header cell.

    Returns:
        ``"Actor"``, ``"Director"``, … or ``header`` itself.
    """
    if not header:
        return header or ""
    for fragments, person_type in STAFF_ROLE_MAP:
        if any(fragment in header for fragment in fragments):
            return person_type
    return header


def is_staff_role(header: str | None) -> bool:
    """``True`` when ``header`` maps onto one of :data:`KNOWN_PERSON_TYPES`."""
    return map_staff_role(header) in KNOWN_PERSON_TYPES
