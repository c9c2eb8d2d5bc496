from __future__ import annotations

import re
from collections.abc import Iterable

# Matches nothing, including the empty string.
NEVER_MATCH: re.Pattern[str] = re.compile(r"(?!)")

# artist「title」 / artist『title』
_QUOTE_SHAPE = re.compile(r"[^「」『』]+[「『][^「」『』]+[」』]")
# "artist - title" with any of the common dash glyphs
_DASH_SHAPE = re.compile(r".+?\s[-−‐‒–—－ーｰ]\s.+")
# "artist / title" with ASCII or full-width slash / backslash
_SLASH_SHAPE = re.compile(r".+?\s[\\/／]\s.+")

MUSIC_SECTION_MARKERS: tuple[str, ...] = ("Music", "音楽")


def build_keyword_pattern(keywords: Iterable[str]) -> re.Pattern[str]:
    """
    Case-insensitive alternation over the literal keywords.

    Blank entries are dropped. With nothing left the result is NEVER_MATCH:
    an empty keyword list disables matching instead of matching everything.
    """
    escaped = [re.escape(k) for k in keywords if k and k.strip()]
    if not escaped:
        return NEVER_MATCH
    return re.compile("(?:" + "|".join(escaped) + ")", re.IGNORECASE)


def is_artist_title_format(title: str | None) -> bool:
    if not title:
        return False
    normalized = title.strip()
    return bool(
        _QUOTE_SHAPE.search(normalized)
        or _DASH_SHAPE.search(normalized)
        or _SLASH_SHAPE.search(normalized)
    )


def has_music_section(headers: Iterable[str | None]) -> bool:
    """True when any description section header carries a music marker."""
    for header in headers:
        if not header:
            continue
        text = header.strip()
        if any(marker in text for marker in MUSIC_SECTION_MARKERS):
            return True
    return False
