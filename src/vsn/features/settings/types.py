from __future__ import annotations

from typing import Any, Protocol

KEY_KEYWORDS = "keywords"
KEY_EXCLUDE_KEYWORDS = "excludeKeywords"

FLAG_SEARCH_IN_CHANNEL = "searchInChannel"
FLAG_TITLE_PATTERN = "enableTitlePatternMatch"
FLAG_OFFICIAL_ARTIST = "enableOfficialArtistMatch"
FLAG_DESCRIPTION_SECTION = "enableDescriptionSectionMatch"

DEFAULT_KEYWORDS: tuple[str, ...] = (
    "Music",
    "MV",
    "song",
    "feat.",
    "Live",
    "dance",
    "cover",
    "video",
    "official",
    "lyric",
    "tour",
    "ASMR",
    "Choreography",
    "Remix",
    "Acoustic",
    "音楽",
    "歌",
    "曲",
    "ツアー",
    "ラップ",
    "ソング",
    "ライブ",
    "ダンス",
    "弾き語",
    "踊ってみた",
    "叩いてみた",
    "カバー",
    "生誕祭",
    "コント",
    "漫才",
    "落語",
    "ネタ",
    "環境音",
    "立体音響",
)

DEFAULT_EXCLUDE_KEYWORDS: tuple[str, ...] = ()

DEFAULT_FLAGS: dict[str, bool] = {
    FLAG_SEARCH_IN_CHANNEL: True,
    FLAG_TITLE_PATTERN: True,
    FLAG_OFFICIAL_ARTIST: True,
    FLAG_DESCRIPTION_SECTION: True,
}


class SettingsStore(Protocol):
    """
    Persistent key-value store. Either call may raise; callers fall back.
    """

    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...


class KeywordListError(ValueError):
    pass
