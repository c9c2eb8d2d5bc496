from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MatchRule(str, Enum):
    """Which rule decided a classification (diagnostics only)."""

    EXCLUDED = "excluded"
    OFFICIAL_BADGE = "official_badge"
    DESCRIPTION_SECTION = "description_section"
    TITLE_FORMAT = "title_format"
    TITLE_KEYWORD = "title_keyword"
    CHANNEL_KEYWORD = "channel_keyword"
    NO_MATCH = "no_match"


class AuxSignalKind(str, Enum):
    OFFICIAL_BADGE = "official_badge"
    MUSIC_SECTION = "music_section"


@dataclass(frozen=True, slots=True)
class ClassificationCriteria:
    """
    Each flag independently enables one matching strategy.

    Keyword collections keep the user's order; duplicates are harmless.
    """

    include_keywords: tuple[str, ...] = ()
    exclude_keywords: tuple[str, ...] = ()
    search_in_channel: bool = True
    use_title_pattern: bool = True
    use_official_badge: bool = True
    use_description_section: bool = True


@dataclass(frozen=True, slots=True)
class AuxSignals:
    official_badge: bool = False
    music_section: bool = False


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    is_match: bool
    rule: MatchRule

    @classmethod
    def match(cls, rule: MatchRule) -> ClassificationResult:
        return cls(is_match=True, rule=rule)

    @classmethod
    def no_match(cls, rule: MatchRule = MatchRule.NO_MATCH) -> ClassificationResult:
        return cls(is_match=False, rule=rule)
