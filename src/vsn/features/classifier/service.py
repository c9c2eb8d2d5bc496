from __future__ import annotations

import re

from vsn.features.keyword_pattern.service import build_keyword_pattern, is_artist_title_format

from .types import AuxSignals, ClassificationCriteria, ClassificationResult, MatchRule

# Channel names carry "official" as branding regardless of content type.
CHANNEL_STOPWORD = "official"


def _hit(pattern: re.Pattern[str], text: str | None) -> bool:
    if not text:
        return False
    return pattern.search(text) is not None


def channel_keywords(keywords: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(k for k in keywords if k.lower() != CHANNEL_STOPWORD)


def classify(
    title: str | None,
    channel: str | None,
    criteria: ClassificationCriteria,
    aux: AuxSignals | None = None,
) -> ClassificationResult:
    """
    Decide whether the current item should play at the normalized rate.

    Rules, first one that applies wins:
      1. exclude keyword in title (or channel when search_in_channel) -> no match
      2. official artist badge                                         -> match
      3. music section in the description                              -> match
      4. artist/title shaped title                                     -> match
      5. include keyword in title                                      -> match
      6. include keyword (minus "official") in channel                 -> match
    """
    aux = aux or AuxSignals()

    exclude = build_keyword_pattern(criteria.exclude_keywords)
    if _hit(exclude, title) or (criteria.search_in_channel and _hit(exclude, channel)):
        return ClassificationResult.no_match(MatchRule.EXCLUDED)

    if criteria.use_official_badge and aux.official_badge:
        return ClassificationResult.match(MatchRule.OFFICIAL_BADGE)

    if criteria.use_description_section and aux.music_section:
        return ClassificationResult.match(MatchRule.DESCRIPTION_SECTION)

    # title only; channel names never count for the shape heuristic
    if criteria.use_title_pattern and is_artist_title_format(title):
        return ClassificationResult.match(MatchRule.TITLE_FORMAT)

    if _hit(build_keyword_pattern(criteria.include_keywords), title):
        return ClassificationResult.match(MatchRule.TITLE_KEYWORD)

    if criteria.search_in_channel:
        pattern = build_keyword_pattern(channel_keywords(criteria.include_keywords))
        if _hit(pattern, channel):
            return ClassificationResult.match(MatchRule.CHANNEL_KEYWORD)

    return ClassificationResult.no_match()
