from __future__ import annotations

import logging
from typing import Any

from vsn.core.logging import get_logger
from vsn.features.classifier.types import ClassificationCriteria

from .types import (
    DEFAULT_EXCLUDE_KEYWORDS,
    DEFAULT_FLAGS,
    DEFAULT_KEYWORDS,
    FLAG_DESCRIPTION_SECTION,
    FLAG_OFFICIAL_ARTIST,
    FLAG_SEARCH_IN_CHANNEL,
    FLAG_TITLE_PATTERN,
    KEY_EXCLUDE_KEYWORDS,
    KEY_KEYWORDS,
    KeywordListError,
    SettingsStore,
)


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


class SettingsService:
    """
    Reads classification criteria from the settings store and edits the
    keyword lists.

    Reads never fail: a store error or a malformed value yields the
    compiled-in default for that key. A keyword list that was never stored
    is seeded with its defaults; an explicitly emptied list stays empty.
    """

    def __init__(
        self,
        store: SettingsStore,
        *,
        latency_s: float = 0.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.latency_s = float(latency_s)
        self._logger = logger or get_logger(__name__)

    # ----------------------------
    # Criteria
    # ----------------------------

    def load_criteria(self) -> ClassificationCriteria:
        return ClassificationCriteria(
            include_keywords=tuple(self._read_keywords(KEY_KEYWORDS, DEFAULT_KEYWORDS)),
            exclude_keywords=tuple(
                self._read_keywords(KEY_EXCLUDE_KEYWORDS, DEFAULT_EXCLUDE_KEYWORDS)
            ),
            search_in_channel=self._read_flag(FLAG_SEARCH_IN_CHANNEL),
            use_title_pattern=self._read_flag(FLAG_TITLE_PATTERN),
            use_official_badge=self._read_flag(FLAG_OFFICIAL_ARTIST),
            use_description_section=self._read_flag(FLAG_DESCRIPTION_SECTION),
        )

    def fetch_criteria(self, env):
        """
        SimPy process: the store is remote, so a read takes `latency_s`.
        """
        yield env.timeout(self.latency_s)
        return self.load_criteria()

    def _read_keywords(self, key: str, defaults: tuple[str, ...]) -> list[str]:
        try:
            value = self.store.get(key, None)
        except Exception as e:  # noqa: BLE001
            self._logger.warning(
                "settings read failed; using defaults",
                extra={"feature": "settings", "event_type": "settings_fallback", "key": key},
                exc_info=e,
            )
            return list(defaults)

        if value is None:
            self._seed(key, list(defaults))
            return list(defaults)

        if not _is_str_list(value):
            self._logger.warning(
                "malformed keyword list; using defaults",
                extra={"feature": "settings", "event_type": "settings_fallback", "key": key},
            )
            return list(defaults)

        return list(value)

    def _read_flag(self, key: str) -> bool:
        default = DEFAULT_FLAGS[key]
        try:
            value = self.store.get(key, default)
        except Exception as e:  # noqa: BLE001
            self._logger.warning(
                "settings read failed; using defaults",
                extra={"feature": "settings", "event_type": "settings_fallback", "key": key},
                exc_info=e,
            )
            return default
        return value if isinstance(value, bool) else default

    def _seed(self, key: str, value: list[str]) -> None:
        try:
            self.store.set(key, value)
        except Exception as e:  # noqa: BLE001
            self._logger.warning(
                "settings seed failed",
                extra={"feature": "settings", "event_type": "settings_seed_failed", "key": key},
                exc_info=e,
            )

    # ----------------------------
    # Editing
    # ----------------------------

    @staticmethod
    def _list_key(exclude: bool) -> str:
        return KEY_EXCLUDE_KEYWORDS if exclude else KEY_KEYWORDS

    def keywords(self, *, exclude: bool = False) -> list[str]:
        if exclude:
            return self._read_keywords(KEY_EXCLUDE_KEYWORDS, DEFAULT_EXCLUDE_KEYWORDS)
        return self._read_keywords(KEY_KEYWORDS, DEFAULT_KEYWORDS)

    def add_keyword(self, keyword: str, *, exclude: bool = False) -> bool:
        """Returns False when the keyword is blank or already present."""
        kw = (keyword or "").strip()
        if not kw:
            return False
        current = self.keywords(exclude=exclude)
        if kw in current:
            return False
        current.append(kw)
        self.store.set(self._list_key(exclude), current)
        return True

    def remove_keyword(self, keyword: str, *, exclude: bool = False, force: bool = False) -> bool:
        current = self.keywords(exclude=exclude)
        remaining = [k for k in current if k != keyword]
        if len(remaining) == len(current):
            return False
        if not exclude and not remaining and not force:
            raise KeywordListError(
                "Removing every keyword disables keyword matching; pass force=True to confirm."
            )
        self.store.set(self._list_key(exclude), remaining)
        return True

    def reset_keywords(self, *, exclude: bool = False) -> list[str]:
        value = list(DEFAULT_EXCLUDE_KEYWORDS if exclude else DEFAULT_KEYWORDS)
        self.store.set(self._list_key(exclude), value)
        return value

    def set_flag(self, name: str, value: bool) -> None:
        if name not in DEFAULT_FLAGS:
            raise ValueError(f"Unknown setting flag={name!r}. Allowed={sorted(DEFAULT_FLAGS)}")
        self.store.set(name, bool(value))

    def snapshot(self) -> dict[str, Any]:
        c = self.load_criteria()
        return {
            KEY_KEYWORDS: list(c.include_keywords),
            KEY_EXCLUDE_KEYWORDS: list(c.exclude_keywords),
            FLAG_SEARCH_IN_CHANNEL: c.search_in_channel,
            FLAG_TITLE_PATTERN: c.use_title_pattern,
            FLAG_OFFICIAL_ARTIST: c.use_official_badge,
            FLAG_DESCRIPTION_SECTION: c.use_description_section,
        }
