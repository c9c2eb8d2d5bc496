from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any

from vsn.features.persistence.duckdb_adapter import DuckDBAdapter


@dataclass
class InMemorySettingsStore:
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self.data:
            return default
        return copy.deepcopy(self.data[key])

    def set(self, key: str, value: Any) -> None:
        self.data[key] = copy.deepcopy(value)


class DuckDBSettingsStore:
    """
    Settings persisted as JSON values in the `settings` table.
    """

    def __init__(self, adapter: DuckDBAdapter) -> None:
        self.adapter = adapter

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.adapter.read_setting(key)
        if raw is None:
            return default
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self.adapter.write_setting(key, json.dumps(value, ensure_ascii=False))

    def keys(self) -> list[str]:
        return self.adapter.setting_keys()
