from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

_VIDEO_ID_RE = re.compile(r"[?&]v=([^&#]+)")

CONTENT_PATH_PREFIX = "/watch"


def canonical_json(obj: dict[str, Any]) -> str:
    # stable serialization for hashing
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def deterministic_run_id_from_config(cfg_raw: dict[str, Any], length: int = 12) -> str:
    """
    Deterministic run_id derived from the full config content.
    - If you run twice with the same YAML content, you get the same run_id.
    - If config changes, run_id changes.
    """
    s = canonical_json(cfg_raw).encode("utf-8")
    h = hashlib.sha1(s).hexdigest()
    return h[:length]


def is_content_page(url: str | None) -> bool:
    if not url:
        return False
    return urlsplit(url).path.startswith(CONTENT_PATH_PREFIX)


def content_id_from_url(url: str | None) -> str | None:
    """
    Stable per-item id taken from the `v` query parameter, or None when absent.
    """
    if not url:
        return None
    m = _VIDEO_ID_RE.search(url)
    return m.group(1) if m else None


@dataclass(slots=True)
class IdsService:
    run_id: str
    _counters: dict[str, int] = field(default_factory=dict, init=False, repr=False)

    def next_id(self, prefix: str) -> str:
        n = self._counters.get(prefix, 0) + 1
        self._counters[prefix] = n
        return f"{prefix}_{self.run_id}_{n:08d}"
