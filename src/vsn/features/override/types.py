from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class OverrideState:
    active: bool = False
    user_rate: float | None = None
