from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ReadinessPhase(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    READY = "ready"
    GAVE_UP = "gave_up"


@dataclass(frozen=True, slots=True)
class ReadinessState:
    phase: ReadinessPhase = ReadinessPhase.IDLE
    attempts: int = 0

    @property
    def is_ready(self) -> bool:
        return self.phase is ReadinessPhase.READY


@dataclass(frozen=True, slots=True)
class Observation:
    """One read of the collaborators; None means "not available yet"."""

    title: str | None
    channel: str | None
    rate: float | None
