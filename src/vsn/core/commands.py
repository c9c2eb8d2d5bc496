from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TaskKind(str, Enum):
    POLL = "poll"
    LOCK_TICK = "lock_tick"
    RECONCILE = "reconcile"


@dataclass(frozen=True, slots=True)
class SessionToken:
    """Identifies the session an in-flight operation was started for."""

    content_id: str | None
    epoch: int


@dataclass(frozen=True, slots=True)
class SetRate:
    rate: float
    reason: str


@dataclass(frozen=True, slots=True)
class Schedule:
    task: TaskKind
    delay_s: float
    token: SessionToken
    lock_id: int | None = None


@dataclass(frozen=True, slots=True)
class Cancel:
    task: TaskKind


@dataclass(frozen=True, slots=True)
class Record:
    event_type: str
    payload: dict[str, Any] = field(default_factory=dict)


Command = SetRate | Schedule | Cancel | Record
