from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class NavigateStep:
    """
    Navigation to a new item.

    The URL flips after finish_delay_s; title/channel/badges keep showing
    the previous item until metadata_delay_s (both relative to the step).
    """

    url: str
    title: str | None = None
    channel: str | None = None
    official_badge: bool = False
    section_headers: tuple[str, ...] = ()
    finish_delay_s: float = 0.05
    metadata_delay_s: float = 0.3


@dataclass(frozen=True, slots=True)
class UserRateStep:
    rate: float


@dataclass(frozen=True, slots=True)
class VisibilityStep:
    hidden: bool


@dataclass(frozen=True, slots=True)
class MutateStep:
    title: str | None = None
    channel: str | None = None


@dataclass(frozen=True, slots=True)
class AttachStep:
    pass


Action = NavigateStep | UserRateStep | VisibilityStep | MutateStep | AttachStep


@dataclass(frozen=True, slots=True)
class TimelineStep:
    at: float
    action: Action


@dataclass(frozen=True)
class ScenarioConfig:
    """
    scenario:
      initial_rate: 1.5
      attach_at_start: true
      report_origin: true
      settings:
        excludeKeywords: ["shorts"]
      timeline:
        - at: 0.0
          navigate: {url: "https://www.youtube.com/watch?v=a1", title: "...", channel: "..."}
        - at: 12.0
          user_rate: 2.0
        - at: 20.0
          visibility: hidden
    """

    initial_rate: float = 1.0
    attach_at_start: bool = True
    report_origin: bool = True
    settings: dict[str, Any] = field(default_factory=dict)
    steps: tuple[TimelineStep, ...] = ()

    @property
    def last_step_at(self) -> float:
        return max((s.at for s in self.steps), default=0.0)
