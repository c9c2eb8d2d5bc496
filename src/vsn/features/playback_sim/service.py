from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import simpy

from vsn.core.types import RateChange, RateOrigin
from vsn.features.classifier.types import AuxSignalKind
from vsn.features.keyword_pattern.service import has_music_section

from .types import (
    AttachStep,
    MutateStep,
    NavigateStep,
    ScenarioConfig,
    TimelineStep,
    UserRateStep,
    VisibilityStep,
)


@dataclass(frozen=True, slots=True)
class RateWriteLog:
    sim_time_s: float
    rate: float
    origin: RateOrigin


class SimulatedPage:
    """
    In-memory stand-in for the watch page: metadata provider and playback
    surface in one.

    Like a media element, set_rate notifies subscribers synchronously and only
    when the value actually changes. With report_origin=False every
    notification is UNKNOWN, as a real page reports it.
    """

    def __init__(self, env: simpy.Environment, *, initial_rate: float = 1.0, report_origin: bool = True) -> None:
        self.env = env
        self.report_origin = report_origin

        self.url: str | None = None
        self.title: str | None = None
        self.channel: str | None = None
        self.official_badge = False
        self.section_headers: tuple[str, ...] = ()
        self.hidden = False

        self.rate = float(initial_rate)
        self.writes: list[RateWriteLog] = []
        self._subscribers: list[Callable[[RateChange], None]] = []

    # MetadataProvider

    def get_title(self) -> str | None:
        return self.title

    def get_channel(self) -> str | None:
        return self.channel

    def get_aux_signal(self, kind: AuxSignalKind) -> bool:
        if kind is AuxSignalKind.OFFICIAL_BADGE:
            return self.official_badge
        if kind is AuxSignalKind.MUSIC_SECTION:
            return has_music_section(self.section_headers)
        raise ValueError(f"Unsupported aux signal kind={kind!r}")

    # PlaybackSurface

    def get_rate(self) -> float | None:
        return self.rate

    def set_rate(self, rate: float, *, origin: RateOrigin) -> None:
        rate = float(rate)
        if rate == self.rate:
            return
        self.rate = rate
        self.writes.append(RateWriteLog(sim_time_s=float(self.env.now), rate=rate, origin=origin))
        reported = origin if self.report_origin else RateOrigin.UNKNOWN
        for callback in list(self._subscribers):
            callback(RateChange(rate=rate, origin=reported))

    def subscribe(self, callback: Callable[[RateChange], None]) -> None:
        self._subscribers.append(callback)


class PageSignals(Protocol):
    """What the driver needs from the engine runtime."""

    def on_navigation_start(self) -> None: ...
    def on_navigation_finish(self, url: str | None) -> None: ...
    def on_content_mutated(self) -> None: ...
    def on_visibility_change(self, hidden: bool) -> None: ...
    def attach_surface(self, surface: Any) -> None: ...


class ScenarioDriver:
    """
    Replays a scenario timeline against a SimulatedPage, raising the same
    signals a browser page would.
    """

    def __init__(
        self,
        *,
        env: simpy.Environment,
        page: SimulatedPage,
        signals: PageSignals,
        scenario: ScenarioConfig,
    ) -> None:
        self.env = env
        self.page = page
        self.signals = signals
        self.scenario = scenario

    def start(self) -> simpy.events.Process:
        return self.env.process(self._run())

    def _run(self):
        if self.scenario.attach_at_start:
            self.signals.attach_surface(self.page)

        for step in self.scenario.steps:
            wait = step.at - float(self.env.now)
            if wait > 0:
                yield self.env.timeout(wait)
            self._apply(step)

    def _apply(self, step: TimelineStep) -> None:
        action = step.action
        if isinstance(action, NavigateStep):
            self.signals.on_navigation_start()
            self.env.process(self._navigate(action))
        elif isinstance(action, UserRateStep):
            self.page.set_rate(action.rate, origin=RateOrigin.USER)
        elif isinstance(action, VisibilityStep):
            self.page.hidden = action.hidden
            self.signals.on_visibility_change(action.hidden)
        elif isinstance(action, MutateStep):
            if action.title is not None:
                self.page.title = action.title
            if action.channel is not None:
                self.page.channel = action.channel
            self.signals.on_content_mutated()
        elif isinstance(action, AttachStep):
            self.signals.attach_surface(self.page)
        else:
            raise ValueError(f"Unsupported timeline action={action!r}")

    def _navigate(self, step: NavigateStep):
        elapsed = 0.0
        events = sorted(
            [(step.finish_delay_s, 0, "finish"), (step.metadata_delay_s, 1, "metadata")]
        )
        for at, _, what in events:
            if at > elapsed:
                yield self.env.timeout(at - elapsed)
                elapsed = at
            if what == "finish":
                self.page.url = step.url
                self.signals.on_navigation_finish(step.url)
            else:
                self.page.title = step.title
                self.page.channel = step.channel
                self.page.official_badge = step.official_badge
                self.page.section_headers = step.section_headers
                self.signals.on_content_mutated()
