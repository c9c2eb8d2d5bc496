from __future__ import annotations

from typing import Any

import simpy

from vsn.core.commands import Cancel, Command, Record, Schedule, SetRate, TaskKind
from vsn.core.config import EngineConfig
from vsn.core.ids import content_id_from_url, is_content_page
from vsn.core.logging import get_logger
from vsn.core.types import RateChange, RateOrigin
from vsn.features.classifier.service import classify
from vsn.features.classifier.types import AuxSignalKind, AuxSignals
from vsn.features.override import service as override
from vsn.features.readiness.types import Observation
from vsn.features.reconciler import service as reconciler
from vsn.features.reconciler.types import EngineState, ReconcileInputs
from vsn.features.transition_guard import service as guard

from .scheduler import TaskHandle, TaskScheduler
from .types import CriteriaSource, EventSink, MetadataProvider, PlaybackSurface


class EngineRuntime:
    """
    Drives the pure engine transitions from page signals and SimPy timers.

    Owns the single EngineState. Every transition returns commands, which are
    executed here in order: rate writes (tagged ENGINE, bracketed by the
    writing flag), task scheduling/cancellation, and journal records.

    Signals:
      - on_navigation_start / on_navigation_finish(url)
      - on_content_mutated
      - attach_surface / on_playback_event
      - on_visibility_change(hidden)
    """

    def __init__(
        self,
        *,
        env: simpy.Environment,
        metadata: MetadataProvider,
        settings: CriteriaSource,
        cfg: EngineConfig,
        events: EventSink | None = None,
    ) -> None:
        self.env = env
        self.metadata = metadata
        self.settings = settings
        self.cfg = cfg
        self.events = events

        self.state = EngineState()
        self.surface: PlaybackSurface | None = None
        self.url: str | None = None

        self._scheduler = TaskScheduler(env)
        self._writing = False
        # between navigation start and finish; the outgoing item is not reconciled
        self._navigating = False
        self._logger = get_logger(__name__)

    # ----------------------------
    # Signals
    # ----------------------------

    def on_navigation_start(self) -> None:
        self._navigating = True
        self.state, cmds = guard.begin(
            self.state,
            now=self.env.now,
            current_rate=self._current_rate(),
            cfg=self.cfg.guard,
            normal_rate=self.cfg.normal_rate,
        )
        self._apply([Cancel(TaskKind.POLL), Cancel(TaskKind.RECONCILE), *cmds])

    def on_navigation_finish(self, url: str | None) -> None:
        self._navigating = False
        self.url = url
        content_id = content_id_from_url(url)
        if not is_content_page(url) or content_id is None:
            self.state, cmds = guard.release(self.state, reason="left_content")
            self._apply([Cancel(TaskKind.POLL), *cmds])
            return

        self.state, cmds = reconciler.reset_session(
            self.state,
            content_id,
            now=self.env.now,
            current_rate=self._current_rate(),
            cfg=self.cfg,
        )
        self._apply(cmds)

    def on_content_mutated(self) -> None:
        if self._navigating:
            # picked up by the first poll of the incoming session
            return
        self.state, cmds = reconciler.on_metadata_mutation(
            self.state,
            title=self.metadata.get_title(),
            channel=self.metadata.get_channel(),
        )
        self._apply(cmds)

    def attach_surface(self, surface: PlaybackSurface) -> None:
        if surface is self.surface:
            # same element reloaded its media
            self.on_playback_event()
            return
        self.surface = surface
        surface.subscribe(self._on_rate_change)
        self.request_reconcile()

    def on_playback_event(self) -> None:
        self.request_reconcile()

    def on_visibility_change(self, hidden: bool) -> None:
        if hidden or not is_content_page(self.url):
            return
        self.request_reconcile(delay_s=self.cfg.visibility_debounce_s)

    def request_reconcile(self, delay_s: float = 0.0) -> None:
        if self._navigating:
            return
        self._apply(
            [Schedule(task=TaskKind.RECONCILE, delay_s=delay_s, token=self.state.session.token)]
        )

    # ----------------------------
    # Rate-change notifications
    # ----------------------------

    def _on_rate_change(self, change: RateChange) -> None:
        if self._writing:
            # our own write echoing back synchronously
            change = RateChange(rate=change.rate, origin=RateOrigin.ENGINE)

        self.state, cmds, is_user = override.observe(self.state, change, self.env.now)
        self._apply(cmds)
        if is_user:
            self.env.process(self._learn_default(self.state.session.token, float(change.rate)))

    def _learn_default(self, token, rate: float):
        criteria = yield self.env.process(self.settings.fetch_criteria(self.env))
        if token != self.state.session.token:
            self._record("stale_discarded", {"task": "learn_default", "stale_content_id": token.content_id})
            return
        result = classify(
            self.metadata.get_title() or self.state.session.title,
            self.metadata.get_channel() or self.state.session.channel,
            criteria,
            self._aux(),
        )
        self.state, cmds = override.learn_default(
            self.state, rate, result, normal_rate=self.cfg.normal_rate
        )
        self._apply(cmds)

    # ----------------------------
    # Tasks
    # ----------------------------

    def _poll(self, handle: TaskHandle) -> None:
        if self._is_stale(handle):
            return
        obs = Observation(
            title=self.metadata.get_title(),
            channel=self.metadata.get_channel(),
            rate=self._current_rate(),
        )
        self.state, cmds = reconciler.on_poll(self.state, obs, cfg=self.cfg)
        self._apply(cmds)

    def _lock_tick(self, handle: TaskHandle) -> None:
        self.state, cmds = guard.tick(
            self.state,
            now=self.env.now,
            current_rate=self._current_rate(),
            lock_id=handle.lock_id,
            cfg=self.cfg.guard,
            normal_rate=self.cfg.normal_rate,
        )
        self._apply(cmds)

    def _reconcile(self, handle: TaskHandle):
        if self._is_stale(handle):
            return
        criteria = yield self.env.process(self.settings.fetch_criteria(self.env))
        if handle.cancelled or self._is_stale(handle):
            return

        inputs = ReconcileInputs(
            on_content_page=is_content_page(self.url),
            current_rate=self._current_rate(),
            title=self.metadata.get_title(),
            channel=self.metadata.get_channel(),
            criteria=criteria,
            aux=self._aux(),
        )
        self.state, cmds = reconciler.reconcile(self.state, inputs, normal_rate=self.cfg.normal_rate)
        self._apply(cmds)

    def _is_stale(self, handle: TaskHandle) -> bool:
        if handle.token == self.state.session.token:
            return False
        self._record(
            "stale_discarded",
            {"task": handle.kind.value, "stale_content_id": handle.token.content_id},
        )
        return True

    # ----------------------------
    # Command execution
    # ----------------------------

    def _apply(self, cmds: list[Command]) -> None:
        for cmd in cmds:
            if isinstance(cmd, SetRate):
                self._write_rate(cmd.rate, reason=cmd.reason)
            elif isinstance(cmd, Schedule):
                self._scheduler.schedule(cmd, self._body_for(cmd.task))
            elif isinstance(cmd, Cancel):
                self._scheduler.cancel(cmd.task)
            elif isinstance(cmd, Record):
                self._record(cmd.event_type, cmd.payload)
            else:
                raise ValueError(f"Unsupported command={cmd!r}")

    def _body_for(self, task: TaskKind):
        if task is TaskKind.POLL:
            return self._poll
        if task is TaskKind.LOCK_TICK:
            return self._lock_tick
        if task is TaskKind.RECONCILE:
            return self._reconcile
        raise ValueError(f"Unsupported task kind={task!r}")

    def _write_rate(self, rate: float, *, reason: str) -> None:
        if self.surface is None:
            return
        previous = self._current_rate()
        self._writing = True
        try:
            self.surface.set_rate(rate, origin=RateOrigin.ENGINE)
        finally:
            self._writing = False
        self._record("rate_write", {"rate": rate, "from": previous, "reason": reason})

    def _current_rate(self) -> float | None:
        if self.surface is None:
            return None
        return self.surface.get_rate()

    def _aux(self) -> AuxSignals:
        return AuxSignals(
            official_badge=bool(self.metadata.get_aux_signal(AuxSignalKind.OFFICIAL_BADGE)),
            music_section=bool(self.metadata.get_aux_signal(AuxSignalKind.MUSIC_SECTION)),
        )

    def _record(self, event_type: str, payload: dict[str, Any]) -> None:
        session = self.state.session
        rate = payload.get("rate")
        rule = payload.get("rule")
        self._logger.debug(
            event_type,
            extra={
                "feature": "engine",
                "event_type": event_type,
                "content_id": session.content_id,
                "rate": rate,
                "rule": rule,
            },
        )
        if self.events is None:
            return
        self.events.emit(
            sim_time_s=float(self.env.now),
            event_type=event_type,
            content_id=session.content_id,
            epoch=session.epoch,
            rate=None if rate is None else float(rate),
            rule=None if rule is None else str(rule),
            payload=dict(payload) if payload else None,
        )
