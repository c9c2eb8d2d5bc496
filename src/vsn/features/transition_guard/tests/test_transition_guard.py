from __future__ import annotations

from dataclasses import replace

import pytest

from vsn.core.commands import Cancel, Record, Schedule, SetRate, TaskKind
from vsn.core.config import GuardConfig
from vsn.features.classifier.types import ClassificationResult, MatchRule
from vsn.features.override.service import mark_override
from vsn.features.reconciler.types import ContentSession, EngineState
from vsn.features.transition_guard import service as guard

CFG = GuardConfig(poll_interval_s=0.1, ceiling_s=5.0, ignore_write_window_s=1.5)


def _after_match() -> EngineState:
    return EngineState(
        session=ContentSession(content_id="mv1", epoch=1),
        last_result=ClassificationResult.match(MatchRule.TITLE_FORMAT),
    )


def _schedules(cmds):
    return [c for c in cmds if isinstance(c, Schedule)]


def test_begin_after_non_match_does_nothing():
    state = EngineState(last_result=ClassificationResult.no_match())
    new, cmds = guard.begin(state, now=0.0, current_rate=1.75, cfg=CFG, normal_rate=1.0)
    assert new == state
    assert cmds == []


def test_begin_after_match_forces_normal_rate():
    state = mark_override(_after_match(), 2.0)
    new, cmds = guard.begin(state, now=10.0, current_rate=2.0, cfg=CFG, normal_rate=1.0)

    assert new.guard.forced
    assert new.guard.forced_since == 10.0
    assert new.guard.lock_id == 1
    assert new.guard.ignore_write_until == pytest.approx(11.5)
    assert not new.override.active

    assert Cancel(TaskKind.LOCK_TICK) in cmds
    assert SetRate(rate=1.0, reason="provisional_lock") in cmds
    (tick,) = _schedules(cmds)
    assert tick.task is TaskKind.LOCK_TICK
    assert tick.delay_s == pytest.approx(0.1)
    assert tick.lock_id == 1


def test_begin_at_normal_rate_writes_nothing():
    new, cmds = guard.begin(_after_match(), now=0.0, current_rate=1.0, cfg=CFG, normal_rate=1.0)
    assert new.guard.forced
    assert not any(isinstance(c, SetRate) for c in cmds)
    assert new.guard.ignore_write_until == 0.0


def test_begin_after_non_match_releases_running_lock():
    state, _ = guard.begin(_after_match(), now=0.0, current_rate=1.0, cfg=CFG, normal_rate=1.0)
    state = replace(state, last_result=ClassificationResult.no_match())
    new, cmds = guard.begin(state, now=1.0, current_rate=1.0, cfg=CFG, normal_rate=1.0)

    assert not new.guard.forced
    assert cmds == [
        Cancel(TaskKind.LOCK_TICK),
        Record("guard_released", {"reason": "outgoing_not_match"}),
    ]


def test_tick_keeps_forcing_until_ceiling():
    state, cmds = guard.begin(_after_match(), now=0.0, current_rate=2.0, cfg=CFG, normal_rate=1.0)

    now = 0.0
    ticks = 0
    rate_writes = 0
    while True:
        (nxt,) = _schedules(cmds)
        now += nxt.delay_s
        # someone keeps pushing the rate back up
        state, cmds = guard.tick(
            state, now=now, current_rate=2.0, lock_id=nxt.lock_id, cfg=CFG, normal_rate=1.0
        )
        ticks += 1
        rate_writes += sum(isinstance(c, SetRate) for c in cmds)
        if not _schedules(cmds):
            break

    assert now == pytest.approx(5.0)
    assert not state.guard.forced
    assert Record("guard_released", {"reason": "ceiling"}) in cmds
    assert ticks == rate_writes + 1


def test_tick_with_stale_lock_id_is_ignored():
    state, _ = guard.begin(_after_match(), now=0.0, current_rate=1.0, cfg=CFG, normal_rate=1.0)
    new, cmds = guard.tick(state, now=0.1, current_rate=2.0, lock_id=0, cfg=CFG, normal_rate=1.0)
    assert new == state
    assert cmds == []


def test_tick_yields_to_user_override():
    state, _ = guard.begin(_after_match(), now=0.0, current_rate=1.0, cfg=CFG, normal_rate=1.0)
    state = mark_override(state, 2.0)

    new, cmds = guard.tick(
        state, now=0.1, current_rate=2.0, lock_id=state.guard.lock_id, cfg=CFG, normal_rate=1.0
    )
    assert not new.guard.forced
    assert not any(isinstance(c, SetRate) for c in cmds)
    assert Record("guard_released", {"reason": "user_override"}) in cmds


def test_release_when_not_forced_is_noop():
    state = EngineState()
    assert guard.release(state, reason="classified") == (state, [])
