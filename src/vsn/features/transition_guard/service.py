from __future__ import annotations

from dataclasses import replace

from vsn.core.commands import Cancel, Command, Record, Schedule, SetRate, TaskKind
from vsn.core.config import GuardConfig
from vsn.features.override.service import clear_override
from vsn.features.reconciler.types import EngineState

from .types import GuardState

# float slack when comparing simulated timestamps
_EPS = 1e-9


def begin(
    state: EngineState,
    *,
    now: float,
    current_rate: float | None,
    cfg: GuardConfig,
    normal_rate: float,
) -> tuple[EngineState, list[Command]]:
    """
    Content is about to change.

    If the outgoing item was a match, hold the normalized rate until the
    incoming item is classified, so its first frames never play at the
    user's faster rate. Otherwise drop any lock still running.
    """
    lock_id = state.guard.lock_id + 1

    if not state.last_match:
        if not state.guard.forced:
            return state, []
        guard = replace(state.guard, forced=False, forced_since=None, lock_id=lock_id)
        return replace(state, guard=guard), [
            Cancel(TaskKind.LOCK_TICK),
            Record("guard_released", {"reason": "outgoing_not_match"}),
        ]

    guard = GuardState(
        forced=True,
        forced_since=now,
        ignore_write_until=state.guard.ignore_write_until,
        lock_id=lock_id,
    )
    # a fresh item must not inherit the outgoing item's override
    state = clear_override(replace(state, guard=guard))

    cmds: list[Command] = [
        Cancel(TaskKind.LOCK_TICK),
        Record("guard_forced", {"lock_id": lock_id}),
    ]
    state, forced = _force(state, now=now, current_rate=current_rate, cfg=cfg, normal_rate=normal_rate)
    cmds.extend(forced)
    cmds.append(_next_tick(state, now=now, cfg=cfg))
    return state, cmds


def tick(
    state: EngineState,
    *,
    now: float,
    current_rate: float | None,
    lock_id: int | None,
    cfg: GuardConfig,
    normal_rate: float,
) -> tuple[EngineState, list[Command]]:
    guard = state.guard
    if not guard.forced or lock_id != guard.lock_id:
        return state, []

    if guard.forced_since is not None and now - guard.forced_since >= cfg.ceiling_s - _EPS:
        # classification never arrived; fail open
        return release(state, reason="ceiling")

    if state.override.active:
        return release(state, reason="user_override")

    state, cmds = _force(state, now=now, current_rate=current_rate, cfg=cfg, normal_rate=normal_rate)
    cmds.append(_next_tick(state, now=now, cfg=cfg))
    return state, cmds


def release(state: EngineState, *, reason: str) -> tuple[EngineState, list[Command]]:
    if not state.guard.forced:
        return state, []
    guard = replace(state.guard, forced=False, forced_since=None)
    return replace(state, guard=guard), [
        Cancel(TaskKind.LOCK_TICK),
        Record("guard_released", {"reason": reason}),
    ]


def _force(
    state: EngineState,
    *,
    now: float,
    current_rate: float | None,
    cfg: GuardConfig,
    normal_rate: float,
) -> tuple[EngineState, list[Command]]:
    if current_rate is None or current_rate == normal_rate:
        return state, []
    guard = replace(state.guard, ignore_write_until=now + cfg.ignore_write_window_s)
    return replace(state, guard=guard), [SetRate(rate=normal_rate, reason="provisional_lock")]


def _next_tick(state: EngineState, *, now: float, cfg: GuardConfig) -> Schedule:
    guard = state.guard
    delay = cfg.poll_interval_s
    if guard.forced_since is not None:
        remaining = guard.forced_since + cfg.ceiling_s - now
        delay = max(0.0, min(delay, remaining))
    return Schedule(
        task=TaskKind.LOCK_TICK,
        delay_s=delay,
        token=state.session.token,
        lock_id=guard.lock_id,
    )
