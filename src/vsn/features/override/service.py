from __future__ import annotations

from dataclasses import replace

from vsn.core.commands import Command, Record
from vsn.core.types import RateChange, RateOrigin
from vsn.features.classifier.types import ClassificationResult
from vsn.features.reconciler.types import EngineState
from vsn.features.transition_guard.types import GuardState

from .types import OverrideState


def is_user_change(change: RateChange, guard: GuardState, now: float) -> bool:
    """
    Attribute a rate-change notification to the user or not, from its tag.

    Engine-tagged writes never count and user-tagged ones always do. An
    untagged change is taken for the echo of a provisional lock write only
    while the lock is held and its ignore window is open.
    """
    if change.origin is RateOrigin.ENGINE:
        return False
    if change.origin is RateOrigin.USER:
        return True
    return not (guard.forced and now < guard.ignore_write_until)


def observe(
    state: EngineState, change: RateChange, now: float
) -> tuple[EngineState, list[Command], bool]:
    """
    Feed one rate-change notification. Returns (state, commands, is_user).
    """
    session = replace(state.session, observed_rate=float(change.rate))
    state = replace(state, session=session)

    if not is_user_change(change, state.guard, now):
        return state, [], False

    state = mark_override(state, float(change.rate))
    cmds: list[Command] = [
        Record(
            "override",
            {"rate": float(change.rate), "origin": change.origin.value},
        )
    ]
    return state, cmds, True


def mark_override(state: EngineState, rate: float) -> EngineState:
    return replace(state, override=OverrideState(active=True, user_rate=rate))


def clear_override(state: EngineState) -> EngineState:
    return replace(state, override=OverrideState())


def learn_default(
    state: EngineState,
    rate: float,
    result: ClassificationResult,
    *,
    normal_rate: float,
) -> tuple[EngineState, list[Command]]:
    """
    A manual rate on a non-matching item becomes the rate restored for later
    non-matching items.
    """
    if result.is_match or rate == normal_rate:
        return state, []
    state = replace(state, user_default_rate=float(rate))
    return state, [Record("user_default_learned", {"rate": float(rate), "rule": result.rule.value})]
