from __future__ import annotations

from dataclasses import replace

from vsn.core.commands import Cancel, Command, Record, Schedule, SetRate, TaskKind
from vsn.core.config import EngineConfig
from vsn.features.classifier.service import classify
from vsn.features.override.types import OverrideState
from vsn.features.readiness import service as readiness
from vsn.features.readiness.types import Observation, ReadinessPhase
from vsn.features.transition_guard import service as guard

from .types import ContentSession, EngineState, ReconcileInputs


def reset_session(
    state: EngineState,
    content_id: str,
    *,
    now: float,
    current_rate: float | None,
    cfg: EngineConfig,
) -> tuple[EngineState, list[Command]]:
    """
    Start (or restart) the session for content_id.

    The reset is complete before the first poll is scheduled, and the epoch
    bump makes every poll or reconciliation still in flight for the old
    session stale.
    """
    cmds: list[Command] = [Cancel(TaskKind.POLL), Cancel(TaskKind.RECONCILE)]
    old = state.session
    epoch = old.epoch + 1

    if old.content_id and content_id != old.content_id:
        if not state.guard.forced:
            state, guard_cmds = guard.begin(
                state,
                now=now,
                current_rate=current_rate,
                cfg=cfg.guard,
                normal_rate=cfg.normal_rate,
            )
            cmds.extend(guard_cmds)
        session = ContentSession(
            content_id=content_id,
            previous_title=old.title,
            epoch=epoch,
        )
        state = replace(
            state,
            session=session,
            override=OverrideState(),
            last_result=None,
        )
    elif not old.content_id:
        session = ContentSession(content_id=content_id, epoch=epoch)
        state = replace(
            state,
            session=session,
            override=OverrideState(),
            last_result=None,
        )
    else:
        # same item again (e.g. re-navigation): keep what we know
        state = replace(state, session=replace(old, previous_title=None, epoch=epoch))

    cmds.append(
        Record(
            "session_reset",
            {"previous_content_id": old.content_id, "epoch": epoch},
        )
    )
    token = state.session.token

    if old.content_id == content_id and state.readiness.is_ready:
        cmds.append(Schedule(task=TaskKind.RECONCILE, delay_s=0.0, token=token))
        return state, cmds

    state = replace(state, readiness=readiness.start())
    cmds.append(Schedule(task=TaskKind.POLL, delay_s=0.0, token=token))
    return state, cmds


def on_poll(
    state: EngineState, obs: Observation, *, cfg: EngineConfig
) -> tuple[EngineState, list[Command]]:
    outcome = readiness.poll(
        state.readiness,
        state.session,
        obs,
        max_attempts=cfg.readiness.max_attempts,
    )
    state = replace(state, readiness=outcome.readiness, session=outcome.session)
    token = state.session.token

    if outcome.ready:
        return state, [
            Record("readiness_ready", {"attempts": outcome.readiness.attempts}),
            Schedule(task=TaskKind.RECONCILE, delay_s=0.0, token=token),
        ]
    if outcome.retry:
        return state, [
            Schedule(task=TaskKind.POLL, delay_s=cfg.readiness.interval_s, token=token),
        ]
    if outcome.readiness.phase is ReadinessPhase.GAVE_UP:
        return state, [
            Record("readiness_gave_up", {"attempts": outcome.readiness.attempts}),
        ]
    return state, []


def on_metadata_mutation(
    state: EngineState, *, title: str | None, channel: str | None
) -> tuple[EngineState, list[Command]]:
    session = state.session
    cmds: list[Command] = []

    if channel and channel != session.channel:
        session = replace(session, channel=channel)

    if title and title != session.title:
        session = replace(session, title=title)
        if state.readiness.is_ready:
            cmds.append(Schedule(task=TaskKind.RECONCILE, delay_s=0.0, token=session.token))

    return replace(state, session=session), cmds


def reconcile(
    state: EngineState, inputs: ReconcileInputs, *, normal_rate: float
) -> tuple[EngineState, list[Command]]:
    """
    Resolve the rate for the current item and emit the write, if any.

    Skips off content pages, before readiness and while the user overrides.
    On a match the normalized rate is written; otherwise the user's default
    rate is restored when known. A second pass without changes writes nothing.
    """
    if not inputs.on_content_page:
        return state, []
    if not state.readiness.is_ready:
        return state, []
    if state.override.active:
        return state, [Record("override_active", {"rate": state.override.user_rate})]
    if inputs.current_rate is None:
        return state, []

    current = float(inputs.current_rate)
    cmds: list[Command] = []

    if current != normal_rate and not state.user_default_rate:
        state = replace(state, user_default_rate=current)
        cmds.append(Record("user_default_captured", {"rate": current}))

    title = inputs.title or state.session.title
    channel = inputs.channel or state.session.channel
    result = classify(title, channel, inputs.criteria, inputs.aux)

    state = replace(state, last_result=result)
    cmds.append(
        Record(
            "classified",
            {"is_match": result.is_match, "rule": result.rule.value, "title": title},
        )
    )

    state, released = guard.release(state, reason="classified")
    cmds.extend(released)

    target: float | None = None
    if result.is_match:
        if current != normal_rate:
            target = normal_rate
    elif state.user_default_rate and current != state.user_default_rate:
        target = state.user_default_rate

    if target is not None:
        reason = "match" if result.is_match else "restore_user_default"
        cmds.append(SetRate(rate=target, reason=reason))
        state = replace(state, session=replace(state.session, observed_rate=target))

    return state, cmds
