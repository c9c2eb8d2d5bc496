from __future__ import annotations

from dataclasses import dataclass, replace

from vsn.features.reconciler.types import ContentSession

from .types import Observation, ReadinessPhase, ReadinessState


@dataclass(frozen=True, slots=True)
class PollOutcome:
    readiness: ReadinessState
    session: ContentSession
    retry: bool

    @property
    def ready(self) -> bool:
        return self.readiness.is_ready


def start() -> ReadinessState:
    return ReadinessState(phase=ReadinessPhase.POLLING, attempts=0)


def poll(
    readiness: ReadinessState,
    session: ContentSession,
    obs: Observation,
    *,
    max_attempts: int,
) -> PollOutcome:
    """
    One readiness poll.

    Whatever was read is kept on the session, even when the poll fails.
    A title equal to the previous item's title counts as missing. After
    max_attempts failed polls the tracker gives up until the next session.
    """
    if readiness.phase is not ReadinessPhase.POLLING:
        return PollOutcome(readiness=readiness, session=session, retry=False)

    complete = True
    title = session.title
    channel = session.channel
    rate = session.observed_rate

    if obs.title:
        if session.previous_title and obs.title == session.previous_title:
            complete = False
        else:
            title = obs.title
    else:
        complete = False

    if obs.channel:
        channel = obs.channel
    else:
        complete = False

    if obs.rate is not None:
        rate = float(obs.rate)
    else:
        complete = False

    session = replace(session, title=title, channel=channel, observed_rate=rate)

    if complete:
        ready = replace(readiness, phase=ReadinessPhase.READY)
        return PollOutcome(readiness=ready, session=session, retry=False)

    attempts = readiness.attempts + 1
    if attempts >= max_attempts:
        gave_up = ReadinessState(phase=ReadinessPhase.GAVE_UP, attempts=attempts)
        return PollOutcome(readiness=gave_up, session=session, retry=False)

    polling = ReadinessState(phase=ReadinessPhase.POLLING, attempts=attempts)
    return PollOutcome(readiness=polling, session=session, retry=True)
