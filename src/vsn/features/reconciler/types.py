from __future__ import annotations

from dataclasses import dataclass, field

from vsn.core.commands import SessionToken
from vsn.features.classifier.types import AuxSignals, ClassificationCriteria, ClassificationResult
from vsn.features.override.types import OverrideState
from vsn.features.readiness.types import ReadinessState
from vsn.features.transition_guard.types import GuardState


@dataclass(frozen=True, slots=True)
class ContentSession:
    """
    Bookkeeping for one displayed item.

    previous_title is the title of the item we just left; a poll that still
    reads it means the surface has not re-rendered yet.
    """

    content_id: str | None = None
    title: str | None = None
    channel: str | None = None
    observed_rate: float | None = None
    previous_title: str | None = None
    epoch: int = 0

    @property
    def token(self) -> SessionToken:
        return SessionToken(content_id=self.content_id, epoch=self.epoch)


@dataclass(frozen=True, slots=True)
class EngineState:
    session: ContentSession = field(default_factory=ContentSession)
    readiness: ReadinessState = field(default_factory=ReadinessState)
    override: OverrideState = field(default_factory=OverrideState)
    guard: GuardState = field(default_factory=GuardState)
    user_default_rate: float | None = None
    last_result: ClassificationResult | None = None

    @property
    def last_match(self) -> bool:
        return self.last_result is not None and self.last_result.is_match


@dataclass(frozen=True, slots=True)
class ReconcileInputs:
    """Everything a reconciliation pass reads from the collaborators."""

    on_content_page: bool
    current_rate: float | None
    title: str | None
    channel: str | None
    criteria: ClassificationCriteria
    aux: AuxSignals = field(default_factory=AuxSignals)
