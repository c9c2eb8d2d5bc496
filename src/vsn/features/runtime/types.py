from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from vsn.core.types import RateChange, RateOrigin
from vsn.features.classifier.types import AuxSignalKind


class MetadataProvider(Protocol):
    """
    Reads the displayed item's metadata. Any value may be missing for a while.
    """

    def get_title(self) -> str | None: ...
    def get_channel(self) -> str | None: ...
    def get_aux_signal(self, kind: AuxSignalKind) -> bool: ...


class PlaybackSurface(Protocol):
    def get_rate(self) -> float | None: ...
    def set_rate(self, rate: float, *, origin: RateOrigin) -> None: ...
    def subscribe(self, callback: Callable[[RateChange], None]) -> None: ...


class CriteriaSource(Protocol):
    # SimPy process returning ClassificationCriteria
    def fetch_criteria(self, env) -> Any: ...


class EventSink(Protocol):
    """
    Minimal interface so the runtime is not coupled to the journal.
    """

    def emit(
        self,
        *,
        sim_time_s: float,
        event_type: str,
        content_id: str | None = None,
        epoch: int | None = None,
        rate: float | None = None,
        rule: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None: ...

