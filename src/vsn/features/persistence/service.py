from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from vsn.core.logging import get_logger

from .duckdb_adapter import DuckDBAdapter


@dataclass(frozen=True)
class JournalEvent:
    """
    One engine diagnostic (classification, rate write, guard transition...).
    """

    run_id: str
    event_id: str
    ts_utc: datetime
    sim_time_s: float

    event_type: str

    content_id: str | None = None
    epoch: int | None = None

    rate: float | None = None
    rule: str | None = None
    payload: dict[str, Any] | None = None


# events that close a content transition; the buffer is flushed right after them
BOUNDARY_EVENTS = frozenset({"guard_released", "readiness_gave_up"})


class JournalService:
    """
    Buffered event sink + flush policy.
    - Hot: buffer in memory
    - Cold: DuckDB, by count, by SimPy timer, on transition boundaries, on close
    """

    def __init__(
        self,
        *,
        adapter: DuckDBAdapter,
        every_n_events: int,
        or_every_seconds: float,
    ) -> None:
        self.adapter = adapter
        self.every_n_events = int(every_n_events)
        self.or_every_seconds = float(or_every_seconds)

        self._buf: list[JournalEvent] = []
        self._logger = get_logger(__name__)

        self._is_open = False
        self._periodic_proc_started = False

    def open(self) -> None:
        if self._is_open:
            return
        self.adapter.open()
        self._is_open = True

    def emit(self, e: JournalEvent) -> None:
        if not self._is_open:
            raise RuntimeError("JournalService not open. Call open() during bootstrap.")

        self._buf.append(e)

        if e.event_type in BOUNDARY_EVENTS:
            self.flush(reason=e.event_type)
        elif self.every_n_events > 0 and len(self._buf) >= self.every_n_events:
            self.flush(reason="count")

    def flush(self, *, reason: str) -> None:
        if not self._buf:
            return

        rows = [self._event_to_row(e) for e in self._buf]
        self._buf.clear()

        result = self.adapter.write_events(rows)

        self._logger.info(
            "flush",
            extra={
                "feature": "journal",
                "event_type": "flush",
                "reason": reason,
                "num_events": result.num_events,
                "duration_ms": result.duration_ms,
            },
        )

    def close(self) -> None:
        if not self._is_open:
            return
        # final flush
        self.flush(reason="shutdown")
        self.adapter.close()
        self._is_open = False

    def start_periodic_flush(self, env) -> None:
        """
        Start a SimPy process that flushes every `or_every_seconds`.
        Call once during bootstrap after env is created.
        """
        if self._periodic_proc_started:
            return
        self._periodic_proc_started = True
        env.process(self._periodic_flush_proc(env))

    def _periodic_flush_proc(self, env):
        while True:
            yield env.timeout(self.or_every_seconds)
            self.flush(reason="timer")

    @staticmethod
    def _event_to_row(e: JournalEvent) -> tuple:
        payload_json = (
            json.dumps(e.payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
            if e.payload
            else None
        )
        return (
            e.run_id,
            e.event_id,
            e.ts_utc.replace(tzinfo=None),
            float(e.sim_time_s),
            e.content_id,
            e.epoch,
            e.event_type,
            e.rate,
            e.rule,
            payload_json,
        )
