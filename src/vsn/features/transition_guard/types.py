from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class GuardState:
    """
    Provisional lock across a content switch.

    forced holds only while the outgoing item was a match and the incoming
    item has not been classified yet. lock_id names the running lock loop;
    ticks carrying any other id are stale.
    """

    forced: bool = False
    forced_since: float | None = None
    ignore_write_until: float = 0.0
    lock_id: int = 0
