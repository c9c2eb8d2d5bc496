from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class RunContext:
    run_id: str
    start_dt_utc: datetime


class RateOrigin(str, Enum):
    """
    Origin tag carried by every rate write and every rate-change notification.

    UNKNOWN is what a surface reports when it cannot tell who wrote the rate.
    """

    ENGINE = "engine"
    USER = "user"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class RateChange:
    rate: float
    origin: RateOrigin = RateOrigin.UNKNOWN
