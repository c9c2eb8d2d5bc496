from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

EXTRA_FIELDS = ("run_id", "content_id", "feature", "event_type", "rate", "rule")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts_utc": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        # attach extra fields if present
        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """
    Loggers below the "vsn" root propagate to it; only the root gets a handler.
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level.upper())

    if name != "vsn" and name.startswith("vsn."):
        return logger

    if logger.handlers:
        return logger  # avoid double handlers in tests

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
