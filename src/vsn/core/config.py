from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class RunConfig:
    run_id: str
    start_date: str = "2026-01-01"
    until_s: float | None = None


@dataclass(frozen=True)
class ReadinessConfig:
    max_attempts: int = 10
    interval_s: float = 0.5


@dataclass(frozen=True)
class GuardConfig:
    poll_interval_s: float = 0.1
    ceiling_s: float = 5.0
    ignore_write_window_s: float = 1.5


@dataclass(frozen=True)
class EngineConfig:
    normal_rate: float = 1.0
    readiness: ReadinessConfig = ReadinessConfig()
    guard: GuardConfig = GuardConfig()
    visibility_debounce_s: float = 0.1
    settings_latency_s: float = 0.0


@dataclass(frozen=True)
class FlushConfig:
    every_n_events: int = 500
    or_every_seconds: float = 30.0


@dataclass(frozen=True)
class StorageConfig:
    duckdb_path: str
    clean_slate: bool = True
    flush: FlushConfig = FlushConfig()


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class AppConfig:
    run: RunConfig
    engine: EngineConfig
    storage: StorageConfig
    logging: LoggingConfig
    raw: dict[str, Any]  # original parsed YAML (for hashing / scenario)


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Config YAML must parse to a dict at the top level.")
    return data


def _positive(name: str, value: Any) -> float:
    v = float(value)
    if v <= 0:
        raise ValueError(f"{name} must be > 0, got {value!r}")
    return v


def _non_negative(name: str, value: Any) -> float:
    v = float(value)
    if v < 0:
        raise ValueError(f"{name} must be >= 0, got {value!r}")
    return v


def parse_engine_config(engine: dict[str, Any] | None) -> EngineConfig:
    engine = engine or {}
    if not isinstance(engine, dict):
        raise TypeError("engine must be a mapping/dict")

    readiness = engine.get("readiness") or {}
    guard = engine.get("guard") or {}

    max_attempts = int(readiness.get("max_attempts", 10))
    if max_attempts < 1:
        raise ValueError("engine.readiness.max_attempts must be >= 1")

    return EngineConfig(
        normal_rate=_positive("engine.normal_rate", engine.get("normal_rate", 1.0)),
        readiness=ReadinessConfig(
            max_attempts=max_attempts,
            interval_s=_positive(
                "engine.readiness.interval_s", readiness.get("interval_s", 0.5)
            ),
        ),
        guard=GuardConfig(
            poll_interval_s=_positive(
                "engine.guard.poll_interval_s", guard.get("poll_interval_s", 0.1)
            ),
            ceiling_s=_positive("engine.guard.ceiling_s", guard.get("ceiling_s", 5.0)),
            ignore_write_window_s=_non_negative(
                "engine.guard.ignore_write_window_s", guard.get("ignore_write_window_s", 1.5)
            ),
        ),
        visibility_debounce_s=_non_negative(
            "engine.visibility_debounce_s", engine.get("visibility_debounce_s", 0.1)
        ),
        settings_latency_s=_non_negative(
            "engine.settings_latency_s", engine.get("settings_latency_s", 0.0)
        ),
    )


def parse_config(data: dict[str, Any]) -> AppConfig:
    for key in ["run", "storage", "logging"]:
        if key not in data:
            raise ValueError(f"Missing required top-level config section: '{key}'")

    run = data.get("run") or {}
    storage = data.get("storage") or {}
    logging_cfg = data.get("logging") or {}
    flush = storage.get("flush") or {}

    until_raw = run.get("until_s")
    run_cfg = RunConfig(
        run_id=str(run.get("run_id", "auto")),
        start_date=str(run.get("start_date", "2026-01-01")),
        until_s=None if until_raw is None else _positive("run.until_s", until_raw),
    )

    storage_cfg = StorageConfig(
        duckdb_path=str(storage["duckdb_path"]),
        clean_slate=bool(storage.get("clean_slate", True)),
        flush=FlushConfig(
            every_n_events=int(flush.get("every_n_events", 500)),
            or_every_seconds=_positive(
                "storage.flush.or_every_seconds", flush.get("or_every_seconds", 30.0)
            ),
        ),
    )

    log_cfg = LoggingConfig(level=str(logging_cfg.get("level", "INFO")).upper())

    return AppConfig(
        run=run_cfg,
        engine=parse_engine_config(data.get("engine")),
        storage=storage_cfg,
        logging=log_cfg,
        raw=data,
    )


def load_config(path: str | Path) -> AppConfig:
    data = load_yaml(path)
    return parse_config(data)
