from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import simpy

from vsn.core.config import AppConfig
from vsn.core.ids import IdsService, deterministic_run_id_from_config
from vsn.core.logging import get_logger
from vsn.core.types import RunContext
from vsn.features.persistence.duckdb_adapter import DuckDBAdapter
from vsn.features.persistence.service import JournalEvent, JournalService
from vsn.features.playback_sim.parser import parse_scenario
from vsn.features.playback_sim.service import RateWriteLog, ScenarioDriver, SimulatedPage
from vsn.features.runtime.service import EngineRuntime
from vsn.features.settings.service import SettingsService
from vsn.features.settings.stores import DuckDBSettingsStore

# time left after the last timeline step for retries and locks to settle
SETTLE_S = 10.0


@dataclass(frozen=True)
class BootstrapResult:
    ctx: RunContext
    duckdb_path: str
    final_rate: float | None
    rate_writes: tuple[RateWriteLog, ...]


def bootstrap_run(cfg: AppConfig, config_path: str | None = None) -> BootstrapResult:
    raw: dict[str, Any] = cfg.raw if isinstance(cfg.raw, dict) else {}

    # ----- run identity -----
    run_id = deterministic_run_id_from_config(raw) if cfg.run.run_id == "auto" else cfg.run.run_id
    logger = get_logger("vsn", cfg.logging.level)

    ids = IdsService(run_id=run_id)

    start_dt_utc = datetime.fromisoformat(cfg.run.start_date).replace(tzinfo=UTC)
    ctx = RunContext(run_id=run_id, start_dt_utc=start_dt_utc)

    scenario = parse_scenario(raw.get("scenario"))

    env = simpy.Environment()

    # ----- cold storage -----
    adapter = DuckDBAdapter(path=cfg.storage.duckdb_path, clean_slate=cfg.storage.clean_slate)
    journal = JournalService(
        adapter=adapter,
        every_n_events=cfg.storage.flush.every_n_events,
        or_every_seconds=cfg.storage.flush.or_every_seconds,
    )
    journal.open()
    try:
        journal.start_periodic_flush(env)

        # ----- settings -----
        store = DuckDBSettingsStore(adapter)
        for key, value in scenario.settings.items():
            store.set(str(key), value)
        settings = SettingsService(store, latency_s=cfg.engine.settings_latency_s)

        # ------------------------------------------------------------------------------
        # Event sink used by EngineRuntime: MUST match its EventSink Protocol:
        #   emit(*, sim_time_s, event_type, content_id?, epoch?, rate?, rule?, payload?)
        # ------------------------------------------------------------------------------
        class JournalEventSink:
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
            ) -> None:
                journal.emit(
                    JournalEvent(
                        run_id=ctx.run_id,
                        event_id=ids.next_id("evt"),
                        ts_utc=start_dt_utc + timedelta(seconds=sim_time_s),
                        sim_time_s=sim_time_s,
                        event_type=event_type,
                        content_id=content_id,
                        epoch=epoch,
                        rate=rate,
                        rule=rule,
                        payload=payload,
                    )
                )

        sink = JournalEventSink()

        # ----- page + engine -----
        page = SimulatedPage(
            env,
            initial_rate=scenario.initial_rate,
            report_origin=scenario.report_origin,
        )
        runtime = EngineRuntime(
            env=env,
            metadata=page,
            settings=settings,
            cfg=cfg.engine,
            events=sink,
        )
        driver = ScenarioDriver(env=env, page=page, signals=runtime, scenario=scenario)
        driver.start()

        # ----- run lifecycle -----
        sink.emit(
            sim_time_s=float(env.now),
            event_type="run_started",
            payload={"config_path": config_path} if config_path else None,
        )

        horizon_s = cfg.run.until_s
        if horizon_s is None:
            horizon_s = scenario.last_step_at + SETTLE_S
        logger.info("starting engine run", extra={"run_id": ctx.run_id, "feature": "bootstrap"})
        env.run(until=horizon_s)

        sink.emit(
            sim_time_s=float(env.now),
            event_type="run_finished",
            rate=page.get_rate(),
        )
        journal.flush(reason="bootstrap_finish")
    finally:
        journal.close()

    return BootstrapResult(
        ctx=ctx,
        duckdb_path=cfg.storage.duckdb_path,
        final_rate=page.get_rate(),
        rate_writes=tuple(page.writes),
    )
