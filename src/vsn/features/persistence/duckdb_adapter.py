from __future__ import annotations

import os
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

import duckdb

from .schema import EVENTS_TABLE_NAME, SETTINGS_TABLE_NAME, create_schema


@dataclass(frozen=True)
class DuckDBWriteResult:
    num_events: int
    duration_ms: float


class DuckDBAdapter:
    """
    DuckDB persistence adapter. Owns the connection and schema for both the
    engine journal and the settings table.
    """

    def __init__(self, path: str, *, clean_slate: bool) -> None:
        self.path = path
        self.clean_slate = clean_slate
        self._conn: duckdb.DuckDBPyConnection | None = None

    def open(self) -> None:
        if self._conn is not None:
            return

        if self.clean_slate and os.path.exists(self.path):
            os.remove(self.path)

        # Ensure parent dir exists
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        self._conn = duckdb.connect(self.path)
        create_schema(self._conn)

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("DuckDBAdapter not opened. Call open() first.")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ----------------------------
    # Journal
    # ----------------------------

    def write_events(self, rows: Sequence[tuple]) -> DuckDBWriteResult:
        """
        Writes a batch of rows matching the engine_events schema.
        Returns count and duration.
        """
        if not rows:
            return DuckDBWriteResult(num_events=0, duration_ms=0.0)

        t0 = time.perf_counter()

        self.conn.executemany(
            f"""
            INSERT INTO {EVENTS_TABLE_NAME} (
                run_id, event_id,
                ts_utc, sim_time_s,
                content_id, epoch,
                event_type,
                rate, rule,
                payload_json
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )

        dt_ms = (time.perf_counter() - t0) * 1000.0
        return DuckDBWriteResult(num_events=len(rows), duration_ms=dt_ms)

    def count_events(self, run_id: str, event_type: str | None = None) -> int:
        sql = f"SELECT COUNT(*) FROM {EVENTS_TABLE_NAME} WHERE run_id = ?"
        params: list[str] = [run_id]
        if event_type is not None:
            sql += " AND event_type = ?"
            params.append(event_type)
        res = self.conn.execute(sql, params).fetchone()
        return int(res[0]) if res else 0

    # ----------------------------
    # Settings
    # ----------------------------

    def read_setting(self, key: str) -> str | None:
        res = self.conn.execute(
            f"SELECT value_json FROM {SETTINGS_TABLE_NAME} WHERE key = ?",
            [key],
        ).fetchone()
        return None if res is None else str(res[0])

    def write_setting(self, key: str, value_json: str) -> None:
        self.conn.execute(
            f"INSERT OR REPLACE INTO {SETTINGS_TABLE_NAME} (key, value_json, updated_ts_utc) "
            "VALUES (?, ?, ?)",
            [key, value_json, datetime.now(UTC).replace(tzinfo=None)],
        )

    def setting_keys(self) -> list[str]:
        rows = self.conn.execute(
            f"SELECT key FROM {SETTINGS_TABLE_NAME} ORDER BY key"
        ).fetchall()
        return [str(r[0]) for r in rows]
