from __future__ import annotations

EVENTS_TABLE_NAME = "engine_events"
SETTINGS_TABLE_NAME = "settings"

EVENTS_DDL = f"""
CREATE TABLE IF NOT EXISTS {EVENTS_TABLE_NAME} (
    run_id TEXT NOT NULL,
    event_id TEXT NOT NULL,

    ts_utc TIMESTAMP NOT NULL,
    sim_time_s DOUBLE NOT NULL,

    content_id TEXT,
    epoch INTEGER,

    event_type TEXT NOT NULL,

    rate DOUBLE,
    rule TEXT,

    payload_json TEXT
);
"""

SETTINGS_DDL = f"""
CREATE TABLE IF NOT EXISTS {SETTINGS_TABLE_NAME} (
    key TEXT PRIMARY KEY,
    value_json TEXT NOT NULL,
    updated_ts_utc TIMESTAMP NOT NULL
);
"""

EVENTS_INDEXES = [
    f"CREATE INDEX IF NOT EXISTS idx_engine_events_run_id ON {EVENTS_TABLE_NAME}(run_id);",
    f"CREATE INDEX IF NOT EXISTS idx_engine_events_event_type ON {EVENTS_TABLE_NAME}(event_type);",
]


def create_schema(conn) -> None:
    """
    Create tables/indexes. No migrations. Safe to call per run.
    """
    conn.execute(EVENTS_DDL)
    conn.execute(SETTINGS_DDL)
    for ddl in EVENTS_INDEXES:
        conn.execute(ddl)
