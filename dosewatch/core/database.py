"""
SQLite database setup and access layer.
Schema: dose_events, settings.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone

from dosewatch.config import DB_PATH
from dosewatch.core.dose_log import DoseEvent
from dosewatch.core.settings import SETTINGS_FIELDS, Settings

_local = threading.local()

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS dose_events (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp   TEXT    NOT NULL,
    amount      REAL    NOT NULL CHECK(amount > 0),
    note        TEXT
);

CREATE INDEX IF NOT EXISTS idx_dose_ts ON dose_events(timestamp);

CREATE TABLE IF NOT EXISTS settings (
    key         TEXT    PRIMARY KEY,
    value       TEXT    NOT NULL
);
"""


def get_connection() -> sqlite3.Connection:
    """Thread-local SQLite connection with WAL mode. Reconnects if DB_PATH changed."""
    if getattr(_local, "conn", None) is not None and _local.path != DB_PATH:
        close_connection()
    if getattr(_local, "conn", None) is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(DB_PATH), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        _local.conn = conn
        _local.path = DB_PATH
    return _local.conn


def close_connection() -> None:
    """Close this thread's connection (the next call reconnects)."""
    conn = getattr(_local, "conn", None)
    if conn is not None:
        conn.close()
    _local.conn = None


@contextmanager
def db_cursor():
    """Yield a cursor, auto-commit on success, rollback on error."""
    conn = get_connection()
    cur = conn.cursor()
    try:
        yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def init_db():
    """Create tables if they don't exist."""
    with db_cursor() as cur:
        cur.executescript(SCHEMA_SQL)
    print("[dosewatch-db] Database initialized at", DB_PATH, flush=True)


# --- Row conversion ---

def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _row_to_event(row: sqlite3.Row) -> DoseEvent:
    return DoseEvent(
        amount=float(row["amount"]),
        timestamp=_parse_ts(row["timestamp"]),
        note=row["note"],
        id=row["id"],
    )


# --- Dose events ---

def insert_dose_event(event: DoseEvent) -> DoseEvent:
    """Persist an event; returns it with the row id set."""
    with db_cursor() as cur:
        cur.execute(
            "INSERT INTO dose_events (timestamp, amount, note) VALUES (?,?,?)",
            (event.timestamp.isoformat(), event.amount, event.note),
        )
        return replace(event, id=cur.lastrowid)


def load_dose_events() -> list[DoseEvent]:
    with db_cursor() as cur:
        cur.execute("SELECT * FROM dose_events ORDER BY id")
        return [_row_to_event(r) for r in cur.fetchall()]


# --- Settings ---

def save_settings(settings: Settings) -> None:
    with db_cursor() as cur:
        for key, value in settings.to_dict().items():
            cur.execute(
                """INSERT INTO settings (key, value) VALUES (?,?)
                   ON CONFLICT(key) DO UPDATE SET value=excluded.value""",
                (key, json.dumps(value)),
            )


def load_settings(defaults: Settings) -> Settings:
    """Stored values layered over `defaults`. Unknown keys are ignored."""
    with db_cursor() as cur:
        cur.execute("SELECT key, value FROM settings")
        stored = {r["key"]: json.loads(r["value"]) for r in cur.fetchall()}
    changes = {k: v for k, v in stored.items() if k in SETTINGS_FIELDS}
    return replace(defaults, **changes)
