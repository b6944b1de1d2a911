"""
Database connection management.

Provides SQLite connections and the schema for durable dispenser storage.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "dispenser_billing.db"

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS dispenser (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        flow_volume REAL NOT NULL CHECK (flow_volume > 0)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tap_event (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        dispenser_id TEXT NOT NULL REFERENCES dispenser(id),
        status TEXT NOT NULL CHECK (status IN ('open', 'closed')),
        start_time TEXT,
        end_time TEXT,
        flow_volume_snapshot REAL NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_tap_event_dispenser
    ON tap_event (dispenser_id, id)
    """,
)


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a SQLite connection with foreign keys enabled and named-column rows."""
    conn = sqlite3.connect(str(Path(db_path)))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the dispenser and tap_event tables if they don't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        for statement in SCHEMA:
            conn.execute(statement)
        conn.commit()
    finally:
        conn.close()
