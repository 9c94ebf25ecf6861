"""SQLite persistence for time entries."""
from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import List

from .models import TimeEntry

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS time_entries (
    id TEXT PRIMARY KEY,
    ticket_id TEXT NOT NULL,
    description TEXT,
    duration_minutes INTEGER NOT NULL,
    timestamp INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_time_entries_timestamp ON time_entries (timestamp);
"""


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)


def connect(db_path: Path) -> sqlite3.Connection:
    """Open (creating if needed) the entries database."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    ensure_schema(conn)
    return conn


def _row_to_entry(row: sqlite3.Row) -> TimeEntry:
    return TimeEntry(
        id=row["id"],
        ticket_id=row["ticket_id"],
        description=row["description"] or "",
        duration_minutes=int(row["duration_minutes"]),
        timestamp=int(row["timestamp"]),
    )


def fetch_entries(conn: sqlite3.Connection) -> List[TimeEntry]:
    rows = conn.execute(
        "SELECT id, ticket_id, description, duration_minutes, timestamp "
        "FROM time_entries ORDER BY timestamp DESC"
    ).fetchall()
    return [_row_to_entry(row) for row in rows]


def insert_entry(conn: sqlite3.Connection, entry: TimeEntry) -> None:
    with conn:
        conn.execute(
            """
            INSERT INTO time_entries (id, ticket_id, description, duration_minutes, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.ticket_id,
                entry.description,
                entry.duration_minutes,
                entry.timestamp,
            ),
        )


def delete_entry(conn: sqlite3.Connection, entry_id: str) -> int:
    """Delete by id; returns the number of rows removed (0 when absent)."""
    with conn:
        cursor = conn.execute("DELETE FROM time_entries WHERE id = ?", (entry_id,))
    return cursor.rowcount
