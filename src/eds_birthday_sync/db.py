"""
SQLite run history for birthday sync.
"""

import sqlite3
import time
from pathlib import Path

from eds_birthday_sync.models import SyncStats


class StateDatabase:
    """Records one row per sync run so partial failures stay visible afterwards."""

    def __init__(self, db_path: Path, calendar_id: str):
        self.db_path = db_path
        self.calendar_id = calendar_id
        self.conn: sqlite3.Connection | None = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def connect(self):
        """Initialize and connect to the state database."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row  # Enable column access by name
        self._init_schema()

    def _init_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS sync_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                calendar_id TEXT NOT NULL,
                command TEXT NOT NULL,
                started_at INTEGER NOT NULL,
                finished_at INTEGER NOT NULL,
                state TEXT NOT NULL,
                source_events INTEGER NOT NULL DEFAULT 0,
                skipped INTEGER NOT NULL DEFAULT 0,
                events_added INTEGER NOT NULL DEFAULT 0,
                reminders_added INTEGER NOT NULL DEFAULT 0,
                deleted INTEGER NOT NULL DEFAULT 0,
                batches_applied INTEGER NOT NULL DEFAULT 0,
                batches_failed INTEGER NOT NULL DEFAULT 0,
                cancelled INTEGER NOT NULL DEFAULT 0,
                error TEXT
            )
        """)
        self.conn.commit()

    def record_run(
        self,
        command: str,
        started_at: int,
        stats: SyncStats,
        error: str | None = None,
    ) -> int:
        """Insert a run record and return its id."""
        cursor = self.conn.execute(
            "INSERT INTO sync_runs "
            "(calendar_id, command, started_at, finished_at, state, "
            " source_events, skipped, events_added, reminders_added, deleted, "
            " batches_applied, batches_failed, cancelled, error) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                self.calendar_id,
                command,
                started_at,
                int(time.time()),
                stats.state.value,
                stats.source_events,
                stats.skipped,
                stats.events_added,
                stats.reminders_added,
                stats.deleted,
                stats.batches_applied,
                stats.batches_failed,
                int(stats.cancelled),
                error,
            ),
        )
        self.conn.commit()
        return cursor.lastrowid

    def recent_runs(self, limit: int = 10) -> list[sqlite3.Row]:
        """Most recent runs for this calendar, newest first."""
        cursor = self.conn.execute(
            "SELECT * FROM sync_runs WHERE calendar_id = ? ORDER BY id DESC LIMIT ?",
            (self.calendar_id, limit),
        )
        return cursor.fetchall()

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None


def query_recent_runs(db_path: Path, limit: int = 10) -> list[sqlite3.Row]:
    """
    Return the most recent runs across all calendars, newest first.

    Read-only: returns an empty list when the database does not exist.
    """
    if not db_path.exists():
        return []
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    try:
        return conn.execute(
            "SELECT * FROM sync_runs ORDER BY id DESC LIMIT ?", (limit,)
        ).fetchall()
    except sqlite3.OperationalError:
        return []
    finally:
        conn.close()
