"""SQLite schema and pragmas for harvest state and normalized records."""

from __future__ import annotations

import sqlite3


PRAGMA_BUSY_TIMEOUT_MS = 5000


def apply_runtime_pragmas(connection: sqlite3.Connection) -> None:
    """WAL lets concurrently harvested sources share one database file."""

    connection.execute("PRAGMA journal_mode=WAL;")
    connection.execute(f"PRAGMA busy_timeout={PRAGMA_BUSY_TIMEOUT_MS};")
    connection.execute("PRAGMA synchronous=NORMAL;")


def ensure_schema(connection: sqlite3.Connection) -> None:
    """Create state and record tables if missing."""

    connection.executescript(
        """
        CREATE TABLE IF NOT EXISTS state (
            id TEXT PRIMARY KEY,
            value TEXT,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS records (
            source_id TEXT NOT NULL,
            record_id TEXT NOT NULL,
            format TEXT NOT NULL,
            fingerprint TEXT NOT NULL,
            payload TEXT NOT NULL,
            document TEXT,
            deleted INTEGER NOT NULL DEFAULT 0,
            datestamp TEXT,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY(source_id, record_id)
        );

        CREATE INDEX IF NOT EXISTS idx_records_source_deleted
            ON records(source_id, deleted);
        """
    )
