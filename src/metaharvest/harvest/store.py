"""Durable harvest state and normalized record persistence."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import json
from pathlib import Path
import sqlite3
from typing import Any, Mapping, Protocol, runtime_checkable

from metaharvest.harvest.schema import apply_runtime_pragmas, ensure_schema


@runtime_checkable
class StateStore(Protocol):
    """Key/value store holding ``{"id": ..., "value": ...}`` state rows."""

    def get_state(self, state_id: str) -> dict[str, Any] | None:
        """Return the stored row or None."""

    def save_state(self, state: Mapping[str, Any]) -> None:
        """Insert or overwrite the row identified by ``state["id"]``."""


@runtime_checkable
class RecordStore(Protocol):
    def upsert_record(
        self,
        *,
        source_id: str,
        record_id: str,
        record_format: str,
        payload: str,
        document: Mapping[str, Any] | None,
        datestamp: str = "",
    ) -> bool:
        """Store a record; return True when it was new or changed."""

    def mark_deleted(self, *, source_id: str, record_id: str, datestamp: str = "") -> bool:
        """Flag a record as deleted; return True when it changed state."""


@dataclass(slots=True)
class StoredRecord:
    source_id: str
    record_id: str
    format: str
    fingerprint: str
    payload: str
    document: dict[str, Any] | None
    deleted: bool
    datestamp: str | None


def payload_fingerprint(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class SqliteStore:
    """Thin transactional layer over the harvest SQLite schema.

    Implements both ``StateStore`` and ``RecordStore``. A connection is bound
    to the thread that opened it, so concurrent harvests open one store each.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._connection = sqlite3.connect(str(self._db_path))
        self._connection.row_factory = sqlite3.Row
        apply_runtime_pragmas(self._connection)
        ensure_schema(self._connection)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "SqliteStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_state(self, state_id: str) -> dict[str, Any] | None:
        row = self._connection.execute(
            "SELECT id, value FROM state WHERE id = ?",
            (state_id,),
        ).fetchone()
        if row is None:
            return None
        return {"id": row["id"], "value": row["value"]}

    def save_state(self, state: Mapping[str, Any]) -> None:
        state_id = str(state.get("id") or "").strip()
        if not state_id:
            raise ValueError("state id cannot be empty")
        with self._connection:
            self._connection.execute(
                """
                INSERT INTO state(id, value)
                VALUES(?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    value=excluded.value,
                    updated_at=CURRENT_TIMESTAMP
                """,
                (state_id, state.get("value")),
            )

    def upsert_record(
        self,
        *,
        source_id: str,
        record_id: str,
        record_format: str,
        payload: str,
        document: Mapping[str, Any] | None,
        datestamp: str = "",
    ) -> bool:
        fingerprint = payload_fingerprint(payload)
        existing = self._connection.execute(
            "SELECT fingerprint, deleted FROM records WHERE source_id = ? AND record_id = ?",
            (source_id, record_id),
        ).fetchone()
        if existing is not None and existing["fingerprint"] == fingerprint and not existing["deleted"]:
            return False

        encoded = json.dumps(dict(document), ensure_ascii=False) if document is not None else None
        with self._connection:
            self._connection.execute(
                """
                INSERT INTO records(source_id, record_id, format, fingerprint, payload, document, deleted, datestamp)
                VALUES(?, ?, ?, ?, ?, ?, 0, ?)
                ON CONFLICT(source_id, record_id) DO UPDATE SET
                    format=excluded.format,
                    fingerprint=excluded.fingerprint,
                    payload=excluded.payload,
                    document=excluded.document,
                    deleted=0,
                    datestamp=excluded.datestamp,
                    updated_at=CURRENT_TIMESTAMP
                """,
                (source_id, record_id, record_format, fingerprint, payload, encoded, datestamp or None),
            )
        return True

    def mark_deleted(self, *, source_id: str, record_id: str, datestamp: str = "") -> bool:
        with self._connection:
            cursor = self._connection.execute(
                """
                UPDATE records
                SET deleted = 1, document = NULL, datestamp = ?, updated_at = CURRENT_TIMESTAMP
                WHERE source_id = ? AND record_id = ? AND deleted = 0
                """,
                (datestamp or None, source_id, record_id),
            )
        return cursor.rowcount > 0

    def get_record(self, source_id: str, record_id: str) -> StoredRecord | None:
        row = self._connection.execute(
            """
            SELECT source_id, record_id, format, fingerprint, payload, document, deleted, datestamp
            FROM records
            WHERE source_id = ? AND record_id = ?
            """,
            (source_id, record_id),
        ).fetchone()
        if row is None:
            return None
        return StoredRecord(
            source_id=row["source_id"],
            record_id=row["record_id"],
            format=row["format"],
            fingerprint=row["fingerprint"],
            payload=row["payload"],
            document=json.loads(row["document"]) if row["document"] else None,
            deleted=bool(row["deleted"]),
            datestamp=row["datestamp"],
        )

    def count_records(self, source_id: str, *, deleted: bool = False) -> int:
        row = self._connection.execute(
            "SELECT COUNT(*) AS total FROM records WHERE source_id = ? AND deleted = ?",
            (source_id, 1 if deleted else 0),
        ).fetchone()
        return int(row["total"])
