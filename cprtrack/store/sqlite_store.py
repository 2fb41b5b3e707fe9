"""SQLite-backed snapshot and history store for cprtrack.

Design principles:
- At most one snapshot row: the live session, minus transient fields
- History records are append-only, ordered by insertion
- A snapshot that cannot be parsed is treated as absent, never fatal
- Thread-safe for concurrent reads and writes
"""

import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from cprtrack.models.session import HistoryRecord, Session


logger = logging.getLogger(__name__)


class SessionStore:
    """Snapshot and history persistence backed by SQLite.

    Thread-safe: uses per-thread connections for concurrent access.
    For in-memory databases, uses a unique shared cache URI to allow multi-threaded access
    while keeping each store instance isolated.
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory.
        """
        self._original_path = str(db_path)

        # Each in-memory store gets its own shared-cache database
        if self._original_path == ":memory:":
            unique_id = uuid.uuid4().hex[:8]
            self.db_path = f"file:cprtrack_{unique_id}?mode=memory&cache=shared"
            self._uri = True
        else:
            self.db_path = self._original_path
            self._uri = False

        self._local = threading.local()
        self._write_lock = threading.Lock()
        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create a thread-local database connection."""
        if not hasattr(self._local, 'conn') or self._local.conn is None:
            self._local.conn = sqlite3.connect(
                self.db_path,
                uri=self._uri,
                check_same_thread=False,
                timeout=30.0,
            )
            self._local.conn.row_factory = sqlite3.Row
            if not self._uri:
                self._local.conn.execute("PRAGMA journal_mode=WAL")
        return self._local.conn

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        conn = self._get_conn()
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS snapshot (
                slot INTEGER PRIMARY KEY CHECK (slot = 0),
                saved_at TEXT NOT NULL,
                status TEXT NOT NULL,
                state_json TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS history (
                pos INTEGER PRIMARY KEY AUTOINCREMENT,
                record_id TEXT NOT NULL UNIQUE,
                date TEXT NOT NULL,
                outcome TEXT NOT NULL,
                record_json TEXT NOT NULL
            );
            """
        )
        conn.commit()

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def load_snapshot(self) -> Session | None:
        """Load the persisted session.

        Returns:
            The session, or None if absent or unreadable.
        """
        conn = self._get_conn()
        row = conn.execute("SELECT state_json FROM snapshot WHERE slot = 0").fetchone()
        if row is None:
            return None
        try:
            return Session.model_validate_json(row["state_json"])
        except ValidationError as e:
            logger.warning("Discarding unreadable session snapshot: %s", e)
            return None

    def save_snapshot(self, session: Session) -> None:
        """Replace the persisted session."""
        with self._write_lock:
            conn = self._get_conn()
            conn.execute(
                """
                INSERT INTO snapshot (slot, saved_at, status, state_json)
                VALUES (0, ?, ?, ?)
                ON CONFLICT(slot) DO UPDATE SET
                    saved_at = excluded.saved_at,
                    status = excluded.status,
                    state_json = excluded.state_json
                """,
                (
                    datetime.now(timezone.utc).isoformat(),
                    session.status.value,
                    session.model_dump_json(),
                ),
            )
            conn.commit()

    def clear_snapshot(self) -> None:
        with self._write_lock:
            conn = self._get_conn()
            conn.execute("DELETE FROM snapshot")
            conn.commit()

    def snapshot_status(self) -> str | None:
        """Status of the persisted session without parsing it, or None."""
        conn = self._get_conn()
        row = conn.execute("SELECT status FROM snapshot WHERE slot = 0").fetchone()
        return row["status"] if row else None

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def append_history(self, record: HistoryRecord) -> None:
        """Append a finished code to history.

        Raises:
            ValueError: If a record with the same id already exists.
        """
        with self._write_lock:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO history (record_id, date, outcome, record_json)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.date.isoformat(),
                        record.outcome.value,
                        record.model_dump_json(),
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise ValueError(f"History record already exists: {record.id}") from e

    def load_history(self) -> list[HistoryRecord]:
        """All readable history records, oldest first."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT record_id, record_json FROM history ORDER BY pos")
        records = []
        for row in cursor.fetchall():
            record = self._row_to_record(row)
            if record is not None:
                records.append(record)
        return records

    def get_history_record(self, record_id: str) -> HistoryRecord | None:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT record_id, record_json FROM history WHERE record_id = ?",
            (record_id,),
        ).fetchone()
        return self._row_to_record(row) if row else None

    def delete_history_record(self, record_id: str) -> bool:
        """Delete one record.

        Returns:
            True if a record was deleted.
        """
        with self._write_lock:
            conn = self._get_conn()
            cursor = conn.execute("DELETE FROM history WHERE record_id = ?", (record_id,))
            conn.commit()
            return cursor.rowcount > 0

    def raw_history(self) -> list[tuple[str, str]]:
        """(record_id, record_json) pairs, unparsed. Used by health checks."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT record_id, record_json FROM history ORDER BY pos")
        return [(row["record_id"], row["record_json"]) for row in cursor.fetchall()]

    def raw_snapshot(self) -> str | None:
        conn = self._get_conn()
        row = conn.execute("SELECT state_json FROM snapshot WHERE slot = 0").fetchone()
        return row["state_json"] if row else None

    def close(self) -> None:
        """Close the thread-local database connection."""
        if hasattr(self._local, 'conn') and self._local.conn:
            self._local.conn.close()
            self._local.conn = None

    def _row_to_record(self, row: sqlite3.Row) -> HistoryRecord | None:
        try:
            return HistoryRecord.model_validate_json(row["record_json"])
        except ValidationError as e:
            logger.warning("Skipping unreadable history record %s: %s", row["record_id"], e)
            return None

    def __enter__(self) -> "SessionStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
