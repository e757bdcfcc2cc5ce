# src/storage/sqlite_store.py — v1
"""SQLite-based record store (STORE_BACKEND=sqlite).

Uses stdlib sqlite3. One row per subject,
replaced inside a single transaction.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

from ojlink.core.models import utc_now
from ojlink.storage.base_record_store import DEFAULT_TTL, BaseRecordStore, PersistenceError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS subject_records (
    subject_id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class SqliteRecordStore(BaseRecordStore):
    """SQLite-backed record store."""

    def __init__(
        self,
        db_path: Path | str,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(ttl=ttl, clock=clock)
        self._db_path = Path(db_path).expanduser()
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path))
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Cannot open record database {self._db_path}: {e}") from e

    async def _write(self, key: str, payload: str) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    """INSERT OR REPLACE INTO subject_records (subject_id, data, updated_at)
                       VALUES (?, ?, ?)""",
                    (key, payload, utc_now().isoformat()),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write record {key}: {e}") from e

    async def _read(self, key: str) -> str | None:
        try:
            row = self._conn.execute(
                "SELECT data FROM subject_records WHERE subject_id = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read record {key}: {e}") from e
        return row[0] if row else None

    async def _remove(self, key: str) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM subject_records WHERE subject_id = ?", (key,))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete record {key}: {e}") from e

    async def _keys(self) -> list[str]:
        try:
            rows = self._conn.execute("SELECT subject_id FROM subject_records").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list records: {e}") from e
        return [row[0] for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
