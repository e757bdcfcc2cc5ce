# src/storage/json_store.py — v1
"""JSON file-based record store (default STORE_BACKEND=json).

One file per subject under STORE_ROOT. Writes go to a temporary file in
the same directory and are moved into place with os.replace, under a
per-subject asyncio lock, so readers never see a partial record.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

from ojlink.storage.base_record_store import DEFAULT_TTL, BaseRecordStore, PersistenceError

logger = logging.getLogger(__name__)


class JsonRecordStore(BaseRecordStore):
    """File-based record store using JSON files."""

    def __init__(
        self,
        root: Path | str,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(ttl=ttl, clock=clock)
        self._root = Path(root).expanduser()
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _path(self, key: str) -> Path:
        return self._root / f"{key}.json"

    async def _write(self, key: str, payload: str) -> None:
        async with self._lock(key):
            tmp_name: str | None = None
            try:
                self._root.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=f".{key}.", suffix=".tmp")
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, self._path(key))
                tmp_name = None
            except OSError as e:
                raise PersistenceError(f"Failed to write record {key}: {e}") from e
            finally:
                if tmp_name is not None and os.path.exists(tmp_name):
                    os.unlink(tmp_name)

    async def _read(self, key: str) -> str | None:
        path = self._path(key)
        async with self._lock(key):
            try:
                return path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except (OSError, UnicodeDecodeError) as e:
                raise PersistenceError(f"Failed to read record {key}: {e}") from e

    async def _remove(self, key: str) -> None:
        async with self._lock(key):
            try:
                self._path(key).unlink(missing_ok=True)
            except OSError as e:
                raise PersistenceError(f"Failed to delete record {key}: {e}") from e

    async def _keys(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return [p.stem for p in self._root.glob("*.json")]
