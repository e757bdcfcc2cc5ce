# src/storage/store_factory.py — v1
"""Factory: instantiate the persistent record store from configuration."""

from __future__ import annotations

from datetime import timedelta

from ojlink.config.settings import Settings
from ojlink.storage.base_record_store import BaseRecordStore


class UnsupportedStoreError(ValueError):
    """Raised when STORE_BACKEND names no known backend."""


def create_record_store(settings: Settings) -> BaseRecordStore:
    """Create the appropriate record store based on settings.

    Args:
        settings: Application settings (STORE_BACKEND env var).

    Returns:
        BaseRecordStore instance.

    Raises:
        UnsupportedStoreError: If backend type is not supported.
    """
    backend = settings.store_backend
    root = settings.store_root.expanduser()
    ttl = timedelta(hours=settings.store_ttl_hours)

    if backend == "json":
        from ojlink.storage.json_store import JsonRecordStore
        return JsonRecordStore(root, ttl=ttl)

    if backend == "sqlite":
        from ojlink.storage.sqlite_store import SqliteRecordStore
        return SqliteRecordStore(root / "records.db", ttl=ttl)

    raise UnsupportedStoreError(f"Unsupported store backend: {backend!r}")
