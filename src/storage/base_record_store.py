# src/storage/base_record_store.py — v1
"""Abstract subject-keyed snapshot store.

Backends only move serialized records in and out; key normalization,
TTL expiry and (de)serialization live here so every backend behaves the
same way.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta

from pydantic import ValidationError

from ojlink.core.models import PersistentRecord, utc_now
from ojlink.core.normalizer import normalize_subject_id

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)


class PersistenceError(Exception):
    """Raised when the underlying storage cannot be read or written."""


class BaseRecordStore(ABC):
    """Unified interface for persistent snapshot backends."""

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._ttl = ttl
        self._clock = clock or utc_now

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def save(self, subject_id: str, record: PersistentRecord) -> None:
        """Replace the stored record for a subject.

        Raises:
            ValueError: If subject_id has no digits.
            PersistenceError: On storage failure.
        """
        key = normalize_subject_id(subject_id)
        record = record.model_copy(update={"subject_id": key, "saved_at": self._clock()})
        await self._write(key, record.to_json())
        logger.debug("Saved %d entries for subject %s", len(record.entries), key)

    async def load(self, subject_id: str) -> PersistentRecord | None:
        """Return the subject's record, or None if absent, stale or corrupt.

        Raises:
            ValueError: If subject_id has no digits.
            PersistenceError: On storage failure.
        """
        key = normalize_subject_id(subject_id)
        payload = await self._read(key)
        if payload is None:
            return None
        try:
            record = PersistentRecord.model_validate_json(payload)
        except ValidationError as e:
            logger.warning("Discarding unreadable record for subject %s: %s", key, e)
            return None

        age = self._clock() - record.saved_at
        if age > self._ttl:
            logger.info("Record for subject %s is stale (%s old), ignoring", key, age)
            return None
        return record

    async def delete(self, subject_id: str) -> None:
        """Remove a subject's record if present."""
        await self._remove(normalize_subject_id(subject_id))

    async def list_subjects(self) -> list[str]:
        """All stored subject keys, stale ones included."""
        return sorted(await self._keys())

    @abstractmethod
    async def _write(self, key: str, payload: str) -> None:
        """Atomically replace the payload stored under key."""

    @abstractmethod
    async def _read(self, key: str) -> str | None:
        """Return the payload stored under key, or None."""

    @abstractmethod
    async def _remove(self, key: str) -> None:
        """Delete the payload stored under key."""

    @abstractmethod
    async def _keys(self) -> list[str]:
        """List stored keys."""
