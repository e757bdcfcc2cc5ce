# tests/unit/core/test_unit_models.py — v2
"""Tests for core/models.py — wire format and timestamp coercion."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from ojlink.core.models import (
    BatchStats,
    CacheEntry,
    PersistentRecord,
    RecordStats,
    VerificationOutcome,
    to_epoch_ms,
)

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
T0_MS = 1772452800000


class TestEpochMs:
    def test_aware(self):
        assert to_epoch_ms(T0) == T0_MS

    def test_naive_taken_as_utc(self):
        assert to_epoch_ms(T0.replace(tzinfo=None)) == T0_MS


class TestCacheEntry:
    def test_defaults(self):
        entry = CacheEntry(original_text="Vara", normalized_key="vara")
        assert entry.is_linked is False
        assert entry.role is None
        assert entry.match_type == "None"
        assert entry.last_updated.tzinfo is not None

    def test_camel_case_dump(self):
        entry = CacheEntry(
            original_text="1ª Vara",
            normalized_key="1a vara",
            is_linked=True,
            matched_text="1a vara",
            match_type="Exact",
            role="Assessor",
            last_updated=T0,
        )
        data = entry.model_dump(by_alias=True)
        assert data["originalText"] == "1ª Vara"
        assert data["normalizedKey"] == "1a vara"
        assert data["isLinked"] is True
        assert data["lastUpdated"] == T0_MS

    def test_parse_epoch_ms(self):
        entry = CacheEntry.model_validate(
            {"originalText": "x", "normalizedKey": "x", "lastUpdated": T0_MS}
        )
        assert entry.last_updated == T0

    def test_missing_role_is_unknown(self):
        entry = CacheEntry.model_validate(
            {"originalText": "x", "normalizedKey": "x", "isLinked": True}
        )
        assert entry.role is None

    def test_populate_by_name(self):
        entry = CacheEntry(original_text="x", normalized_key="x", last_updated=T0.replace(tzinfo=None))
        assert entry.last_updated == T0

    def test_invalid_match_type(self):
        with pytest.raises(ValidationError):
            CacheEntry(original_text="x", normalized_key="x", match_type="Fuzzy")


class TestPersistentRecord:
    def test_to_json_shape(self):
        record = PersistentRecord(
            subject_id="12345678900",
            entries=[CacheEntry(original_text="x", normalized_key="x", last_updated=T0)],
            stats=RecordStats(linked=0, pending=1),
            saved_at=T0,
        )
        data = json.loads(record.to_json())
        assert set(data) == {"subjectId", "entries", "stats", "savedAt"}
        assert data["savedAt"] == T0_MS
        assert data["stats"] == {"linked": 0, "pending": 1}
        assert data["entries"][0]["role"] is None

    def test_json_roundtrip_keeps_instant(self):
        record = PersistentRecord(subject_id="1", saved_at=T0)
        assert PersistentRecord.model_validate_json(record.to_json()).saved_at == T0


class TestMisc:
    def test_to_process(self):
        stats = BatchStats(total=6, skip=2, update_role=1, verify_role=2, create=1)
        assert stats.to_process == 4

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            VerificationOutcome(entity="x", is_linked=True, method="cache", confidence=1.5)
