# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides sample desired lists, ledgers, controllable clocks and populated
cache stores. No network or external services; disk I/O goes to tmp_path.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ojlink.cache.cache_store import CacheStore
from ojlink.core.models import CacheEntry, DesiredBinding, PersistentRecord
from ojlink.core.normalizer import normalize

SUBJECT_ID = "123.456.789-00"
SUBJECT_KEY = "12345678900"

SOROCABA_ENTITIES = [
    "1ª Vara do Trabalho de Sorocaba",
    "2ª Vara do Trabalho de Sorocaba",
    "3ª Vara do Trabalho de Sorocaba",
    "4ª Vara do Trabalho de Sorocaba",
    "Juizado Especial Cível de Sorocaba",
]


class MutableClock:
    """Callable clock whose value tests move forward explicitly."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


def make_record(
    entities: list[str],
    role: str | None = "Assessor",
    is_linked: bool = True,
    subject_id: str = SUBJECT_KEY,
) -> PersistentRecord:
    """Snapshot in which every entity is stored with the same state."""
    entries = [
        CacheEntry(
            original_text=text,
            normalized_key=normalize(text),
            is_linked=is_linked,
            matched_text=text if is_linked else None,
            match_type="Exact" if is_linked else "None",
            role=role,
        )
        for text in entities
    ]
    return PersistentRecord(subject_id=subject_id, entries=entries)


# === FIXTURES: Sample data ===


@pytest.fixture
def record_factory():
    """make_record() as a fixture, for modules that cannot import conftest."""
    return make_record


@pytest.fixture
def sorocaba_entities() -> list[str]:
    return list(SOROCABA_ENTITIES)


@pytest.fixture
def sorocaba_ledger() -> list[str]:
    """The five Sorocaba bodies as the ledger scraper would report them."""
    return [
        "1a vara do trabalho de sorocaba",
        "2a Vara do Trabalho de Sorocaba",
        "3ª VARA DO TRABALHO DE SOROCABA",
        "4º Vara do Trabalho de Sorocaba",
        "Juizado Especial Civel de Sorocaba",
    ]


@pytest.fixture
def desired_assessor(sorocaba_entities) -> list[DesiredBinding]:
    return [DesiredBinding(entity=e, role="Assessor") for e in sorocaba_entities]


@pytest.fixture
def linked_store(sorocaba_entities) -> CacheStore:
    """CacheStore restored with all five entities linked as Assessor."""
    return CacheStore.from_record(make_record(sorocaba_entities))


# === FIXTURES: Clocks ===


@pytest.fixture
def utc_clock() -> MutableClock:
    return MutableClock(datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def monotonic_clock() -> MutableClock:
    return MutableClock(1000.0)


@pytest.fixture
def one_day() -> timedelta:
    return timedelta(hours=24)
