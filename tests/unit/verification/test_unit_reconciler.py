# tests/unit/verification/test_unit_reconciler.py — v1
"""Tests for verification/reconciler.py — consensus, healing, fail-open."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from ojlink.cache.cache_store import CacheStore
from ojlink.core.models import DirectCheckResult
from ojlink.verification.reconciler import Reconciler

ENTITY = "Vara Cível de Itu"


def _check(is_linked: bool) -> AsyncMock:
    return AsyncMock(return_value=DirectCheckResult(is_linked=is_linked))


def _failing_check() -> AsyncMock:
    return AsyncMock(side_effect=RuntimeError("page closed"))


@pytest.fixture
def bound_store() -> CacheStore:
    store = CacheStore()
    store.record_binding(ENTITY, "Assessor")
    return store


@pytest.fixture
def reconciler(monotonic_clock) -> Reconciler:
    # random 0.99: never audit unless a test overrides it
    return Reconciler(random_source=lambda: 0.99, clock=monotonic_clock)


class TestVerify:
    @pytest.mark.asyncio
    async def test_cache_only(self, reconciler, bound_store):
        check = _check(True)
        outcome = await reconciler.verify(ENTITY, bound_store, check)
        assert outcome.is_linked is True
        assert outcome.method == "cache"
        assert outcome.confidence == 0.85
        check.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_random_audit_agrees(self, monotonic_clock, bound_store):
        reconciler = Reconciler(random_source=lambda: 0.01, clock=monotonic_clock)
        outcome = await reconciler.verify(ENTITY, bound_store, _check(True))
        assert outcome.method == "consensus"
        assert outcome.confidence == 0.98
        assert outcome.consensus is True

    @pytest.mark.asyncio
    async def test_audit_rate_zero_never_checks(self, monotonic_clock, bound_store):
        reconciler = Reconciler(random_source=lambda: 0.0, clock=monotonic_clock, audit_rate=0.0)
        check = _check(False)
        await reconciler.verify(ENTITY, bound_store, check)
        check.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_conflict_direct_wins_and_heals(self, reconciler, bound_store):
        outcome = await reconciler.verify(ENTITY, bound_store, _check(False), forced=True)
        assert outcome.is_linked is False
        assert outcome.method == "direct-after-conflict"
        assert outcome.confidence == 0.9
        assert outcome.consensus is False
        assert reconciler.stats.inconsistencies == 1
        assert bound_store.is_linked(ENTITY) is False
        assert bound_store.lookup(ENTITY).role is None

    @pytest.mark.asyncio
    async def test_conflict_heals_to_linked(self, reconciler):
        store = CacheStore()
        store.heal(ENTITY, False)
        outcome = await reconciler.verify(ENTITY, store, _check(True), forced=True)
        assert outcome.method == "direct-after-conflict"
        assert store.is_linked(ENTITY) is True
        assert store.lookup(ENTITY).role is None

    @pytest.mark.asyncio
    async def test_cache_miss_uses_direct_and_records(self, reconciler):
        store = CacheStore()
        outcome = await reconciler.verify(ENTITY, store, _check(True))
        assert outcome.method == "direct"
        assert outcome.confidence == 0.95
        entry = store.lookup(ENTITY)
        assert entry.is_linked is True
        assert entry.role is None

    @pytest.mark.asyncio
    async def test_no_cache_store(self, reconciler):
        outcome = await reconciler.verify(ENTITY, None, _check(False))
        assert outcome.method == "direct"
        assert outcome.is_linked is False

    @pytest.mark.asyncio
    async def test_empty_key_never_checked(self, reconciler):
        check = _check(True)
        store = CacheStore()
        outcome = await reconciler.verify("  \t ", store, check, forced=True)
        assert outcome.is_linked is False
        assert outcome.confidence == 0.0
        assert outcome.consensus is False
        check.assert_not_awaited()
        assert store.entries() == []
        assert reconciler.stats.direct_checks == 0


class TestFailures:
    @pytest.mark.asyncio
    async def test_failure_without_cache_answer(self, reconciler):
        check = _failing_check()
        outcome = await reconciler.verify(ENTITY, CacheStore(), check)
        assert outcome.is_linked is False
        assert outcome.confidence == 0.0
        assert reconciler.stats.direct_failures == 1

        await reconciler.verify(ENTITY, CacheStore(), check)
        assert check.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_cache(self, reconciler, bound_store):
        outcome = await reconciler.verify(ENTITY, bound_store, _failing_check(), forced=True)
        assert outcome.is_linked is True
        assert outcome.method == "cache"
        assert outcome.confidence == 0.85
        assert bound_store.is_linked(ENTITY) is True

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow(entity):
            await asyncio.sleep(1)
            return DirectCheckResult(is_linked=True)

        reconciler = Reconciler(random_source=lambda: 0.99, check_timeout_seconds=0.01)
        outcome = await reconciler.verify(ENTITY, CacheStore(), slow)
        assert outcome.confidence == 0.0
        assert reconciler.stats.direct_failures == 1

    @pytest.mark.asyncio
    async def test_cancelled_result_is_discarded(self, reconciler):
        event = asyncio.Event()

        async def check(entity):
            event.set()
            return DirectCheckResult(is_linked=True)

        store = CacheStore()
        outcome = await reconciler.verify(ENTITY, store, check, cancel_event=event)
        assert outcome.is_linked is False
        assert outcome.confidence == 0.0
        assert store.entries() == []

        again = _check(True)
        await reconciler.verify(ENTITY, store, again)
        again.assert_awaited_once()


class TestLocalCache:
    @pytest.mark.asyncio
    async def test_recent_result_reused(self, reconciler, monotonic_clock):
        check = _check(True)
        await reconciler.verify(ENTITY, CacheStore(), check)
        monotonic_clock.advance(60)
        outcome = await reconciler.verify(ENTITY, CacheStore(), check)
        assert outcome.method == "cache"
        assert outcome.confidence == 0.9
        assert check.await_count == 1
        assert reconciler.stats.cache_hits == 1

    @pytest.mark.asyncio
    async def test_expired_after_ttl(self, reconciler, monotonic_clock):
        check = _check(True)
        await reconciler.verify(ENTITY, CacheStore(), check)
        monotonic_clock.advance(301)
        await reconciler.verify(ENTITY, CacheStore(), check)
        assert check.await_count == 2

    @pytest.mark.asyncio
    async def test_forced_bypasses_local_cache(self, reconciler):
        check = _check(True)
        await reconciler.verify(ENTITY, CacheStore(), check)
        await reconciler.verify(ENTITY, CacheStore(), check, forced=True)
        assert check.await_count == 2

    @pytest.mark.asyncio
    async def test_clear_local_cache(self, reconciler):
        check = _check(True)
        await reconciler.verify(ENTITY, CacheStore(), check)
        reconciler.clear_local_cache()
        await reconciler.verify(ENTITY, CacheStore(), check)
        assert check.await_count == 2


class TestBatchAndReport:
    @pytest.mark.asyncio
    async def test_verify_batch(self, reconciler, bound_store):
        async def check(entity):
            return DirectCheckResult(is_linked=entity.startswith("Vara"))

        progress: list[int] = []
        result = await reconciler.verify_batch(
            [ENTITY, "Vara Criminal de Itu", "Juizado de Itu"],
            bound_store,
            check,
            on_progress=lambda msg, pct: progress.append(pct),
        )
        assert [o.method for o in result.outcomes] == ["cache", "direct", "direct"]
        assert result.linked == 2
        assert result.unlinked == 1
        assert result.direct_checks == 2
        assert result.inconsistencies == 0
        assert progress[-1] == 100

    @pytest.mark.asyncio
    async def test_verify_batch_cancelled(self, reconciler):
        event = asyncio.Event()
        event.set()
        result = await reconciler.verify_batch([ENTITY], CacheStore(), _check(True), cancel_event=event)
        assert result.cancelled is True
        assert result.outcomes == []

    @pytest.mark.asyncio
    async def test_report(self, reconciler, monotonic_clock):
        check = _check(True)
        await reconciler.verify(ENTITY, CacheStore(), check)
        await reconciler.verify(ENTITY, CacheStore(), check)
        report = reconciler.report()
        assert report.total_checks == 2
        assert report.cache_hits == 1
        assert report.direct_checks == 1
        assert report.cache_efficiency_pct == 50.0
        assert report.detection_rate_pct == 100.0

    def test_empty_report(self, reconciler):
        report = reconciler.report()
        assert report.avg_latency_ms == 0
        assert report.cache_efficiency_pct == 0.0

    @pytest.mark.asyncio
    async def test_reset_stats(self, reconciler):
        await reconciler.verify(ENTITY, CacheStore(), _check(True))
        reconciler.reset_stats()
        assert reconciler.stats.total_checks == 0
