# src/verification/reconciler.py — v1
"""Double verification of "already linked" answers.

The CacheStore answer is audited against the authoritative check on a
cache miss, when forced, or for a random sample of linked answers. When
both sources answer and disagree, the authoritative answer wins and the
CacheStore is healed.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from ojlink.cache.cache_store import CacheStore, ProgressCallback
from ojlink.core.models import (
    BatchVerificationResult,
    DirectCheckResult,
    VerificationOutcome,
    VerificationReport,
    VerificationStats,
)
from ojlink.core.normalizer import normalize

logger = logging.getLogger(__name__)

AuthoritativeCheck = Callable[[str], Awaitable[DirectCheckResult]]

DEFAULT_LOCAL_TTL_SECONDS = 300.0
DEFAULT_AUDIT_RATE = 0.05

CONFIDENCE_LOCAL = 0.9
CONFIDENCE_CACHE_ONLY = 0.85
CONFIDENCE_DIRECT_ONLY = 0.95
CONFIDENCE_CONSENSUS = 0.98
CONFIDENCE_CONFLICT = 0.9


@dataclass
class _LocalResult:
    is_linked: bool
    recorded_at: float


class Reconciler:
    """Audits CacheStore answers against an authoritative check.

    Args:
        random_source: Returns a float in [0, 1); drives the audit sample.
        clock: Monotonic seconds; drives local TTL and latency.
        local_ttl_seconds: Lifetime of a recent verification result.
        audit_rate: Probability of re-checking a cached "linked" answer.
        check_timeout_seconds: Deadline for one authoritative check, None
            for no deadline.
    """

    def __init__(
        self,
        random_source: Callable[[], float] | None = None,
        clock: Callable[[], float] | None = None,
        local_ttl_seconds: float = DEFAULT_LOCAL_TTL_SECONDS,
        audit_rate: float = DEFAULT_AUDIT_RATE,
        check_timeout_seconds: float | None = None,
    ) -> None:
        self._random = random_source or random.random
        self._clock = clock or time.monotonic
        self._local_ttl = local_ttl_seconds
        self._audit_rate = audit_rate
        self._timeout = check_timeout_seconds
        self._local: dict[str, _LocalResult] = {}
        self._stats = VerificationStats()

    async def verify(
        self,
        entity: str,
        cache_store: CacheStore | None,
        authoritative_check: AuthoritativeCheck,
        forced: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> VerificationOutcome:
        """Decide whether an entity is linked, with a confidence.

        Never raises for a failing check: the outcome falls back to the
        cache answer, or to unlinked with zero confidence. An entity that
        normalizes to the empty key is unlinked without any check.
        """
        start = self._clock()
        key = normalize(entity)
        self._stats.total_checks += 1

        if not key:
            logger.warning("Rejected entity %r: empty after normalization", entity)
            return self._finish(entity, False, "direct", 0.0, False, start)

        recent = self._local.get(key)
        if recent is not None and not forced and start - recent.recorded_at < self._local_ttl:
            self._stats.cache_hits += 1
            logger.debug("Local verification hit for %r", entity)
            return self._finish(entity, recent.is_linked, "cache", CONFIDENCE_LOCAL, True, start)

        cache_answer = cache_store.is_linked(entity) if cache_store is not None else None
        needs_direct = (
            cache_answer is None
            or forced
            or (cache_answer and self._random() < self._audit_rate)
        )
        if not needs_direct:
            outcome = self._finish(entity, bool(cache_answer), "cache", CONFIDENCE_CACHE_ONLY, True, start)
            self._remember(key, outcome.is_linked)
            return outcome

        direct = await self._direct_check(entity, authoritative_check)

        if cancel_event is not None and cancel_event.is_set():
            if direct is not None:
                logger.info("Verification of %r cancelled, discarding direct answer", entity)
            return self._fallback(entity, cache_answer, start)

        if direct is None:
            return self._fallback(entity, cache_answer, start)

        if cache_answer is None:
            outcome = self._finish(entity, direct, "direct", CONFIDENCE_DIRECT_ONLY, True, start)
            if cache_store is not None:
                cache_store.heal(entity, direct)
        elif cache_answer == direct:
            outcome = self._finish(entity, direct, "consensus", CONFIDENCE_CONSENSUS, True, start)
        else:
            self._stats.inconsistencies += 1
            logger.warning(
                "Inconsistency for %r: cache says %s, authoritative check says %s",
                entity,
                "linked" if cache_answer else "unlinked",
                "linked" if direct else "unlinked",
            )
            if cache_store is not None:
                cache_store.heal(entity, direct)
            outcome = self._finish(
                entity, direct, "direct-after-conflict", CONFIDENCE_CONFLICT, False, start
            )

        self._remember(key, outcome.is_linked)
        return outcome

    async def _direct_check(
        self, entity: str, authoritative_check: AuthoritativeCheck
    ) -> bool | None:
        self._stats.direct_checks += 1
        try:
            if self._timeout is None:
                result = await authoritative_check(entity)
            else:
                result = await asyncio.wait_for(authoritative_check(entity), self._timeout)
        except asyncio.TimeoutError:
            self._stats.direct_failures += 1
            logger.warning("Authoritative check for %r timed out after %ss", entity, self._timeout)
            return None
        except Exception as e:
            self._stats.direct_failures += 1
            logger.warning("Authoritative check for %r failed: %s", entity, e)
            return None
        return result.is_linked

    def _fallback(self, entity: str, cache_answer: bool | None, start: float) -> VerificationOutcome:
        if cache_answer is None:
            return self._finish(entity, False, "direct", 0.0, False, start)
        return self._finish(entity, cache_answer, "cache", CONFIDENCE_CACHE_ONLY, True, start)

    def _finish(
        self,
        entity: str,
        is_linked: bool,
        method: str,
        confidence: float,
        consensus: bool,
        start: float,
    ) -> VerificationOutcome:
        latency_ms = max(0, int((self._clock() - start) * 1000))
        self._stats.total_latency_ms += latency_ms
        if is_linked:
            self._stats.linked_detected += 1
        return VerificationOutcome(
            entity=entity,
            is_linked=is_linked,
            method=method,  # type: ignore[arg-type]
            confidence=confidence,
            consensus=consensus,
            latency_ms=latency_ms,
        )

    def _remember(self, key: str, is_linked: bool) -> None:
        if key:
            self._local[key] = _LocalResult(is_linked=is_linked, recorded_at=self._clock())

    # --- Batch ---

    async def verify_batch(
        self,
        entities: Iterable[str],
        cache_store: CacheStore | None,
        authoritative_check: AuthoritativeCheck,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchVerificationResult:
        """Verify entities one after another."""
        items = list(entities)
        start = self._clock()
        result = BatchVerificationResult()

        for position, entity in enumerate(items, start=1):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.info("Batch verification cancelled after %d/%d", position - 1, len(items))
                break
            if on_progress is not None:
                try:
                    on_progress(f"Verifying {entity}", round(position / len(items) * 100))
                except Exception as e:
                    logger.warning("Progress callback failed: %s", e)

            outcome = await self.verify(
                entity, cache_store, authoritative_check, cancel_event=cancel_event
            )
            result.outcomes.append(outcome)
            if outcome.is_linked:
                result.linked += 1
            else:
                result.unlinked += 1
            if outcome.method in ("direct", "direct-after-conflict"):
                result.direct_checks += 1
            if outcome.method == "direct-after-conflict":
                result.inconsistencies += 1

        result.duration_ms = int((self._clock() - start) * 1000)
        logger.info(
            "Batch verification: %d checked, %d linked, %d unlinked, %d direct, %d inconsistencies",
            len(result.outcomes),
            result.linked,
            result.unlinked,
            result.direct_checks,
            result.inconsistencies,
        )
        return result

    # --- Statistics ---

    @property
    def stats(self) -> VerificationStats:
        return self._stats.model_copy()

    def report(self) -> VerificationReport:
        """Running counters plus averages and percentages."""
        s = self._stats
        total = s.total_checks
        return VerificationReport(
            **s.model_dump(),
            avg_latency_ms=round(s.total_latency_ms / total) if total else 0,
            cache_efficiency_pct=s.cache_hits / total * 100 if total else 0.0,
            detection_rate_pct=s.linked_detected / total * 100 if total else 0.0,
        )

    def clear_local_cache(self) -> None:
        self._local.clear()
        logger.info("Local verification cache cleared")

    def reset_stats(self) -> None:
        self._stats = VerificationStats()
        logger.info("Verification statistics reset")
