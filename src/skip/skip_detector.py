# src/skip/skip_detector.py — v1
"""Subject-level skip heuristic.

Decides whether a whole subject can be skipped, using only the CacheStore,
before any per-item authoritative work. Every doubtful case resolves to
"process": a missing or unpopulated cache never yields a skip.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from ojlink.cache.cache_store import CacheStore
from ojlink.core.models import (
    DesiredBinding,
    EfficiencyDetail,
    EfficiencyReport,
    SkipDecision,
    SkipStats,
    SubjectHistory,
    utc_now,
)
from ojlink.core.normalizer import normalize, normalize_role, normalize_subject_id

logger = logging.getLogger(__name__)

DEFAULT_MINIMUM_SAMPLE = 3
DEFAULT_MAX_ERROR_RATIO = 0.2
HISTORY_MAX_AGE = timedelta(hours=24)
HISTORY_MAX_DELTA_POINTS = 5.0
HISTORY_MIN_PERCENT = 80.0
TOLERANCE_BOUNDS = (0.5, 1.0)


class SkipDetector:
    """Evaluates subjects and keeps a per-subject evaluation history.

    Args:
        tolerance_threshold: Minimum linked fraction (0..1) to skip outright.
        minimum_sample: Fewer valid items than this are never skipped.
        max_error_ratio: Above this malformed fraction, never skip.
        clock: Returns aware UTC datetimes; used for history age.
    """

    def __init__(
        self,
        tolerance_threshold: float,
        minimum_sample: int = DEFAULT_MINIMUM_SAMPLE,
        max_error_ratio: float = DEFAULT_MAX_ERROR_RATIO,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not 0.0 < tolerance_threshold <= 1.0:
            raise ValueError(f"tolerance_threshold must be in (0, 1], got {tolerance_threshold}")
        if minimum_sample < 1:
            raise ValueError(f"minimum_sample must be >= 1, got {minimum_sample}")
        self._tolerance = tolerance_threshold
        self._minimum = minimum_sample
        self._max_error_ratio = max_error_ratio
        self._clock = clock or utc_now
        self._history: dict[str, SubjectHistory] = {}

    @property
    def tolerance_threshold(self) -> float:
        return self._tolerance

    @property
    def minimum_sample(self) -> int:
        return self._minimum

    def evaluate_subject(
        self,
        desired: Iterable[DesiredBinding | str],
        cache_store: CacheStore | None,
        history: SubjectHistory | None = None,
        require_role: str | None = None,
    ) -> SkipDecision:
        """Decide whether the subject's desired list is already satisfied.

        Args:
            desired: Desired bindings or bare entity texts.
            cache_store: The subject's CacheStore; None or unpopulated
                means no skip.
            history: Previous evaluation of this subject, if any.
            require_role: When given, an item only counts as linked if its
                cached role equals this role.

        Returns:
            SkipDecision with a human-readable reason and the counters.
        """
        texts = [d.entity if isinstance(d, DesiredBinding) else d for d in desired]
        total = len(texts)
        well_formed = [text for text in texts if normalize(text)]
        errored = total - len(well_formed)

        if cache_store is None or not cache_store.is_valid:
            logger.info("Cache unavailable or not populated, subject will be processed")
            return SkipDecision(
                should_skip=False,
                reason="cache unavailable, subject will be processed",
                stats=SkipStats(
                    total=total,
                    valid=len(well_formed),
                    errored=errored,
                    pending_count=len(well_formed),
                ),
            )

        wanted_role = normalize_role(require_role)
        valid = len(well_formed)
        linked = 0
        for text in well_formed:
            entry = cache_store.lookup(text)
            if entry is None or not entry.is_linked:
                continue
            if wanted_role is not None and normalize_role(entry.role) != wanted_role:
                continue
            linked += 1

        percent = linked / valid * 100 if valid else 0.0
        stats = SkipStats(
            total=total,
            valid=valid,
            errored=errored,
            linked=linked,
            pending_count=valid - linked,
            percent_linked=percent,
        )
        decision = self._decide(stats, history)
        logger.info(
            "Skip evaluation: %d/%d linked (%.1f%%), %d errored -> %s: %s",
            linked,
            valid,
            percent,
            errored,
            "skip" if decision.should_skip else "process",
            decision.reason,
        )
        return decision

    def _decide(self, stats: SkipStats, history: SubjectHistory | None) -> SkipDecision:
        if stats.total and stats.errored / stats.total > self._max_error_ratio:
            return SkipDecision(
                should_skip=False,
                reason=(
                    f"{stats.errored} malformed items "
                    f"({stats.errored / stats.total * 100:.1f}%): too many malformed items, "
                    f"must investigate"
                ),
                stats=stats,
            )

        if stats.valid < self._minimum:
            return SkipDecision(
                should_skip=False,
                reason=(
                    f"sample too small: {stats.valid} valid items, "
                    f"minimum sample size is {self._minimum}"
                ),
                stats=stats,
            )

        if stats.linked == stats.valid:
            return SkipDecision(
                should_skip=True,
                reason=f"fully linked (100%): all {stats.valid} items already bound",
                stats=stats,
            )

        if stats.linked / stats.valid >= self._tolerance:
            return SkipDecision(
                should_skip=True,
                reason=(
                    f"above tolerance threshold: {stats.percent_linked:.1f}% linked "
                    f"(threshold {self._tolerance * 100:.0f}%)"
                ),
                stats=stats,
            )

        if history is not None and self._stable(history, stats):
            return SkipDecision(
                should_skip=True,
                reason="stable per history: no pending items at last check and no significant change",
                stats=stats,
            )

        return SkipDecision(
            should_skip=False,
            reason=f"{stats.pending_count} pending items ({stats.percent_linked:.1f}% linked)",
            stats=stats,
        )

    def _stable(self, history: SubjectHistory, stats: SkipStats) -> bool:
        age = self._clock() - history.checked_at
        return (
            age < HISTORY_MAX_AGE
            and history.pending_count == 0
            and abs(stats.percent_linked - history.percent_linked) < HISTORY_MAX_DELTA_POINTS
            and stats.percent_linked > HISTORY_MIN_PERCENT
        )

    # --- History ---

    def update_history(self, subject_id: str, decision: SkipDecision) -> SubjectHistory:
        """Record the outcome of an evaluation for later runs."""
        key = normalize_subject_id(subject_id)
        entry = SubjectHistory(
            percent_linked=decision.stats.percent_linked,
            pending_count=decision.stats.pending_count,
            total=decision.stats.valid,
            linked=decision.stats.linked,
            checked_at=self._clock(),
        )
        self._history[key] = entry
        return entry

    def history_for(self, subject_id: str) -> SubjectHistory | None:
        return self._history.get(normalize_subject_id(subject_id))

    def clear_history(self) -> None:
        self._history.clear()
        logger.info("Subject history cleared")

    def configure_limits(self, tolerance: float, minimum: int) -> None:
        """Change the thresholds; tolerance is clamped to [0.5, 1.0], minimum to >= 1."""
        low, high = TOLERANCE_BOUNDS
        self._tolerance = max(low, min(high, tolerance))
        self._minimum = max(1, minimum)
        logger.info(
            "Limits configured: %.0f%% tolerance, minimum sample %d",
            self._tolerance * 100,
            self._minimum,
        )

    def efficiency_report(self, seconds_per_item: int = 5) -> EfficiencyReport:
        """Summarize every subject in the history."""
        report = EfficiencyReport(total_subjects=len(self._history))
        for subject_id, entry in self._history.items():
            if entry.percent_linked >= 100.0:
                status = "complete"
                report.complete += 1
                report.estimated_seconds_saved += entry.total * seconds_per_item
            elif entry.percent_linked >= self._tolerance * 100:
                status = "near_complete"
                report.near_complete += 1
                report.estimated_seconds_saved += entry.linked * seconds_per_item
            else:
                status = "active"
                report.active += 1
            report.details.append(
                EfficiencyDetail(
                    subject_id=subject_id,
                    status=status,
                    percent_linked=entry.percent_linked,
                    linked=entry.linked,
                    pending_count=entry.pending_count,
                    checked_at=entry.checked_at,
                )
            )
        return report
