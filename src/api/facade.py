# src/api/facade.py — v1
"""Public API facade: reconcile one subject end to end.

Usage:
    from ojlink.api.facade import reconcile_subject
    report = await reconcile_subject("123.456.789-00", desired, ledger_texts)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING

from ojlink.cache.cache_store import CacheStore, ProgressCallback, require_roles
from ojlink.config.settings import Settings, load_settings
from ojlink.core.models import DesiredBinding, SkipDecision, SkipStats, SubjectReport
from ojlink.core.normalizer import normalize, normalize_role, normalize_subject_id
from ojlink.logging.context import set_component_context, subject_context
from ojlink.skip.skip_detector import SkipDetector
from ojlink.storage.base_record_store import PersistenceError

if TYPE_CHECKING:
    from ojlink.storage.base_record_store import BaseRecordStore

logger = logging.getLogger(__name__)


async def reconcile_subject(
    subject_id: str,
    desired: Iterable[DesiredBinding | str],
    ledger_texts: list[str],
    desired_role: str | None = None,
    settings: Settings | None = None,
    record_store: BaseRecordStore | None = None,
    skip_detector: SkipDetector | None = None,
    on_progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
) -> SubjectReport:
    """Classify a subject's desired bindings, reusing and refreshing its snapshot.

    Steps:
      1. Load the persisted snapshot (if a store is given and it is fresh)
      2. Ask the skip detector whether the whole subject can be skipped
      3. Otherwise batch-classify against the ledger
      4. Save the new snapshot and record skip history

    Args:
        subject_id: Subject identifier; punctuation is ignored.
        desired: Desired bindings, or bare entity texts using desired_role.
        ledger_texts: Entities currently bound to the subject.
        desired_role: Default role for items without one.
        settings: Global settings. Loaded from .env if None.
        record_store: Persistent backend. None = in-memory only.
        skip_detector: Shared detector (keeps history across calls).
            Built from settings if None.
        on_progress: Optional (message, percent) callback.
        cancel_event: Checked between items.

    Returns:
        SubjectReport. Persistence failures are listed in warnings.

    Raises:
        ValueError: If subject_id has no digits, or a well-formed item has no role
            and no desired_role is given.
    """
    settings = settings or load_settings()
    key = normalize_subject_id(subject_id)
    items = [
        d if isinstance(d, DesiredBinding) else DesiredBinding(entity=d)
        for d in desired
    ]
    require_roles(items, desired_role)
    detector = skip_detector or SkipDetector(
        settings.skip_tolerance_threshold,
        minimum_sample=settings.skip_minimum_sample,
        max_error_ratio=settings.skip_max_error_ratio,
    )
    store_kwargs = {
        "seconds_saved_per_skip": settings.seconds_saved_per_skip,
        "progress_every": settings.progress_every,
    }

    with subject_context(key):
        report = SubjectReport(subject_id=key)
        logger.info("Reconciling subject %s: %d desired, %d in ledger", key, len(items), len(ledger_texts))

        # --- Load ---
        set_component_context("facade", "load")
        cache = CacheStore(**store_kwargs)
        if record_store is not None:
            try:
                record = await record_store.load(key)
            except PersistenceError as e:
                logger.warning("Snapshot load failed, continuing without it: %s", e)
                report.warnings.append(f"load failed: {e}")
            else:
                if record is not None:
                    cache = CacheStore.from_record(record, **store_kwargs)
                    report.loaded_from_store = True

        # --- Skip heuristic ---
        set_component_context("skip_detector", "evaluate")
        roles = {
            normalize_role(item.role or desired_role)
            for item in items
            if normalize(item.entity)
        }
        if len(roles) > 1:
            decision = SkipDecision(
                should_skip=False,
                reason="mixed desired roles, subject will be processed",
                stats=SkipStats(total=len(items)),
            )
        else:
            decision = detector.evaluate_subject(
                items,
                cache,
                history=detector.history_for(key),
                require_role=next(iter(roles), None),
            )
        report.skip_decision = decision

        if decision.should_skip:
            report.skipped = True
            detector.update_history(key, decision)
            logger.info("Subject %s skipped: %s", key, decision.reason)
            return report

        # --- Classify ---
        set_component_context("cache_store", "classify")
        report.batch = cache.classify_batch(
            items,
            ledger_texts,
            desired_role=desired_role,
            on_progress=on_progress,
            cancel_event=cancel_event,
        )
        if report.batch.cancelled:
            logger.info("Subject %s cancelled, snapshot not saved", key)
            return report

        # --- Save ---
        set_component_context("facade", "save")
        if record_store is not None:
            try:
                await record_store.save(key, cache.to_record(key))
                report.saved = True
            except PersistenceError as e:
                logger.warning("Snapshot save failed, result kept in memory only: %s", e)
                report.warnings.append(f"save failed: {e}")

        if len(roles) <= 1:
            after = detector.evaluate_subject(items, cache, require_role=next(iter(roles), None))
            detector.update_history(key, after)

    return report
