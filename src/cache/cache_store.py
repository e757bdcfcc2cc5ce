# src/cache/cache_store.py — v1
"""In-memory per-subject cache of binding state plus batch classification.

One CacheStore belongs to exactly one subject and one caller; it is never
shared across subjects. classify_batch() drives the matcher and the
decision engine over a whole desired list and keeps the entries current.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from datetime import datetime

from ojlink.core.models import (
    BatchItem,
    BatchResult,
    CacheEntry,
    CacheStats,
    DesiredBinding,
    MatchResult,
    PersistentRecord,
    RecordStats,
    utc_now,
)
from ojlink.core.normalizer import normalize, normalize_subject_id
from ojlink.matching.decision import decide
from ojlink.matching.matcher import LedgerIndex, match

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

DEFAULT_SECONDS_SAVED_PER_SKIP = 5
DEFAULT_PROGRESS_EVERY = 5


def require_roles(items: Iterable[DesiredBinding], desired_role: str | None) -> None:
    """Raise ValueError if a well-formed item has no role and there is no default.

    Items whose entity normalizes to the empty key are skipped here; they are
    counted as errored during classification.
    """
    if desired_role:
        return
    for item in items:
        if not item.role and normalize(item.entity):
            raise ValueError(
                f"No role for desired entity {item.entity!r} and no default role given"
            )


class CacheStore:
    """Map of normalized entity key -> CacheEntry for one subject."""

    def __init__(
        self,
        seconds_saved_per_skip: int = DEFAULT_SECONDS_SAVED_PER_SKIP,
        progress_every: int = DEFAULT_PROGRESS_EVERY,
    ) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._valid = False
        self._last_updated: datetime | None = None
        self._seconds_saved_per_skip = seconds_saved_per_skip
        self._progress_every = max(1, progress_every)

    # --- Batch classification ---

    def classify_batch(
        self,
        desired: Iterable[DesiredBinding],
        ledger_texts: list[str],
        desired_role: str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BatchResult:
        """Route every desired item into skip / update_role / verify_role / create.

        Args:
            desired: Desired bindings; an item without a role uses desired_role.
            ledger_texts: Raw ledger strings for this subject.
            desired_role: Default role for items that carry none.
            on_progress: Optional (message, percent) callback, advisory only.
            cancel_event: Checked between items; when set, the partial
                result is returned with cancelled=True.

        Returns:
            BatchResult with four buckets, rejected items and counters.

        Raises:
            ValueError: If a well-formed item has no role and no desired_role
                is given.
        """
        items = list(desired)
        require_roles(items, desired_role)

        start = time.monotonic()
        total = len(items)
        result = BatchResult()
        result.stats.total = total

        logger.info("Classifying %d desired entities against %d ledger entries", total, len(ledger_texts))
        self._report(on_progress, "Indexing ledger entries...", 0)
        index = LedgerIndex.build(ledger_texts)

        for position, item in enumerate(items, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Classification cancelled after %d/%d items", position - 1, total)
                result.cancelled = True
                break

            key = normalize(item.entity)
            if not key:
                logger.warning("Rejected desired entity %r: empty after normalization", item.entity)
                result.errors.append(item)
                result.stats.errored += 1
                continue

            role = item.role or desired_role or ""
            found = match(key, index.keys, desired_text=item.entity, ledger_texts=index.texts)
            cached_role = self._cached_role(key)
            action = decide(found, role, cached_role)

            batch_item = BatchItem(
                entity=item.entity,
                normalized_key=key,
                desired_role=role,
                cached_role=cached_role,
                action=action,
                match=found,
            )
            getattr(result, action).append(batch_item)
            setattr(result.stats, action, getattr(result.stats, action) + 1)
            self._record(item.entity, key, found, action, role, cached_role)

            logger.debug("%s -> %s (%s)", item.entity, action, found.match_type if found else "no match")
            if position % self._progress_every == 0 or position == total:
                self._report(
                    on_progress,
                    f"{position}/{total} analysed: {result.stats.skip} already bound, "
                    f"{result.stats.to_process} to process",
                    round(position / total * 100),
                )

        result.stats.estimated_seconds_saved = result.stats.skip * self._seconds_saved_per_skip
        result.stats.duration_ms = int((time.monotonic() - start) * 1000)
        self._valid = True
        self._last_updated = utc_now()

        logger.info(
            "Classification done in %dms: %d skip, %d update_role, %d verify_role, "
            "%d create, %d errored (~%ds saved)",
            result.stats.duration_ms,
            result.stats.skip,
            result.stats.update_role,
            result.stats.verify_role,
            result.stats.create,
            result.stats.errored,
            result.stats.estimated_seconds_saved,
        )
        return result

    def _cached_role(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None or not entry.is_linked:
            return None
        return entry.role

    def _record(
        self,
        text: str,
        key: str,
        found: MatchResult | None,
        action: str,
        desired_role: str,
        cached_role: str | None,
    ) -> None:
        # create: the binding will be made with the desired role. skip: confirmed.
        role = desired_role if action in ("create", "skip") else cached_role
        self._entries[key] = CacheEntry(
            original_text=text,
            normalized_key=key,
            is_linked=found is not None,
            matched_text=found.matched_text if found else None,
            match_type=found.match_type if found else "None",
            role=role,
        )

    @staticmethod
    def _report(callback: ProgressCallback | None, message: str, percent: int) -> None:
        if callback is None:
            return
        try:
            callback(message, percent)
        except Exception as e:
            logger.warning("Progress callback failed: %s", e)

    # --- Point lookups and updates ---

    def lookup(self, entity: str) -> CacheEntry | None:
        """Entry for an entity, or None when the cache has no answer."""
        if not self._valid:
            return None
        key = normalize(entity)
        return self._entries.get(key) if key else None

    def is_linked(self, entity: str) -> bool | None:
        """Cached linked/unlinked answer; None when absent."""
        entry = self.lookup(entity)
        return entry.is_linked if entry is not None else None

    def record_binding(self, entity: str, role: str | None) -> CacheEntry:
        """Mark an entity as bound, e.g. after the binding action succeeded."""
        key = self._require_key(entity)
        entry = CacheEntry(
            original_text=entity,
            normalized_key=key,
            is_linked=True,
            matched_text=entity,
            match_type="Exact",
            role=role,
        )
        self._store(entry)
        logger.info("Recorded binding %r (role=%s)", entity, role or "unknown")
        return entry

    def confirm_role(self, entity: str, role: str) -> CacheEntry:
        """Record a role confirmed against the authoritative source."""
        key = self._require_key(entity)
        current = self._entries.get(key)
        if current is None:
            return self.record_binding(entity, role)
        entry = current.model_copy(update={"role": role, "last_updated": utc_now()})
        self._store(entry)
        return entry

    def heal(self, entity: str, is_linked: bool) -> CacheEntry:
        """Overwrite the linked flag with an authoritative answer.

        Healing to unlinked drops the match and the role; healing to linked
        leaves the role unknown unless it was already known.
        """
        key = self._require_key(entity)
        current = self._entries.get(key)
        if current is None:
            entry = CacheEntry(original_text=entity, normalized_key=key, is_linked=is_linked)
        elif is_linked:
            entry = current.model_copy(update={"is_linked": True, "last_updated": utc_now()})
        else:
            entry = current.model_copy(
                update={
                    "is_linked": False,
                    "matched_text": None,
                    "match_type": "None",
                    "role": None,
                    "last_updated": utc_now(),
                }
            )
        self._store(entry)
        return entry

    def _require_key(self, entity: str) -> str:
        key = normalize(entity)
        if not key:
            raise ValueError(f"Entity is empty after normalization: {entity!r}")
        return key

    def _store(self, entry: CacheEntry) -> None:
        self._entries[entry.normalized_key] = entry
        self._valid = True
        self._last_updated = entry.last_updated

    # --- Introspection ---

    @property
    def is_valid(self) -> bool:
        """True once the store holds classified or restored data."""
        return self._valid

    @property
    def last_updated(self) -> datetime | None:
        return self._last_updated

    def entries(self) -> list[CacheEntry]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> CacheStats:
        linked = sum(1 for e in self._entries.values() if e.is_linked)
        unknown = sum(1 for e in self._entries.values() if e.is_linked and e.role is None)
        return CacheStats(
            size=len(self._entries),
            is_valid=self._valid,
            last_updated=self._last_updated,
            linked=linked,
            pending=len(self._entries) - linked,
            unknown_role=unknown,
        )

    def clear(self) -> None:
        """Drop every entry and mark the store invalid."""
        self._entries.clear()
        self._valid = False
        self._last_updated = None
        logger.info("Cache store cleared")

    # --- Snapshots ---

    def to_record(self, subject_id: str) -> PersistentRecord:
        """Snapshot this store for the persistent layer."""
        stats = self.stats()
        return PersistentRecord(
            subject_id=normalize_subject_id(subject_id),
            entries=self.entries(),
            stats=RecordStats(linked=stats.linked, pending=stats.pending),
        )

    @classmethod
    def from_record(cls, record: PersistentRecord, **kwargs: int) -> CacheStore:
        """Rebuild a store from a snapshot. Roles are restored as stored."""
        store = cls(**kwargs)
        for entry in record.entries:
            store._entries[entry.normalized_key] = entry
        store._valid = bool(record.entries)
        store._last_updated = record.saved_at
        logger.info(
            "Restored %d cache entries for subject %s", len(record.entries), record.subject_id
        )
        return store
