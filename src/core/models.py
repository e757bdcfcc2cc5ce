# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
Persisted models (CacheEntry, PersistentRecord) serialize with camelCase keys
and epoch-millisecond timestamps.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

MatchType = Literal["None", "Exact", "HighSimilarity", "SmartInclusion", "KeywordOverlap"]
Action = Literal["skip", "update_role", "verify_role", "create"]
VerificationMethod = Literal["cache", "direct", "consensus", "direct-after-conflict"]


def utc_now() -> datetime:
    """Timezone-aware current time (UTC)."""
    return datetime.now(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def _coerce_timestamp(value: Any) -> Any:
    """Accept epoch-ms numbers and naive datetimes; always yield aware UTC."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class _WireModel(BaseModel):
    """Base for models persisted in the camelCase record format."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === INPUT ===


class DesiredBinding(BaseModel):
    """One desired (entity, role) pair. role=None means use the batch default.

    entity is taken as given; non-text values normalize to the empty key and
    end up as errored items.
    """

    entity: Any
    role: str | None = None


# === MATCHING ===


class MatchResult(BaseModel):
    """Outcome of the matching cascade for one desired key."""

    matched_key: str
    matched_text: str
    match_type: MatchType
    score: float = 1.0


# === CACHE ===


class CacheEntry(_WireModel):
    """Cached binding state for one normalized entity key.

    role=None means the role is unknown. It is never a stand-in for
    "no role" or "same as desired".
    """

    original_text: str
    normalized_key: str
    is_linked: bool = False
    matched_text: str | None = None
    match_type: MatchType = "None"
    role: str | None = None
    last_updated: datetime = Field(default_factory=utc_now)

    @field_validator("last_updated", mode="before")
    @classmethod
    def _parse_last_updated(cls, v: Any) -> Any:
        return _coerce_timestamp(v)

    @field_serializer("last_updated")
    def _serialize_last_updated(self, v: datetime) -> int:
        return to_epoch_ms(v)


class CacheStats(BaseModel):
    """Snapshot of a CacheStore's contents."""

    size: int
    is_valid: bool
    last_updated: datetime | None = None
    linked: int
    pending: int
    unknown_role: int


# === BATCH CLASSIFICATION ===


class BatchItem(BaseModel):
    """A desired item after matching and decision."""

    entity: str
    normalized_key: str
    desired_role: str
    cached_role: str | None = None
    action: Action
    match: MatchResult | None = None


class BatchStats(BaseModel):
    """Per-bucket counters of a classify_batch run."""

    total: int = 0
    skip: int = 0
    update_role: int = 0
    verify_role: int = 0
    create: int = 0
    errored: int = 0
    estimated_seconds_saved: int = 0
    duration_ms: int = 0

    @property
    def to_process(self) -> int:
        """Items that still need work from the binding side."""
        return self.update_role + self.verify_role + self.create


class BatchResult(BaseModel):
    """Four-way routing of a desired list plus rejected items."""

    skip: list[BatchItem] = Field(default_factory=list)
    update_role: list[BatchItem] = Field(default_factory=list)
    verify_role: list[BatchItem] = Field(default_factory=list)
    create: list[BatchItem] = Field(default_factory=list)
    errors: list[DesiredBinding] = Field(default_factory=list)
    stats: BatchStats = Field(default_factory=BatchStats)
    cancelled: bool = False


# === PERSISTENCE ===


class RecordStats(_WireModel):
    """Linked / pending counts stored alongside a snapshot."""

    linked: int = 0
    pending: int = 0


class PersistentRecord(_WireModel):
    """Subject-scoped snapshot of a CacheStore."""

    subject_id: str
    entries: list[CacheEntry] = Field(default_factory=list)
    stats: RecordStats = Field(default_factory=RecordStats)
    saved_at: datetime = Field(default_factory=utc_now)

    @field_validator("saved_at", mode="before")
    @classmethod
    def _parse_saved_at(cls, v: Any) -> Any:
        return _coerce_timestamp(v)

    @field_serializer("saved_at")
    def _serialize_saved_at(self, v: datetime) -> int:
        return to_epoch_ms(v)

    def to_json(self) -> str:
        """Serialize in the camelCase wire format."""
        return self.model_dump_json(by_alias=True, indent=2)


# === VERIFICATION ===


class DirectCheckResult(BaseModel):
    """Answer of the authoritative check collaborator."""

    is_linked: bool


class VerificationOutcome(BaseModel):
    """Result of one double verification."""

    entity: str
    is_linked: bool
    method: VerificationMethod
    confidence: float = Field(ge=0.0, le=1.0)
    consensus: bool = False
    latency_ms: int = 0


class VerificationStats(BaseModel):
    """Running counters of a Reconciler."""

    total_checks: int = 0
    cache_hits: int = 0
    direct_checks: int = 0
    direct_failures: int = 0
    inconsistencies: int = 0
    linked_detected: int = 0
    total_latency_ms: int = 0


class VerificationReport(VerificationStats):
    """VerificationStats plus derived ratios."""

    avg_latency_ms: int = 0
    cache_efficiency_pct: float = 0.0
    detection_rate_pct: float = 0.0


class BatchVerificationResult(BaseModel):
    """Result of verifying a list of entities one after another."""

    outcomes: list[VerificationOutcome] = Field(default_factory=list)
    linked: int = 0
    unlinked: int = 0
    direct_checks: int = 0
    inconsistencies: int = 0
    duration_ms: int = 0
    cancelled: bool = False


# === SKIP DETECTION ===


class SkipStats(BaseModel):
    """Counters behind a skip decision. percent_linked is 0..100."""

    total: int = 0
    valid: int = 0
    errored: int = 0
    linked: int = 0
    pending_count: int = 0
    percent_linked: float = 0.0


class SkipDecision(BaseModel):
    """Whether a whole subject can be skipped, and why."""

    should_skip: bool
    reason: str
    stats: SkipStats = Field(default_factory=SkipStats)


class SubjectHistory(BaseModel):
    """Last evaluation of a subject, kept by the SkipDetector."""

    percent_linked: float
    pending_count: int
    total: int = 0
    linked: int = 0
    checked_at: datetime = Field(default_factory=utc_now)


class EfficiencyDetail(BaseModel):
    """One subject row of an efficiency report."""

    subject_id: str
    status: Literal["complete", "near_complete", "active"]
    percent_linked: float
    linked: int
    pending_count: int
    checked_at: datetime


class EfficiencyReport(BaseModel):
    """Aggregate view of all subjects the detector has seen."""

    total_subjects: int = 0
    complete: int = 0
    near_complete: int = 0
    active: int = 0
    estimated_seconds_saved: int = 0
    details: list[EfficiencyDetail] = Field(default_factory=list)


# === FACADE ===


class SubjectReport(BaseModel):
    """Outcome of reconcile_subject for one subject."""

    subject_id: str
    skipped: bool = False
    skip_decision: SkipDecision | None = None
    batch: BatchResult | None = None
    loaded_from_store: bool = False
    saved: bool = False
    warnings: list[str] = Field(default_factory=list)
