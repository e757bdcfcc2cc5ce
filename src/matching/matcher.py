# src/matching/matcher.py — v1
"""Matching cascade: desired key vs. the normalized ledger.

Rules, first one to fire wins, each tried against the whole ledger before
the next one is considered:
  1. Exact: identical keys.
  2. HighSimilarity: normalized Levenshtein similarity >= 0.95.
  3. SmartInclusion: containment, or >= 80% prefix-matched significant words,
     compared on abbreviation-expanded keys ("vt" -> "vara trabalho").
  4. KeywordOverlap: >= 2 shared court keywords, overlap ratio >= 0.6.

CEJUSC names only ever match through rule 1: they are numerous and nearly
identical, so a fuzzy hit would merge two distinct centers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ojlink.core.models import MatchResult
from ojlink.core.normalizer import expand_abbreviations, is_guarded, normalize
from ojlink.core.similarity import (
    contains_either,
    keyword_overlap,
    levenshtein_similarity,
    word_prefix_coverage,
)

logger = logging.getLogger(__name__)

HIGH_SIMILARITY_THRESHOLD = 0.95
INCLUSION_MIN_LENGTH = 15
INCLUSION_WORD_RATIO = 0.8
KEYWORD_MIN_COMMON = 2
KEYWORD_OVERLAP_RATIO = 0.6


@dataclass
class LedgerIndex:
    """Ledger texts normalized once, in input order."""

    keys: list[str] = field(default_factory=list)
    texts: dict[str, str] = field(default_factory=dict)  # key -> first raw text

    @classmethod
    def build(cls, ledger_texts: list[str]) -> LedgerIndex:
        index = cls()
        dropped = 0
        for raw in ledger_texts:
            key = normalize(raw)
            if not key:
                dropped += 1
                continue
            if key not in index.texts:
                index.texts[key] = raw
                index.keys.append(key)
        if dropped:
            logger.debug("Ledger index: dropped %d blank entries", dropped)
        return index

    def __len__(self) -> int:
        return len(self.keys)


def _fuzzy_allowed(desired_key: str, desired_text: str | None, key: str, raw: str | None) -> bool:
    return not (
        is_guarded(desired_key)
        or is_guarded(desired_text)
        or is_guarded(key)
        or is_guarded(raw)
    )


def _smart_inclusion(a: str, b: str) -> float | None:
    if min(len(a), len(b)) < INCLUSION_MIN_LENGTH:
        return None
    if contains_either(a, b):
        return 1.0
    coverage = word_prefix_coverage(a, b)
    return coverage if coverage >= INCLUSION_WORD_RATIO else None


def _keyword_match(a: str, b: str) -> float | None:
    common, ratio = keyword_overlap(a, b)
    if common >= KEYWORD_MIN_COMMON and ratio >= KEYWORD_OVERLAP_RATIO:
        return ratio
    return None


def match(
    desired_key: str,
    ledger_keys: list[str],
    *,
    desired_text: str | None = None,
    ledger_texts: dict[str, str] | None = None,
) -> MatchResult | None:
    """Find the best ledger key for a desired key.

    Args:
        desired_key: Normalized desired entity.
        ledger_keys: Normalized ledger entities.
        desired_text: Raw desired text, checked by the CEJUSC guard.
        ledger_texts: Raw text per ledger key, for the guard and the result.

    Returns:
        MatchResult, or None when no rule fires (or desired_key is empty).
    """
    if not desired_key or not ledger_keys:
        return None
    texts = ledger_texts or {}

    def _result(key: str, match_type: str, score: float) -> MatchResult:
        return MatchResult(
            matched_key=key,
            matched_text=texts.get(key, key),
            match_type=match_type,  # type: ignore[arg-type]
            score=score,
        )

    # Rule 1: exact
    for key in ledger_keys:
        if key == desired_key:
            return _result(key, "Exact", 1.0)

    candidates = [
        key for key in ledger_keys
        if key and _fuzzy_allowed(desired_key, desired_text, key, texts.get(key))
    ]
    if not candidates:
        return None

    # Rule 2: high similarity
    for key in candidates:
        similarity = levenshtein_similarity(desired_key, key)
        if similarity >= HIGH_SIMILARITY_THRESHOLD:
            return _result(key, "HighSimilarity", similarity)

    # Rule 3: smart inclusion
    expanded = expand_abbreviations(desired_key)
    for key in candidates:
        score = _smart_inclusion(expanded, expand_abbreviations(key))
        if score is not None:
            return _result(key, "SmartInclusion", score)

    # Rule 4: keyword overlap
    for key in candidates:
        score = _keyword_match(desired_key, key)
        if score is not None:
            return _result(key, "KeywordOverlap", score)

    return None


def match_entity(text: str, index: LedgerIndex) -> MatchResult | None:
    """Normalize a raw desired entity and match it against a LedgerIndex."""
    return match(
        normalize(text),
        index.keys,
        desired_text=text,
        ledger_texts=index.texts,
    )
