# src/core/similarity.py — v2
"""String similarity primitives for the matching cascade.

All functions take already normalized keys. Edit distance comes from
rapidfuzz; the word and keyword rules are plain set arithmetic.
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein

# Court-type nouns (normalized, no diacritics).
COURT_KEYWORDS: frozenset[str] = frozenset({
    "vara", "tribunal", "juizado", "turma", "camara", "secao",
    "comarca", "foro", "instancia", "supremo", "superior",
    "regional", "federal", "estadual", "militar", "eleitoral",
    "trabalho", "justica", "civil", "criminal", "fazenda",
})

SIGNIFICANT_WORD_MIN_LENGTH = 4


def levenshtein_similarity(a: str, b: str) -> float:
    """1 - editDistance / max(len(a), len(b)); 0.0 when either side is empty."""
    if a == b:
        return 1.0 if a else 0.0
    if not a or not b:
        return 0.0
    return 1.0 - Levenshtein.distance(a, b) / max(len(a), len(b))


def significant_words(key: str) -> list[str]:
    """Words longer than three characters."""
    return [w for w in key.split(" ") if len(w) >= SIGNIFICANT_WORD_MIN_LENGTH]


def contains_either(a: str, b: str) -> bool:
    """True when one key fully contains the other."""
    return bool(a) and bool(b) and (a in b or b in a)


def word_prefix_coverage(a: str, b: str) -> float:
    """Share of the shorter key's significant words with a prefix counterpart.

    The "shorter" key is the one with fewer significant words. A word has a
    counterpart when some word of the other key starts with it or is a
    prefix of it.
    """
    words_a = significant_words(a)
    words_b = significant_words(b)
    if not words_a or not words_b:
        return 0.0
    shorter, longer = (words_a, words_b) if len(words_a) <= len(words_b) else (words_b, words_a)
    covered = sum(
        1 for w in shorter
        if any(other.startswith(w) or w.startswith(other) for other in longer)
    )
    return covered / len(shorter)


def court_keywords(key: str) -> set[str]:
    """Court keywords present as whole words in a key."""
    return {w for w in key.split(" ") if w in COURT_KEYWORDS}


def keyword_overlap(a: str, b: str) -> tuple[int, float]:
    """Return (common keyword count, common / min(|ka|, |kb|))."""
    ka = court_keywords(a)
    kb = court_keywords(b)
    if not ka or not kb:
        return 0, 0.0
    common = len(ka & kb)
    return common, common / min(len(ka), len(kb))
