# src/core/normalizer.py — v1
"""Text normalization for judicial-body names and subject identifiers.

normalize() produces the comparison key used everywhere else:
lowercase, diacritics stripped, dash variants unified, ordinal markers
collapsed, whitespace collapsed. It is idempotent and never raises.
"""

from __future__ import annotations

import re
import unicodedata

_DASHES = re.compile(r"[‒–—―−]")
_ORDINAL = re.compile(r"(\d)\s*[ªº°]")
_WHITESPACE = re.compile(r"\s+")
_NON_DIGITS = re.compile(r"\D")

GUARD_MARKER = "cejusc"

ABBREVIATIONS: dict[str, str] = {
    # court types
    "vf": "vara federal",
    "vc": "vara civil",
    "vcrim": "vara criminal",
    "vt": "vara trabalho",
    "je": "juizado especial",
    "jec": "juizado especial civil",
    "jecrim": "juizado especial criminal",
    "jef": "juizado especial federal",
    "trf": "tribunal regional federal",
    "trt": "tribunal regional trabalho",
    "tre": "tribunal regional eleitoral",
    "tjsp": "tribunal justica sao paulo",
    "tjrj": "tribunal justica rio janeiro",
    "tjmg": "tribunal justica minas gerais",
    "divex": "divisao execucao",
    "div": "divisao",
    "exec": "execucao",
    # states
    "sp": "sao paulo",
    "rj": "rio janeiro",
    "mg": "minas gerais",
    "rs": "rio grande sul",
    "pr": "parana",
    "sc": "santa catarina",
    "go": "goias",
    "ba": "bahia",
    "pe": "pernambuco",
    "ce": "ceara",
    "df": "distrito federal",
    "es": "espirito santo",
}


def normalize(text: object) -> str:
    """Return the canonical comparison key for an entity name.

    Non-string input and blank strings yield "" (the empty key), which
    never matches anything.
    """
    if not isinstance(text, str):
        return ""
    key = text.lower()
    key = unicodedata.normalize("NFD", key)
    key = "".join(ch for ch in key if not unicodedata.combining(ch))
    key = _DASHES.sub("-", key)
    key = _ORDINAL.sub(r"\1a", key)
    key = _WHITESPACE.sub(" ", key)
    return key.strip()


def normalize_subject_id(raw: object) -> str:
    """Strip every non-digit from a subject identifier.

    Raises:
        ValueError: If no digit remains.
    """
    digits = _NON_DIGITS.sub("", str(raw)) if raw is not None else ""
    if not digits:
        raise ValueError(f"Subject identifier has no digits: {raw!r}")
    return digits


def normalize_role(role: str | None) -> str | None:
    """Comparison form of a role; None for unknown or blank roles."""
    if role is None:
        return None
    key = normalize(role)
    return key or None


def is_guarded(text: str | None) -> bool:
    """True for CEJUSC-style names, which only ever match exactly."""
    return bool(text) and GUARD_MARKER in text.casefold()


def expand_abbreviations(key: str) -> str:
    """Expand known abbreviations word by word in an already normalized key."""
    return " ".join(ABBREVIATIONS.get(word, word) for word in key.split(" ") if word)

