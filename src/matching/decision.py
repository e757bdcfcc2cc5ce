# src/matching/decision.py — v1
"""Role-aware four-way decision for one desired binding."""

from __future__ import annotations

from ojlink.core.models import Action, MatchResult
from ojlink.core.normalizer import normalize_role


def decide(
    match: MatchResult | None,
    desired_role: str,
    cached_role: str | None,
) -> Action:
    """Classify a desired binding.

    Args:
        match: Matcher result, None when the ledger has no counterpart.
        desired_role: Role the binding should carry.
        cached_role: Role recorded in the cache, None when unknown.

    Returns:
        "create" without a match; "verify_role" when the cached role is
        unknown; "skip" when roles agree; "update_role" otherwise.
    """
    if match is None:
        return "create"
    cached = normalize_role(cached_role)
    if cached is None:
        return "verify_role"
    if cached == normalize_role(desired_role):
        return "skip"
    return "update_role"
