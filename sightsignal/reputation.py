"""Reputation tiers: numeric score + verified flag → ordered trust tier."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from sightsignal.models import ReputationRecord, ReputationTier

TRUSTED_THRESHOLD = 50
NEW_THRESHOLD = 10

TIER_ORDER: Dict[ReputationTier, int] = {
    ReputationTier.UNVERIFIED: 0,
    ReputationTier.NEW: 1,
    ReputationTier.TRUSTED: 2,
    ReputationTier.VERIFIED: 3,
}

# Score delta applied per reputation event reason.
REPUTATION_AMOUNTS: Dict[str, int] = {
    "sighting_created": 1,
    "sighting_upvoted": 1,
    "sighting_confirmed": 2,
    "sighting_disputed": -1,
    "signal_created": 5,
    "signal_subscribed": 2,
    "signal_verified": 50,
    "report_upheld": -10,
}

_TIER_LABELS: Dict[ReputationTier, str] = {
    ReputationTier.VERIFIED: "✓ Verified",
    ReputationTier.TRUSTED: "★ Trusted",
    ReputationTier.NEW: "⭐ New",
    ReputationTier.UNVERIFIED: "Unverified",
}


def get_reputation_tier(
    score: float,
    is_verified: bool = False,
    *,
    trusted_threshold: float = TRUSTED_THRESHOLD,
    new_threshold: float = NEW_THRESHOLD,
) -> ReputationTier:
    """Resolve a tier. The verified flag wins over any score."""
    if is_verified:
        return ReputationTier.VERIFIED
    if score >= trusted_threshold:
        return ReputationTier.TRUSTED
    if score >= new_threshold:
        return ReputationTier.NEW
    return ReputationTier.UNVERIFIED


def meets_min_trust_level(actual: ReputationTier, required: ReputationTier) -> bool:
    return TIER_ORDER[ReputationTier(actual)] >= TIER_ORDER[ReputationTier(required)]


def reporter_trust_level(
    reporter_id: Optional[str],
    user_reputation: Mapping[str, ReputationRecord],
    *,
    trusted_threshold: float = TRUSTED_THRESHOLD,
    new_threshold: float = NEW_THRESHOLD,
) -> ReputationTier:
    """Anonymous reporters and reporters without a record are unverified."""
    if not reporter_id:
        return ReputationTier.UNVERIFIED
    record = user_reputation.get(reporter_id)
    if record is None:
        return ReputationTier.UNVERIFIED
    return get_reputation_tier(
        record.score,
        record.is_verified,
        trusted_threshold=trusted_threshold,
        new_threshold=new_threshold,
    )


def tier_label(tier: ReputationTier) -> str:
    return _TIER_LABELS[ReputationTier(tier)]


def tier_description(tier: ReputationTier) -> str:
    tier = ReputationTier(tier)
    if tier is ReputationTier.VERIFIED:
        return "Admin-vetted trusted contributor"
    if tier is ReputationTier.TRUSTED:
        return f"High reputation member ({TRUSTED_THRESHOLD}+ points)"
    if tier is ReputationTier.NEW:
        return f"Establishing reputation ({NEW_THRESHOLD}-{TRUSTED_THRESHOLD - 1} points)"
    return f"New member (< {NEW_THRESHOLD} points)"


def apply_reputation_event(record: ReputationRecord, reason: str) -> ReputationRecord:
    """Return a new record with the reason's delta applied; score floors at 0.

    Raises KeyError for an unknown reason.
    """
    amount = REPUTATION_AMOUNTS[reason]
    return record.model_copy(update={"score": max(0.0, record.score + amount)})
