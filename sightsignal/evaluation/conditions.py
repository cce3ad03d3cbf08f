"""Attribute-condition matching with AND/OR combination."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from sightsignal.models import (
    ConditionOperator,
    EvaluationContext,
    Importance,
    ReputationTier,
    Sighting,
    Signal,
    SignalConditions,
)
from sightsignal.reputation import (
    NEW_THRESHOLD,
    TRUSTED_THRESHOLD,
    meets_min_trust_level,
    reporter_trust_level,
)


class SightingMatchData(BaseModel):
    """Flattened view of a sighting as seen by the condition matcher."""

    category_id: str
    type_id: str
    tags: List[str] = Field(default_factory=list)
    importance: Importance = Importance.NORMAL
    score: float = 0.0
    reporter_trust_level: ReputationTier = ReputationTier.UNVERIFIED


def build_match_data(
    sighting: Sighting,
    context: EvaluationContext,
    *,
    trusted_threshold: float = TRUSTED_THRESHOLD,
    new_threshold: float = NEW_THRESHOLD,
) -> SightingMatchData:
    """Resolve tags via the sighting type and the reporter's trust tier."""
    sighting_type = context.sighting_types.get(sighting.type_id)
    tags = list(sighting_type.tags) if sighting_type is not None else []
    return SightingMatchData(
        category_id=sighting.category_id,
        type_id=sighting.type_id,
        tags=tags,
        importance=sighting.importance,
        score=sighting.score,
        reporter_trust_level=reporter_trust_level(
            sighting.reporter_id,
            context.user_reputation,
            trusted_threshold=trusted_threshold,
            new_threshold=new_threshold,
        ),
    )


def _checks(conditions: SignalConditions, data: SightingMatchData) -> List[bool]:
    """One boolean per populated condition field, in a fixed order."""
    checks: List[bool] = []

    if conditions.category_ids:
        checks.append(data.category_id in conditions.category_ids)

    if conditions.type_ids:
        checks.append(data.type_id in conditions.type_ids)

    if conditions.tags:
        checks.append(any(tag in data.tags for tag in conditions.tags))

    if conditions.importance:
        checks.append(data.importance in conditions.importance)

    if conditions.min_trust_level is not None:
        checks.append(
            meets_min_trust_level(data.reporter_trust_level, conditions.min_trust_level)
        )

    if conditions.min_score is not None:
        checks.append(data.score >= conditions.min_score)

    if conditions.max_score is not None:
        checks.append(data.score <= conditions.max_score)

    return checks


def matches_conditions(conditions: SignalConditions, data: SightingMatchData) -> bool:
    """Return True when *data* satisfies *conditions*.

    An unconfigured condition set matches everything. Under OR at least one
    populated check must pass; under AND (the default) all of them.
    """
    checks = _checks(conditions, data)
    if not checks:
        return True
    if conditions.operator == ConditionOperator.OR:
        return any(checks)
    return all(checks)


def describe_conditions(conditions: SignalConditions) -> str:
    """Human-readable one-line summary of a condition set."""
    parts: List[str] = []

    if conditions.category_ids:
        parts.append(f"Categories: {', '.join(conditions.category_ids)}")
    if conditions.type_ids:
        parts.append(f"Types: {', '.join(conditions.type_ids)}")
    if conditions.tags:
        parts.append(f"Tags: {', '.join(conditions.tags)}")
    if conditions.importance:
        parts.append(
            f"Importance: {', '.join(Importance(i).value for i in conditions.importance)}"
        )
    if conditions.min_trust_level is not None:
        parts.append(f"Min trust: {ReputationTier(conditions.min_trust_level).value}")
    if conditions.min_score is not None or conditions.max_score is not None:
        low = "-∞" if conditions.min_score is None else f"{conditions.min_score:g}"
        high = "∞" if conditions.max_score is None else f"{conditions.max_score:g}"
        parts.append(f"Score: {low} to {high}")

    if not parts:
        return "All sightings"
    return f" {ConditionOperator(conditions.operator).value} ".join(parts)


class ConditionMatcher:
    """Checks a sighting's attributes against a signal's conditions."""

    def __init__(
        self,
        trusted_threshold: float = TRUSTED_THRESHOLD,
        new_threshold: float = NEW_THRESHOLD,
    ) -> None:
        self.trusted_threshold = trusted_threshold
        self.new_threshold = new_threshold

    def matches(
        self, sighting: Sighting, signal: Signal, context: EvaluationContext
    ) -> bool:
        data = build_match_data(
            sighting,
            context,
            trusted_threshold=self.trusted_threshold,
            new_threshold=self.new_threshold,
        )
        return matches_conditions(signal.conditions, data)
