"""Signal evaluation orchestrator: active → trigger → geography → conditions."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sightsignal.evaluation.conditions import ConditionMatcher
from sightsignal.evaluation.geography import GeographyMatcher
from sightsignal.evaluation.triggers import EventLike, TriggerGate, event_type_of
from sightsignal.models import (
    ConditionOperator,
    EvaluationContext,
    PolygonTarget,
    Sighting,
    Signal,
    SignalEvaluation,
    TriggerType,
)

logger = logging.getLogger(__name__)

REASON_INACTIVE = "Signal is not active"
REASON_OUTSIDE_BOUNDS = "Sighting location is outside signal geographic bounds"
REASON_CONDITIONS = "Sighting does not match signal conditions"
REASON_MATCHED = "All criteria matched"


def _reason_no_trigger(event_type: TriggerType) -> str:
    return f"Signal does not trigger on {event_type.value}"


class SignalEvaluator:
    """Composes the three evaluation layers into per-signal verdicts.

    Each stage runs only when the previous one passed:

    1. active flag
    2. trigger gate
    3. geography matcher
    4. condition matcher

    Every method is pure; the evaluator holds no per-call state and can be
    shared across threads.
    """

    def __init__(
        self,
        trigger_gate: Optional[TriggerGate] = None,
        geography_matcher: Optional[GeographyMatcher] = None,
        condition_matcher: Optional[ConditionMatcher] = None,
    ) -> None:
        self.trigger_gate = trigger_gate or TriggerGate()
        self.geography_matcher = geography_matcher or GeographyMatcher()
        self.condition_matcher = condition_matcher or ConditionMatcher()

    # ------------------------------------------------------------------
    # Event matching
    # ------------------------------------------------------------------

    def evaluate_signal(
        self,
        sighting: Sighting,
        signal: Signal,
        event: EventLike,
        context: EvaluationContext,
    ) -> SignalEvaluation:
        """Evaluate one (signal, event) pair, recording the failing stage."""
        event_type = event_type_of(event)

        if not signal.is_active:
            return SignalEvaluation(signal=signal, matched=False, reason=REASON_INACTIVE)

        if not self.trigger_gate.should_trigger(signal, event_type):
            return SignalEvaluation(
                signal=signal, matched=False, reason=_reason_no_trigger(event_type)
            )

        if not self.geography_matcher.matches(sighting, signal, context):
            return SignalEvaluation(
                signal=signal, matched=False, reason=REASON_OUTSIDE_BOUNDS
            )

        if not self.condition_matcher.matches(sighting, signal, context):
            return SignalEvaluation(signal=signal, matched=False, reason=REASON_CONDITIONS)

        return SignalEvaluation(signal=signal, matched=True, reason=REASON_MATCHED)

    def evaluate_sighting(
        self,
        sighting: Sighting,
        signals: Sequence[Signal],
        event: EventLike,
        context: EvaluationContext,
    ) -> List[Signal]:
        """Return the signals this event should notify, in input order."""
        candidates = self.pre_filter_signals(sighting, signals, event)
        matched = [
            signal
            for signal in candidates
            if self.geography_matcher.matches(sighting, signal, context)
            and self.condition_matcher.matches(sighting, signal, context)
        ]
        logger.debug(
            "sighting_evaluated",
            extra={
                "sighting_id": sighting.id,
                "event": event_type_of(event).value,
                "signals": len(signals),
                "candidates": len(candidates),
                "matched": len(matched),
            },
        )
        return matched

    def evaluate_sighting_detailed(
        self,
        sighting: Sighting,
        signals: Sequence[Signal],
        event: EventLike,
        context: EvaluationContext,
    ) -> List[SignalEvaluation]:
        """One evaluation record per input signal, matched or not."""
        return [
            self.evaluate_signal(sighting, signal, event, context) for signal in signals
        ]

    # ------------------------------------------------------------------
    # Preview helpers (ignore trigger type)
    # ------------------------------------------------------------------

    def would_match(
        self, sighting: Sighting, signal: Signal, context: EvaluationContext
    ) -> bool:
        """Geography and conditions only; ignores triggers and the active flag."""
        return self.geography_matcher.matches(
            sighting, signal, context
        ) and self.condition_matcher.matches(sighting, signal, context)

    def filter_matching_signals(
        self,
        sighting: Sighting,
        signals: Sequence[Signal],
        context: EvaluationContext,
    ) -> List[Signal]:
        """Active signals that would match *sighting* on any trigger."""
        return [
            signal
            for signal in signals
            if signal.is_active and self.would_match(sighting, signal, context)
        ]

    def evaluate_signal_feed(
        self,
        sightings: Sequence[Sighting],
        signal: Signal,
        context: EvaluationContext,
    ) -> List[Sighting]:
        """Sightings belonging to one signal's feed. Inactive → []."""
        if not signal.is_active:
            return []
        return [s for s in sightings if self.would_match(s, signal, context)]

    # ------------------------------------------------------------------
    # Cheap pre-pass
    # ------------------------------------------------------------------

    def pre_filter_signals(
        self,
        sighting: Sighting,
        signals: Sequence[Signal],
        event: EventLike,
    ) -> List[Signal]:
        """Superset filter: never drops a signal the full pipeline would accept.

        Category/type mismatches only reject under AND, since an OR'd
        condition set can still pass through another check.
        """
        event_type = event_type_of(event)
        passing: List[Signal] = []
        for signal in signals:
            if not signal.is_active:
                continue
            if not self.trigger_gate.should_trigger(signal, event_type):
                continue

            conditions = signal.conditions
            if conditions.operator != ConditionOperator.OR:
                if conditions.category_ids and sighting.category_id not in conditions.category_ids:
                    continue
                if conditions.type_ids and sighting.type_id not in conditions.type_ids:
                    continue

            passing.append(signal)
        return passing


# ---------------------------------------------------------------------------
# Score-threshold batch helpers
# ---------------------------------------------------------------------------


def find_score_threshold_signals(signals: Sequence[Signal]) -> List[Signal]:
    """Active signals subscribed to the score_threshold trigger."""
    return [
        signal
        for signal in signals
        if signal.is_active and TriggerType.SCORE_THRESHOLD in signal.triggers
    ]


def crossed_score_threshold(current: float, previous: float, threshold: float) -> bool:
    """True only on an upward crossing; reaching the threshold exactly counts."""
    return previous < threshold <= current


# ---------------------------------------------------------------------------
# Specificity and explanations
# ---------------------------------------------------------------------------


def calculate_match_score(signal: Signal, sighting: Sighting) -> int:
    """Specificity heuristic (0-100) for ordering signals matched by one sighting."""
    conditions = signal.conditions
    score = 10

    if conditions.category_ids and sighting.category_id in conditions.category_ids:
        score += 20
    if conditions.type_ids and sighting.type_id in conditions.type_ids:
        score += 30
    if conditions.importance and sighting.importance in conditions.importance:
        score += 15
    if conditions.min_score is not None and sighting.score >= conditions.min_score:
        score += 10
    if conditions.max_score is not None and sighting.score <= conditions.max_score:
        score += 10
    if isinstance(signal.target, PolygonTarget):
        score += 5

    return min(score, 100)


def explain_evaluation(evaluation: SignalEvaluation) -> str:
    name = evaluation.signal.name or evaluation.signal.id
    if evaluation.matched:
        return f'Signal "{name}" matched: {evaluation.reason}'
    return f'Signal "{name}" did not match: {evaluation.reason}'
