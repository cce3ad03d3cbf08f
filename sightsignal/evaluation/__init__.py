"""sightsignal.evaluation — does sighting X match signal Y, and why."""

from __future__ import annotations

from sightsignal.evaluation.conditions import (
    ConditionMatcher,
    SightingMatchData,
    build_match_data,
    describe_conditions,
    matches_conditions,
)
from sightsignal.evaluation.engine import (
    SignalEvaluator,
    calculate_match_score,
    crossed_score_threshold,
    explain_evaluation,
    find_score_threshold_signals,
)
from sightsignal.evaluation.geography import GeographyMatcher
from sightsignal.evaluation.triggers import TriggerGate

__all__ = [
    "ConditionMatcher",
    "GeographyMatcher",
    "SightingMatchData",
    "SignalEvaluator",
    "TriggerGate",
    "build_match_data",
    "calculate_match_score",
    "crossed_score_threshold",
    "describe_conditions",
    "explain_evaluation",
    "find_score_threshold_signals",
    "matches_conditions",
]
