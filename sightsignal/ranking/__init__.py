"""sightsignal.ranking — order signals for a viewer."""

from __future__ import annotations

from sightsignal.ranking.scorer import (
    CLASSIFICATION_PRIORITY,
    SignalRanker,
    calculate_category_boost,
    calculate_rank_score,
    get_signal_representative_point,
    signal_distance_km,
    sort_by_rank_score,
)
from sightsignal.ranking.viral import calculate_viral_activity, detect_viral_boost

__all__ = [
    "CLASSIFICATION_PRIORITY",
    "SignalRanker",
    "calculate_category_boost",
    "calculate_rank_score",
    "calculate_viral_activity",
    "detect_viral_boost",
    "get_signal_representative_point",
    "signal_distance_km",
    "sort_by_rank_score",
]
