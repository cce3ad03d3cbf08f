"""Viewer-relative signal ranking: classification, popularity, virality, distance."""

from __future__ import annotations

from typing import TYPE_CHECKING, Collection, Dict, List, Mapping, Optional, Sequence

from sightsignal.geo import distance_km, polygon_centroid
from sightsignal.models import (
    CategoryPreference,
    Geofence,
    GeofenceTarget,
    GlobalTarget,
    LatLng,
    PolygonTarget,
    RankedSignal,
    RankingContext,
    Signal,
    SignalClassification,
)

if TYPE_CHECKING:
    from sightsignal.config import Settings

CLASSIFICATION_PRIORITY: Dict[SignalClassification, float] = {
    SignalClassification.OFFICIAL: 1000,
    SignalClassification.COMMUNITY: 500,
    SignalClassification.VERIFIED: 100,
    SignalClassification.PERSONAL: 0,
}

DEFAULT_CATEGORY_BOOSTS = (3.0, 2.0, 1.5)


class SignalRanker:
    """Scores signals for one viewer and produces a total order.

    Formula:
        official + global    → priority(official) + official_global_bonus
        community + unimportant → unimportant_score
        popularity           = views*view_w + subscribers*sub_w + sightings*sighting_w
        effective_distance   = distance_km / category_boost   (0 without location ranking)
        base                 = popularity * distance_scale / (effective_distance + 1)
        rank_score           = base * (viral_multiplier if viral else 1) + priority(classification)
    """

    def __init__(
        self,
        view_weight: float = 1.0,
        subscriber_weight: float = 10.0,
        sighting_weight: float = 5.0,
        distance_scale: float = 100.0,
        viral_multiplier: float = 2.0,
        official_global_bonus: float = 10000.0,
        unimportant_score: float = -1000.0,
        category_boosts: Sequence[float] = DEFAULT_CATEGORY_BOOSTS,
    ) -> None:
        self.view_weight = view_weight
        self.subscriber_weight = subscriber_weight
        self.sighting_weight = sighting_weight
        self.distance_scale = distance_scale
        self.viral_multiplier = viral_multiplier
        self.official_global_bonus = official_global_bonus
        self.unimportant_score = unimportant_score
        self.category_boosts = tuple(category_boosts)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SignalRanker":
        return cls(
            view_weight=settings.view_weight,
            subscriber_weight=settings.subscriber_weight,
            sighting_weight=settings.sighting_weight,
            distance_scale=settings.distance_scale,
            viral_multiplier=settings.viral_multiplier,
            official_global_bonus=settings.official_global_bonus,
            unimportant_score=settings.unimportant_score,
            category_boosts=settings.category_boosts,
        )

    # ------------------------------------------------------------------
    # Score components
    # ------------------------------------------------------------------

    def popularity_score(self, signal: Signal) -> float:
        """Subscribers weigh most, then sightings, then raw views."""
        analytics = signal.analytics
        return (
            analytics.view_count * self.view_weight
            + analytics.subscriber_count * self.subscriber_weight
            + analytics.sighting_count * self.sighting_weight
        )

    def category_boost(
        self,
        signal: Signal,
        preferences: Sequence[CategoryPreference],
        personalization_enabled: bool,
    ) -> float:
        """Boost by the rank of the viewer's best-matching top category.

        1.0 whenever personalization is off, the viewer has no preferences
        or the signal has no category filter.
        """
        if not personalization_enabled or not preferences:
            return 1.0

        signal_categories = signal.conditions.category_ids or []
        if not signal_categories:
            return 1.0

        top = sorted(preferences, key=lambda p: p.interaction_score, reverse=True)
        for boost, preference in zip(self.category_boosts, top):
            if preference.category_id in signal_categories:
                return boost
        return 1.0

    def rank_score(
        self,
        signal: Signal,
        context: RankingContext,
        is_viral_boosted: bool = False,
        distance_km: Optional[float] = None,
    ) -> float:
        priority = CLASSIFICATION_PRIORITY[SignalClassification(signal.classification)]

        if signal.classification == SignalClassification.OFFICIAL and isinstance(
            signal.target, GlobalTarget
        ):
            return priority + self.official_global_bonus

        if (
            signal.classification == SignalClassification.COMMUNITY
            and signal.id in context.unimportant_signal_ids
        ):
            return self.unimportant_score

        popularity = self.popularity_score(signal)
        boost = self.category_boost(
            signal, context.category_preferences, context.enable_personalization
        )

        effective_distance = 0.0
        if context.enable_location_ranking and distance_km is not None:
            effective_distance = distance_km / boost

        base = (popularity * self.distance_scale) / (effective_distance + 1)
        if is_viral_boosted:
            base *= self.viral_multiplier
        return base + priority

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def rank(
        self,
        signal: Signal,
        context: RankingContext,
        is_viral_boosted: bool = False,
        distance_km: Optional[float] = None,
    ) -> RankedSignal:
        """Project *signal* into a RankedSignal for this viewer."""
        return RankedSignal(
            **signal.model_dump(include=set(Signal.model_fields)),
            rank_score=self.rank_score(signal, context, is_viral_boosted, distance_km),
            is_viral_boosted=is_viral_boosted,
            category_boost=self.category_boost(
                signal, context.category_preferences, context.enable_personalization
            ),
            distance_km=distance_km,
        )

    def rank_signals(
        self,
        signals: Sequence[Signal],
        context: RankingContext,
        viral_signal_ids: Collection[str] = (),
        distances: Optional[Mapping[str, float]] = None,
        include_hidden: bool = False,
    ) -> List[RankedSignal]:
        """Rank and order a candidate set; hidden signals are dropped unless asked for."""
        distances = distances or {}
        hidden = set(context.hidden_signal_ids)
        ranked = [
            self.rank(
                signal,
                context,
                is_viral_boosted=signal.id in viral_signal_ids,
                distance_km=distances.get(signal.id),
            )
            for signal in signals
            if include_hidden or signal.id not in hidden
        ]
        return sort_by_rank_score(ranked, context.pinned_signal_ids)


_DEFAULT_RANKER = SignalRanker()


def calculate_rank_score(
    signal: Signal,
    context: RankingContext,
    is_viral_boosted: bool = False,
    distance_km: Optional[float] = None,
) -> float:
    """Rank score with the default weights."""
    return _DEFAULT_RANKER.rank_score(signal, context, is_viral_boosted, distance_km)


def calculate_category_boost(
    signal: Signal,
    preferences: Sequence[CategoryPreference],
    personalization_enabled: bool,
) -> float:
    return _DEFAULT_RANKER.category_boost(signal, preferences, personalization_enabled)


def sort_by_rank_score(
    signals: Sequence[RankedSignal], pinned_signal_ids: Sequence[str]
) -> List[RankedSignal]:
    """Pinned signals first, in pinned-list order; the rest by score, descending.

    The sort is stable: equal scores keep their input order.
    """
    pin_index: Dict[str, int] = {}
    for i, signal_id in enumerate(pinned_signal_ids):
        pin_index.setdefault(signal_id, i)

    pinned = sorted(
        (s for s in signals if s.id in pin_index), key=lambda s: pin_index[s.id]
    )
    rest = sorted(
        (s for s in signals if s.id not in pin_index),
        key=lambda s: s.rank_score,
        reverse=True,
    )
    return pinned + rest


# ---------------------------------------------------------------------------
# Distance source
# ---------------------------------------------------------------------------


def get_signal_representative_point(signal: Signal) -> Optional[LatLng]:
    """Centroid of an inline polygon target; None for global and geofence targets."""
    if isinstance(signal.target, PolygonTarget):
        return polygon_centroid(signal.target.polygon.points)
    return None


def signal_distance_km(
    signal: Signal,
    viewer_location: Optional[LatLng],
    geofences: Optional[Mapping[str, Geofence]] = None,
) -> Optional[float]:
    """Distance from the viewer to the signal's representative point.

    Geofence targets are resolved through *geofences*; a missing geofence or
    a global target yields None.
    """
    if viewer_location is None:
        return None

    point = get_signal_representative_point(signal)
    if point is None and isinstance(signal.target, GeofenceTarget) and geofences:
        geofence = geofences.get(signal.target.geofence_id)
        if geofence is not None:
            point = polygon_centroid(geofence.polygon.points)

    if point is None:
        return None
    return distance_km(viewer_location, point)
