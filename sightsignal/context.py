"""Assemble evaluation and ranking contexts from repository rows.

These builders sit at the boundary between storage and the pure core: they
only reshape rows they are handed and never read a store themselves.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from sightsignal.models import (
    CategoryPreference,
    EvaluationContext,
    Geofence,
    LatLng,
    MembershipTier,
    RankingContext,
    ReputationRecord,
    SightingType,
    UserCategoryInteraction,
    UserPrivacySettings,
    UserSignalPreference,
)

MAX_CATEGORY_PREFERENCES = 3


def build_evaluation_context(
    geofences: Iterable[Geofence] = (),
    sighting_types: Iterable[SightingType] = (),
    user_reputation: Iterable[ReputationRecord] = (),
) -> EvaluationContext:
    """Key each row collection by id; later rows win on duplicate ids."""
    return EvaluationContext(
        geofences={g.id: g for g in geofences},
        sighting_types={t.id: t for t in sighting_types},
        user_reputation={r.user_id: r for r in user_reputation},
    )


def interaction_score(interaction: UserCategoryInteraction) -> int:
    """Clicks plus subscriptions, subscriptions counted twice."""
    return interaction.click_count + interaction.subscription_count * 2


def top_category_preferences(
    interactions: Iterable[UserCategoryInteraction],
    limit: int = MAX_CATEGORY_PREFERENCES,
) -> List[CategoryPreference]:
    preferences = [
        CategoryPreference(
            category_id=i.category_id, interaction_score=interaction_score(i)
        )
        for i in interactions
    ]
    preferences.sort(key=lambda p: p.interaction_score, reverse=True)
    return preferences[:limit]


def build_ranking_context(
    privacy: Optional[UserPrivacySettings] = None,
    preferences: Sequence[UserSignalPreference] = (),
    interactions: Iterable[UserCategoryInteraction] = (),
    user_location: Optional[LatLng] = None,
    user_tier: MembershipTier = MembershipTier.FREE,
) -> RankingContext:
    """Build a viewer's RankingContext.

    Without a privacy row both personalization and location ranking are
    off. Category preferences are only read when personalization is on, and
    the viewer location is dropped when location ranking is off.
    """
    enable_personalization = privacy.enable_personalization if privacy else False
    enable_location_ranking = privacy.enable_location_sharing if privacy else False

    category_preferences: List[CategoryPreference] = []
    if enable_personalization:
        category_preferences = top_category_preferences(interactions)

    return RankingContext(
        user_location=user_location if enable_location_ranking else None,
        user_tier=user_tier,
        category_preferences=category_preferences,
        hidden_signal_ids=[p.signal_id for p in preferences if p.is_hidden],
        pinned_signal_ids=[p.signal_id for p in preferences if p.is_pinned],
        unimportant_signal_ids=[p.signal_id for p in preferences if p.is_unimportant],
        enable_personalization=enable_personalization,
        enable_location_ranking=enable_location_ranking,
    )
