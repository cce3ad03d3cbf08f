"""Use-case layer: load rows from the Database, run the pure core, log outcomes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from sightsignal.authoring import validate_signal
from sightsignal.config import Settings
from sightsignal.context import build_evaluation_context, build_ranking_context
from sightsignal.evaluation import (
    ConditionMatcher,
    SignalEvaluator,
    crossed_score_threshold,
    find_score_threshold_signals,
)
from sightsignal.models import (
    ActivitySnapshot,
    EvaluationContext,
    Geofence,
    LatLng,
    MembershipTier,
    RankedSignal,
    ReputationRecord,
    Sighting,
    SightingType,
    Signal,
    SignalActivitySnapshot,
    SignalEvaluation,
    TriggerType,
    UserAccount,
    UserCategoryInteraction,
    UserPrivacySettings,
    UserSignalPreference,
)
from sightsignal.ranking import (
    SignalRanker,
    calculate_viral_activity,
    detect_viral_boost,
    signal_distance_km,
)
from sightsignal.storage.database import Database

logger = logging.getLogger(__name__)

# Seed sections in load order: lookups before the rows that reference them.
_SEED_SECTIONS = (
    "users",
    "geofences",
    "sighting_types",
    "reputation",
    "signals",
    "sightings",
    "privacy",
    "preferences",
    "interactions",
    "snapshots",
)


class SignalService:
    """Coordinates storage, context assembly, evaluation and ranking."""

    def __init__(
        self,
        config: Settings,
        db: Database,
        evaluator: Optional[SignalEvaluator] = None,
        ranker: Optional[SignalRanker] = None,
    ) -> None:
        self.config = config
        self.db = db
        self.evaluator = evaluator or SignalEvaluator(
            condition_matcher=ConditionMatcher(
                trusted_threshold=config.trusted_threshold,
                new_threshold=config.new_threshold,
            )
        )
        self.ranker = ranker or SignalRanker.from_settings(config)

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def import_seed(self, payload: Mapping[str, Any]) -> Dict[str, int]:
        """Validate and store every section of a seed document.

        Signals go through authoring validation. The import runs in one
        transaction: any failure rolls back every row already written.
        Returns row counts per section.
        """
        unknown = set(payload) - set(_SEED_SECTIONS)
        if unknown:
            raise ValueError(f"Unknown seed sections: {sorted(unknown)}")

        counts: Dict[str, int] = {}
        with self.db.transaction():
            for section in _SEED_SECTIONS:
                rows = payload.get(section) or []
                for row in rows:
                    self._import_row(section, row)
                counts[section] = len(rows)

        logger.info("seed_imported", extra=counts)
        return counts

    def _import_row(self, section: str, row: Mapping[str, Any]) -> None:
        if section == "users":
            self.db.upsert_user(UserAccount.model_validate(row))
        elif section == "geofences":
            self.db.upsert_geofence(Geofence.model_validate(row))
        elif section == "sighting_types":
            self.db.upsert_sighting_type(SightingType.model_validate(row))
        elif section == "reputation":
            self.db.upsert_reputation(ReputationRecord.model_validate(row))
        elif section == "signals":
            self.db.upsert_signal(validate_signal(Signal.model_validate(row)))
        elif section == "sightings":
            self.db.upsert_sighting(Sighting.model_validate(row))
        elif section == "privacy":
            self.db.upsert_privacy_settings(UserPrivacySettings.model_validate(row))
        elif section == "preferences":
            self.db.upsert_signal_preference(UserSignalPreference.model_validate(row))
        elif section == "interactions":
            self.db.upsert_category_interaction(UserCategoryInteraction.model_validate(row))
        elif section == "snapshots":
            self.db.add_activity_snapshot(SignalActivitySnapshot.model_validate(row))

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluation_context(self) -> EvaluationContext:
        return build_evaluation_context(
            geofences=self.db.list_geofences(),
            sighting_types=self.db.list_sighting_types(),
            user_reputation=self.db.list_reputation(),
        )

    def evaluate_sighting(
        self,
        sighting_id: str,
        event_type: Union[TriggerType, str] = TriggerType.NEW_SIGHTING,
        detailed: bool = False,
    ) -> Union[List[Signal], List[SignalEvaluation]]:
        """Matched signals for a stored sighting, or one evaluation per signal."""
        sighting = self._require_sighting(sighting_id)
        event = TriggerType(event_type)
        context = self.evaluation_context()

        if detailed:
            signals = self.db.list_signals()
            evaluations = self.evaluator.evaluate_sighting_detailed(
                sighting, signals, event, context
            )
            logger.info(
                "sighting_evaluated_detailed",
                extra={
                    "sighting_id": sighting.id,
                    "event": event.value,
                    "signals": len(signals),
                    "matched": sum(1 for e in evaluations if e.matched),
                },
            )
            return evaluations

        signals = self.db.list_signals(is_active=True)
        matched = self.evaluator.evaluate_sighting(sighting, signals, event, context)
        logger.info(
            "sighting_evaluated",
            extra={
                "sighting_id": sighting.id,
                "event": event.value,
                "signals": len(signals),
                "matched": len(matched),
            },
        )
        return matched

    def preview_signal(self, signal_id: str, limit: int = 500) -> List[Sighting]:
        """Stored sightings that would appear in a signal's feed."""
        signal = self.db.get_signal(signal_id)
        if signal is None:
            raise LookupError(f"Signal not found: {signal_id}")

        sightings = self.db.list_sightings(limit=limit)
        feed = self.evaluator.evaluate_signal_feed(
            sightings, signal, self.evaluation_context()
        )
        logger.info(
            "signal_previewed",
            extra={"signal_id": signal.id, "sightings": len(sightings), "feed": len(feed)},
        )
        return feed

    def score_threshold_candidates(
        self, sighting_id: str, previous_score: float
    ) -> List[Signal]:
        """Signals whose min_score the sighting's score just crossed upward."""
        sighting = self._require_sighting(sighting_id)
        context = self.evaluation_context()

        candidates: List[Signal] = []
        for signal in find_score_threshold_signals(self.db.list_signals(is_active=True)):
            threshold = signal.conditions.min_score
            if threshold is None:
                continue
            if not crossed_score_threshold(sighting.score, previous_score, threshold):
                continue
            if self.evaluator.would_match(sighting, signal, context):
                candidates.append(signal)

        logger.info(
            "score_threshold_checked",
            extra={
                "sighting_id": sighting.id,
                "previous_score": previous_score,
                "current_score": sighting.score,
                "candidates": len(candidates),
            },
        )
        return candidates

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    def rank_signals_for_user(
        self,
        user_id: str,
        user_location: Optional[LatLng] = None,
        include_hidden: bool = False,
        now: Optional[datetime] = None,
    ) -> List[RankedSignal]:
        """Active signals ordered for one viewer."""
        user = self.db.get_user(user_id)
        if user is None:
            raise LookupError(f"User not found: {user_id}")

        context = build_ranking_context(
            privacy=self.db.get_privacy_settings(user_id),
            preferences=self.db.list_signal_preferences(user_id),
            interactions=self.db.list_category_interactions(user_id),
            user_location=user_location,
            user_tier=MembershipTier(user.membership_tier),
        )

        signals = self.db.list_signals(is_active=True)
        geofences = {g.id: g for g in self.db.list_geofences()}
        now = now or datetime.now(timezone.utc)

        viral_ids = {s.id for s in signals if self._is_viral(s.id, now)}
        distances: Dict[str, float] = {}
        for signal in signals:
            distance = signal_distance_km(signal, context.user_location, geofences)
            if distance is not None:
                distances[signal.id] = distance

        ranked = self.ranker.rank_signals(
            signals,
            context,
            viral_signal_ids=viral_ids,
            distances=distances,
            include_hidden=include_hidden,
        )
        logger.info(
            "signals_ranked",
            extra={
                "user_id": user_id,
                "signals": len(signals),
                "ranked": len(ranked),
                "viral": len(viral_ids),
                "personalized": context.enable_personalization,
                "location_ranked": context.enable_location_ranking,
            },
        )
        return ranked

    def _is_viral(self, signal_id: str, now: datetime) -> bool:
        snapshots = self.db.get_recent_snapshots(
            signal_id, days=self.config.viral_window_days, now=now
        )
        if not snapshots:
            return False
        data = calculate_viral_activity(
            (ActivitySnapshot(date=s.snapshot_date, activity=s.activity()) for s in snapshots),
            now=now,
            window_days=self.config.viral_window_days,
        )
        return detect_viral_boost(
            data,
            ratio=self.config.viral_ratio,
            cold_start_minimum=self.config.viral_cold_start_minimum,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_sighting(self, sighting_id: str) -> Sighting:
        sighting = self.db.get_sighting(sighting_id)
        if sighting is None:
            raise LookupError(f"Sighting not found: {sighting_id}")
        return sighting
