"""Resolve a signal's geographic target against a sighting location."""

from __future__ import annotations

import logging

from sightsignal.geo import point_in_polygon
from sightsignal.models import (
    EvaluationContext,
    GeofenceTarget,
    GlobalTarget,
    PolygonTarget,
    Sighting,
    Signal,
)

logger = logging.getLogger(__name__)


class GeographyMatcher:
    """Global targets match everywhere; polygon and geofence targets by containment.

    A geofence reference that is missing from the context, or a target shape
    this matcher does not know, never matches.
    """

    def matches(
        self, sighting: Sighting, signal: Signal, context: EvaluationContext
    ) -> bool:
        target = signal.target

        if isinstance(target, GlobalTarget):
            return True

        if isinstance(target, PolygonTarget):
            return point_in_polygon(target.polygon, sighting.location)

        if isinstance(target, GeofenceTarget):
            geofence = context.geofences.get(target.geofence_id)
            if geofence is None:
                logger.debug(
                    "geofence_missing",
                    extra={"signal_id": signal.id, "geofence_id": target.geofence_id},
                )
                return False
            return point_in_polygon(geofence.polygon, sighting.location)

        return False
