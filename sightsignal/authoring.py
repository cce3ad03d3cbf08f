"""Hard validation for signals at creation/update time.

The evaluation core never calls this; it resolves malformed-but-typed
signals to safe defaults instead. Authoring paths (the CLI loader, any API
layer) reject bad signals up front.
"""

from __future__ import annotations

from typing import Optional

from sightsignal.geo import validate_polygon
from sightsignal.models import GeofenceTarget, PolygonTarget, Signal

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_TRIGGERS = 10
MAX_CATEGORY_IDS = 20
MAX_TYPE_IDS = 50
MAX_TAGS = 30


class SignalValidationError(ValueError):
    """Raised when a signal fails authoring validation."""

    def __init__(self, code: str, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code
        self.field = field


def validate_signal(signal: Signal) -> Signal:
    """Return *signal* unchanged or raise SignalValidationError."""
    if not signal.name.strip():
        raise SignalValidationError("signal.name_required", "Signal name is required.", "name")
    if len(signal.name) > MAX_NAME_LENGTH:
        raise SignalValidationError(
            "signal.name_too_long",
            f"Signal name must be {MAX_NAME_LENGTH} characters or less.",
            "name",
        )
    if signal.description and len(signal.description) > MAX_DESCRIPTION_LENGTH:
        raise SignalValidationError(
            "signal.description_too_long",
            f"Description must be {MAX_DESCRIPTION_LENGTH} characters or less.",
            "description",
        )
    if not signal.owner_id.strip():
        raise SignalValidationError(
            "signal.owner_required", "Signal owner is required.", "owner_id"
        )

    target = signal.target
    if isinstance(target, PolygonTarget):
        try:
            validate_polygon(target.polygon)
        except ValueError as exc:
            raise SignalValidationError("geo.invalid_polygon", str(exc), "polygon") from exc
    if isinstance(target, GeofenceTarget) and not target.geofence_id.strip():
        raise SignalValidationError(
            "signal.geofence_required",
            "Geofence ID is required when target kind is geofence.",
            "geofence_id",
        )

    # An empty trigger list is already rejected by the Signal model.
    if len(signal.triggers) > MAX_TRIGGERS:
        raise SignalValidationError(
            "signal.too_many_triggers",
            f"Maximum {MAX_TRIGGERS} triggers allowed.",
            "triggers",
        )
    if len(set(signal.triggers)) != len(signal.triggers):
        raise SignalValidationError(
            "signal.duplicate_triggers", "Duplicate triggers are not allowed.", "triggers"
        )

    conditions = signal.conditions
    limits = (
        (conditions.category_ids, MAX_CATEGORY_IDS, "signal.too_many_categories", "categories", "category_ids"),
        (conditions.type_ids, MAX_TYPE_IDS, "signal.too_many_types", "types", "type_ids"),
        (conditions.tags, MAX_TAGS, "signal.too_many_tags", "tags", "tags"),
    )
    for values, limit, code, noun, field in limits:
        if values and len(values) > limit:
            raise SignalValidationError(code, f"Maximum {limit} {noun} allowed.", field)

    if (
        conditions.min_score is not None
        and conditions.max_score is not None
        and conditions.min_score > conditions.max_score
    ):
        raise SignalValidationError(
            "signal.invalid_score_range",
            "Minimum score cannot be greater than maximum score.",
            "min_score",
        )

    return signal
