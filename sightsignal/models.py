"""Pydantic models and enums for SightSignal."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Importance(str, Enum):
    """Reporter-assigned importance of a sighting."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class TriggerType(str, Enum):
    """Sighting lifecycle events a signal can subscribe to."""

    NEW_SIGHTING = "new_sighting"
    SIGHTING_CONFIRMED = "sighting_confirmed"
    SIGHTING_DISPUTED = "sighting_disputed"
    SCORE_THRESHOLD = "score_threshold"


class ReputationTier(str, Enum):
    """Ordered trust tiers: unverified < new < trusted < verified."""

    UNVERIFIED = "unverified"
    NEW = "new"
    TRUSTED = "trusted"
    VERIFIED = "verified"


class SignalClassification(str, Enum):
    """Editorial tier of a signal."""

    OFFICIAL = "official"
    COMMUNITY = "community"
    VERIFIED = "verified"
    PERSONAL = "personal"


class ConditionOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class MembershipTier(str, Enum):
    FREE = "free"
    PAID = "paid"
    ADMIN = "admin"


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


class LatLng(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class Polygon(BaseModel):
    """Ordered ring of vertices; the closing edge is implicit."""

    model_config = ConfigDict(frozen=True)

    points: List[LatLng] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Externally owned records
# ---------------------------------------------------------------------------


class Sighting(BaseModel):
    """A single reported event. Read-only to the evaluation core."""

    model_config = ConfigDict(frozen=True)

    id: str
    type_id: str
    category_id: str
    location: LatLng
    importance: Importance = Importance.NORMAL
    score: float = 0.0
    reporter_id: Optional[str] = None
    description: str = ""
    status: Literal["active", "resolved"] = "active"
    upvotes: int = 0
    downvotes: int = 0
    confirmations: int = 0
    disputes: int = 0


class Geofence(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    polygon: Polygon
    visibility: Literal["public", "private"] = "public"
    owner_id: Optional[str] = None


class SightingType(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str = ""
    category_id: str = ""
    tags: List[str] = Field(default_factory=list)


class ReputationRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    score: float = 0.0
    is_verified: bool = False


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


class GlobalTarget(BaseModel):
    """No geographic restriction."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["global"] = "global"


class GeofenceTarget(BaseModel):
    """Reference to a stored geofence; the geofence may no longer exist."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["geofence"] = "geofence"
    geofence_id: str


class PolygonTarget(BaseModel):
    """Inline polygon drawn for this signal only."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["polygon"] = "polygon"
    polygon: Polygon


SignalTarget = Annotated[
    Union[GlobalTarget, GeofenceTarget, PolygonTarget],
    Field(discriminator="kind"),
]


class SignalConditions(BaseModel):
    """Optional attribute filters. Unset fields contribute no check."""

    model_config = ConfigDict(frozen=True)

    category_ids: Optional[List[str]] = None
    type_ids: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    importance: Optional[List[Importance]] = None
    min_trust_level: Optional[ReputationTier] = None
    min_score: Optional[float] = None
    max_score: Optional[float] = None
    operator: ConditionOperator = ConditionOperator.AND


class SignalAnalytics(BaseModel):
    model_config = ConfigDict(frozen=True)

    view_count: int = 0
    unique_viewers: int = 0
    active_viewers: int = 0
    subscriber_count: int = 0
    sighting_count: int = 0


class Signal(BaseModel):
    """A saved interest filter: geography + conditions + trigger types."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    description: Optional[str] = None
    owner_id: str = ""
    target: SignalTarget = Field(default_factory=GlobalTarget)
    triggers: List[TriggerType] = Field(
        default_factory=lambda: [TriggerType.NEW_SIGHTING], min_length=1
    )
    conditions: SignalConditions = Field(default_factory=SignalConditions)
    is_active: bool = True
    classification: SignalClassification = SignalClassification.PERSONAL
    analytics: SignalAnalytics = Field(default_factory=SignalAnalytics)


class SignalEvent(BaseModel):
    """A sighting lifecycle event that triggers evaluation."""

    model_config = ConfigDict(frozen=True)

    type: TriggerType
    sighting: Sighting


class SignalEvaluation(BaseModel):
    """Outcome of evaluating one signal against one sighting."""

    signal: Signal
    matched: bool
    reason: str = ""


class EvaluationContext(BaseModel):
    """Read-only lookup tables assembled before each evaluation pass."""

    model_config = ConfigDict(frozen=True)

    geofences: Dict[str, Geofence] = Field(default_factory=dict)
    sighting_types: Dict[str, SightingType] = Field(default_factory=dict)
    user_reputation: Dict[str, ReputationRecord] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


class CategoryPreference(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: str
    interaction_score: float = 0.0


class RankingContext(BaseModel):
    """Viewer-scoped ranking input. Privacy toggles default to off."""

    model_config = ConfigDict(frozen=True)

    user_location: Optional[LatLng] = None
    user_tier: MembershipTier = MembershipTier.FREE
    category_preferences: List[CategoryPreference] = Field(default_factory=list)
    hidden_signal_ids: List[str] = Field(default_factory=list)
    pinned_signal_ids: List[str] = Field(default_factory=list)
    unimportant_signal_ids: List[str] = Field(default_factory=list)
    enable_personalization: bool = False
    enable_location_ranking: bool = False


class RankedSignal(Signal):
    """A Signal annotated with its viewer-specific rank. Never persisted."""

    rank_score: float = 0.0
    is_viral_boosted: bool = False
    category_boost: float = 1.0
    distance_km: Optional[float] = None


class ViralDetectionData(BaseModel):
    last_24h_activity: float = 0.0
    previous_7_day_average: float = 0.0


class ActivitySnapshot(BaseModel):
    date: datetime
    activity: float = 0.0


# ---------------------------------------------------------------------------
# Per-user rows consumed by the context builders
# ---------------------------------------------------------------------------


class UserPrivacySettings(BaseModel):
    """Opt-in switches; every feature is off unless the user enabled it."""

    user_id: str
    enable_personalization: bool = False
    enable_view_tracking: bool = False
    enable_location_sharing: bool = False


class UserSignalPreference(BaseModel):
    user_id: str
    signal_id: str
    is_hidden: bool = False
    is_pinned: bool = False
    is_unimportant: bool = False
    custom_rank: Optional[int] = Field(default=None, ge=0)


class UserCategoryInteraction(BaseModel):
    user_id: str
    category_id: str
    click_count: int = Field(default=0, ge=0)
    subscription_count: int = Field(default=0, ge=0)


class SignalActivitySnapshot(BaseModel):
    """Daily activity counters for one signal."""

    signal_id: str
    snapshot_date: datetime
    view_count: int = 0
    new_subscribers: int = 0
    new_sightings: int = 0

    def activity(self) -> int:
        return self.new_subscribers + self.new_sightings + self.view_count


class UserAccount(BaseModel):
    """Minimal viewer record needed for ranking."""

    id: str
    membership_tier: MembershipTier = MembershipTier.FREE
