"""Core data models for therapy analytics."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence


class MealSource(str, Enum):
    """Where a meal record came from."""

    LOGGED = "logged"
    INFERRED = "inferred"


class GlucoseStatus(str, Enum):
    LOW = "low"
    IN_RANGE = "in-range"
    HIGH = "high"


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class GlucoseReading:
    """Single sensor glucose value (mg/dL) at an epoch-millisecond timestamp."""

    timestamp_ms: int
    sgv_mgdl: float
    trend_direction: Optional[str] = None
    device: Optional[str] = None

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_ms / 1000, tz=timezone.utc)


@dataclass(frozen=True)
class TreatmentEvent:
    """Insulin delivery, carb entry, or both."""

    created_at: str
    insulin_units: Optional[float] = None
    carbs_grams: Optional[float] = None
    event_type: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class MealEvent:
    id: str
    name: str
    carbs_grams: float
    eaten_at: str
    source: MealSource = MealSource.LOGGED
    calories: Optional[float] = None


@dataclass(frozen=True)
class RatioWindow:
    """Carb-to-insulin ratio active between two HH:MM clock times."""

    start_hhmm: str
    end_hhmm: str
    grams_per_unit: float
    id: Optional[str] = None


@dataclass(frozen=True)
class TargetWindow:
    """Glucose target range (g/L) active between two HH:MM clock times."""

    start_hhmm: str
    end_hhmm: str
    low_gl: float
    high_gl: float
    id: Optional[str] = None


@dataclass(frozen=True)
class TherapyProfile:
    """User-specific therapy configuration.

    Windows use 24-hour ``HH:MM`` times and may wrap past midnight when the
    start is later than the end. ``local_timezone`` is an IANA zone name used
    to read wall-clock times; ``None`` means UTC.
    """

    ratio_windows: Sequence[RatioWindow]
    correction_factor_drop_gl_per_unit: float
    target_low_gl: float
    target_high_gl: float
    insulin_action_hours: float
    carb_absorption_hours: float
    target_windows: Sequence[TargetWindow] = field(default_factory=tuple)
    local_timezone: Optional[str] = None


@dataclass(frozen=True)
class ParsedClock:
    """Result of parsing an ``HH:MM`` string.

    ``defaulted`` is true when the input was malformed and ``minutes`` fell
    back to midnight.
    """

    minutes: int
    defaulted: bool = False


@dataclass(frozen=True)
class IobCobSnapshot:
    iob_units: float
    cob_grams: float


@dataclass(frozen=True)
class TimeInRangeBucket:
    """Time-in-range figures for one trailing period."""

    label: str
    from_time: datetime
    to_time: datetime
    count: int
    in_range_pct: float
    low_pct: float
    high_pct: float
    avg_gl: Optional[float]


@dataclass(frozen=True)
class TimeInRangeStats:
    day: TimeInRangeBucket
    week: TimeInRangeBucket
    month: TimeInRangeBucket


@dataclass(frozen=True)
class DoseAdvice:
    """Advisory bolus estimate. Never an automated action."""

    ratio_grams_per_unit: float
    carb_bolus_units: float
    correction_units: float
    total_units: float
    iob_units: float
    cob_grams: float
    cob_as_units: float
    adjusted_carb_bolus_units: float
    adjusted_correction_units: float
    adjusted_total_units: float
    rounded_half_unit_dose: float
    target_low_gl: float
    target_high_gl: float
    correction_factor_drop_gl_per_unit: float
    glucose_status: GlucoseStatus
    notes: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class InferredMealEvent:
    """Glucose rise consistent with a meal nobody logged."""

    id: str
    eaten_at: str
    rise_mgdl: float

    def as_meal_event(self) -> MealEvent:
        return MealEvent(
            id=self.id,
            name="Inferred meal",
            carbs_grams=0.0,
            eaten_at=self.eaten_at,
            source=MealSource.INFERRED,
        )


@dataclass(frozen=True)
class SensitivityInsight:
    sample_count: int
    average_drop_per_unit_gl: Optional[float]
    suggested_correction_factor_gl: Optional[float]
    confidence: Confidence


@dataclass(frozen=True)
class HealthScoreCard:
    """Composite score over the trailing fortnight, with its sub-scores."""

    overall: float
    tir_score: float
    variability_score: float
    hypo_score: float
    stability_score: float
    in_range_pct: float
    low_pct: float
    cv_pct: float


@dataclass(frozen=True)
class TrendSummary:
    """Latest glucose value and its change since the previous reading."""

    current: Optional[float]
    delta: Optional[float]
    direction: Optional[str]
    updated_at: Optional[str]


@dataclass(frozen=True)
class HealthSummary:
    """Activity and weight summary from the integrations service (display only)."""

    steps_last_24h: Optional[float]
    weight_kg_latest: Optional[float]
    weight_updated_at: Optional[str]
    synced_at: str
    source: str = "health-connect"


@dataclass(frozen=True)
class DashboardReport:
    """Engine outputs computed against one shared ``generated_at`` instant."""

    generated_at: datetime
    iob_cob: IobCobSnapshot
    time_in_range: TimeInRangeStats
    inferred_meals: Sequence[InferredMealEvent]
    sensitivity: SensitivityInsight
    health_score: Optional[HealthScoreCard]
