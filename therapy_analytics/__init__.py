"""Therapy analytics engine for CGM and treatment history."""

from .dashboard import build_dashboard_report
from .dosing import DoseValidationError, calculate_dose, round_to_half_unit
from .health_score import compute_health_score
from .iob_cob import compute_iob_cob
from .meal_inference import detect_inferred_meals
from .models import (
    Confidence,
    DashboardReport,
    DoseAdvice,
    GlucoseReading,
    GlucoseStatus,
    HealthScoreCard,
    InferredMealEvent,
    IobCobSnapshot,
    MealEvent,
    MealSource,
    RatioWindow,
    SensitivityInsight,
    TargetWindow,
    TherapyProfile,
    TimeInRangeBucket,
    TimeInRangeStats,
    TreatmentEvent,
)
from .sensitivity import estimate_sensitivity
from .time_in_range import compute_time_in_range
from .time_windows import resolve_window

__all__ = [
    "Confidence",
    "DashboardReport",
    "DoseAdvice",
    "DoseValidationError",
    "GlucoseReading",
    "GlucoseStatus",
    "HealthScoreCard",
    "InferredMealEvent",
    "IobCobSnapshot",
    "MealEvent",
    "MealSource",
    "RatioWindow",
    "SensitivityInsight",
    "TargetWindow",
    "TherapyProfile",
    "TimeInRangeBucket",
    "TimeInRangeStats",
    "TreatmentEvent",
    "build_dashboard_report",
    "calculate_dose",
    "compute_health_score",
    "compute_iob_cob",
    "compute_time_in_range",
    "detect_inferred_meals",
    "estimate_sensitivity",
    "resolve_window",
    "round_to_half_unit",
]
