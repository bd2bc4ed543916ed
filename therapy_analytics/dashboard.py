"""Compose every dashboard metric from one set of inputs and one ``now``."""
from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Sequence

from .health_score import compute_health_score
from .iob_cob import compute_iob_cob
from .meal_inference import detect_inferred_meals
from .models import (
    DashboardReport,
    DoseAdvice,
    GlucoseReading,
    MealEvent,
    TherapyProfile,
    TimeInRangeBucket,
    TreatmentEvent,
)
from .sensitivity import estimate_sensitivity
from .time_in_range import compute_time_in_range
from .utils import DAY_MS, epoch_ms, parse_timestamp_ms, resolve_now


def _within_last_day(meal: MealEvent, now_ms: int) -> bool:
    eaten_at = parse_timestamp_ms(meal.eaten_at)
    return eaten_at is not None and now_ms - DAY_MS <= eaten_at <= now_ms


def build_dashboard_report(
    entries: Sequence[GlucoseReading],
    treatments: Sequence[TreatmentEvent],
    meals: Sequence[MealEvent],
    profile: TherapyProfile,
    now: Optional[datetime] = None,
) -> DashboardReport:
    """Run the analytics against a single sampled ``now`` so parts never skew.

    Meal inference only looks at the trailing 24 hours of readings and meals.
    """

    current = resolve_now(now)
    now_ms = epoch_ms(current)
    recent_entries = [entry for entry in entries if now_ms - DAY_MS <= entry.timestamp_ms <= now_ms]
    recent_meals = [meal for meal in meals if _within_last_day(meal, now_ms)]
    return DashboardReport(
        generated_at=current,
        iob_cob=compute_iob_cob(treatments, profile, current),
        time_in_range=compute_time_in_range(entries, profile, current),
        inferred_meals=tuple(detect_inferred_meals(recent_entries, recent_meals)),
        sensitivity=estimate_sensitivity(entries, treatments, profile),
        health_score=compute_health_score(entries, profile, current),
    )


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def bucket_to_dict(bucket: TimeInRangeBucket) -> dict:
    return _plain(asdict(bucket))


def dose_advice_to_dict(advice: DoseAdvice) -> dict:
    return _plain(asdict(advice))


def report_to_dict(report: DashboardReport) -> dict:
    return _plain(asdict(report))
