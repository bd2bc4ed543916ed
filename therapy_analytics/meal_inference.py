"""Detect glucose rises that look like unlogged meals.

A heuristic: it misses rises close to known meals and will flag non-meal rises
that happen to match the shape.
"""
from __future__ import annotations

from typing import Final, Iterable

import numpy as np

from .models import GlucoseReading, InferredMealEvent, MealEvent
from .utils import MINUTE_MS, parse_timestamp_ms, readings_frame, to_iso

MINIMUM_READINGS: Final[int] = 5
LOOKBACK_SAMPLES: Final[int] = 4
RISE_WINDOW_MINUTES: Final[tuple[float, float]] = (15.0, 35.0)
RISE_THRESHOLD_MGDL: Final[float] = 30.0
LOGGED_MEAL_GAP_MINUTES: Final[float] = 60.0
INFERRED_MEAL_GAP_MINUTES: Final[float] = 90.0


def detect_inferred_meals(
    entries: Iterable[GlucoseReading],
    logged_meals: Iterable[MealEvent],
) -> list[InferredMealEvent]:
    """Return meals inferred from 4-sample rises of at least 30 mg/dL.

    Candidates within 60 minutes of a logged meal or 90 minutes of an
    already inferred meal are dropped.
    """

    frame = readings_frame(entries)
    if len(frame) < MINIMUM_READINGS:
        return []

    meal_times = [ts for ts in (parse_timestamp_ms(meal.eaten_at) for meal in logged_meals) if ts is not None]
    timestamps = frame["timestamp_ms"].to_numpy(dtype="int64")
    glucose = frame["sgv_mgdl"].to_numpy(dtype=float)

    min_minutes, max_minutes = RISE_WINDOW_MINUTES
    logged_gap_ms = LOGGED_MEAL_GAP_MINUTES * MINUTE_MS
    inferred_gap_ms = INFERRED_MEAL_GAP_MINUTES * MINUTE_MS

    inferred: list[InferredMealEvent] = []
    accepted_times: list[int] = []
    for idx in range(LOOKBACK_SAMPLES, len(frame)):
        start = idx - LOOKBACK_SAMPLES
        minutes = (timestamps[idx] - timestamps[start]) / MINUTE_MS
        if minutes < min_minutes or minutes > max_minutes:
            continue

        delta = float(glucose[idx] - glucose[start])
        if delta < RISE_THRESHOLD_MGDL:
            continue

        candidate = int(timestamps[idx])
        if meal_times and np.any(np.abs(np.asarray(meal_times) - candidate) <= logged_gap_ms):
            continue
        if any(abs(accepted - candidate) <= inferred_gap_ms for accepted in accepted_times):
            continue

        accepted_times.append(candidate)
        inferred.append(
            InferredMealEvent(
                id=f"inferred-{candidate}",
                eaten_at=to_iso(candidate),
                rise_mgdl=delta,
            )
        )

    return inferred
