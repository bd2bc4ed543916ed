"""Empirical correction factor from past correction-only boluses."""
from __future__ import annotations

import math
from typing import Final, Iterable, Optional

import numpy as np

from .models import Confidence, GlucoseReading, SensitivityInsight, TherapyProfile, TreatmentEvent
from .utils import MINUTE_MS, parse_timestamp_ms, readings_frame, round2

# Policy constants. The blend favours the configured factor to damp noisy samples.
CONFIGURED_FACTOR_WEIGHT: Final[float] = 0.6
OBSERVED_FACTOR_WEIGHT: Final[float] = 0.4

MAX_CORRECTION_CARBS_GRAMS: Final[float] = 5.0
BEFORE_GAP_MINUTES: Final[float] = 20.0
AFTER_OFFSET_MINUTES: Final[float] = 120.0
AFTER_GAP_MINUTES: Final[float] = 45.0
HIGH_CONFIDENCE_SAMPLES: Final[int] = 10
MEDIUM_CONFIDENCE_SAMPLES: Final[int] = 4


def is_correction_only(treatment: TreatmentEvent) -> bool:
    insulin = treatment.insulin_units
    carbs = treatment.carbs_grams
    return insulin is not None and insulin > 0 and (carbs is None or carbs <= MAX_CORRECTION_CARBS_GRAMS)


def nearest_index(timestamps: np.ndarray, target_ms: float, max_gap_ms: float) -> Optional[int]:
    """Index of the reading closest to ``target_ms`` within ``max_gap_ms``.

    Ties resolve to the earliest reading.
    """

    if timestamps.size == 0:
        return None
    gaps = np.abs(timestamps - target_ms)
    best = int(np.argmin(gaps))
    if gaps[best] > max_gap_ms:
        return None
    return best


def confidence_for(sample_count: int) -> Confidence:
    if sample_count >= HIGH_CONFIDENCE_SAMPLES:
        return Confidence.HIGH
    if sample_count >= MEDIUM_CONFIDENCE_SAMPLES:
        return Confidence.MEDIUM
    return Confidence.LOW


def estimate_sensitivity(
    entries: Iterable[GlucoseReading],
    treatments: Iterable[TreatmentEvent],
    profile: TherapyProfile,
) -> SensitivityInsight:
    """Blend the observed drop per unit with the configured correction factor."""

    frame = readings_frame(entries)
    timestamps = frame["timestamp_ms"].to_numpy(dtype="int64")
    glucose = frame["sgv_mgdl"].to_numpy(dtype=float)

    factors: list[float] = []
    for treatment in treatments:
        if not is_correction_only(treatment):
            continue
        at = parse_timestamp_ms(treatment.created_at)
        if at is None:
            continue

        before = nearest_index(timestamps, at, BEFORE_GAP_MINUTES * MINUTE_MS)
        after = nearest_index(timestamps, at + AFTER_OFFSET_MINUTES * MINUTE_MS, AFTER_GAP_MINUTES * MINUTE_MS)
        if before is None or after is None:
            continue

        factor = (glucose[before] - glucose[after]) / 100 / treatment.insulin_units
        if math.isfinite(factor) and factor > 0:
            factors.append(float(factor))

    if not factors:
        return SensitivityInsight(
            sample_count=0,
            average_drop_per_unit_gl=None,
            suggested_correction_factor_gl=None,
            confidence=Confidence.LOW,
        )

    average = float(np.mean(factors))
    suggested = (
        profile.correction_factor_drop_gl_per_unit * CONFIGURED_FACTOR_WEIGHT
        + average * OBSERVED_FACTOR_WEIGHT
    )
    return SensitivityInsight(
        sample_count=len(factors),
        average_drop_per_unit_gl=round2(average),
        suggested_correction_factor_gl=round2(suggested),
        confidence=confidence_for(len(factors)),
    )
