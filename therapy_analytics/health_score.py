"""Composite glucose health score over the trailing two weeks.

Weights and penalty slopes are fixed policy values; changing any of them
changes what a score means, so scores computed with different constants are
not comparable.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Final, Iterable, Optional

import numpy as np

from .models import GlucoseReading, HealthScoreCard, TherapyProfile
from .time_windows import target_ranges_for
from .utils import DAY_MS, clamp, epoch_ms, readings_frame, resolve_now, round2, scope_frame

LOOKBACK_MS: Final[int] = 14 * DAY_MS
MINIMUM_READINGS: Final[int] = 12

TIR_WEIGHT: Final[float] = 0.4
VARIABILITY_WEIGHT: Final[float] = 0.2
HYPO_WEIGHT: Final[float] = 0.25
STABILITY_WEIGHT: Final[float] = 0.15

CV_TOLERANCE_PCT: Final[float] = 20.0
CV_PENALTY_PER_PCT: Final[float] = 3.0
LOW_PENALTY_PER_PCT: Final[float] = 4.0
DELTA_PENALTY_PER_MGDL: Final[float] = 2.0


def compute_health_score(
    entries: Iterable[GlucoseReading],
    profile: TherapyProfile,
    now: Optional[datetime] = None,
) -> Optional[HealthScoreCard]:
    """Return the score card, or ``None`` with fewer than 12 recent readings."""

    now_ms = epoch_ms(resolve_now(now))
    scoped = scope_frame(readings_frame(entries), now_ms - LOOKBACK_MS, now_ms)
    if len(scoped) < MINIMUM_READINGS:
        return None

    sgv = scoped["sgv_mgdl"].to_numpy(dtype=float)
    values_gl = sgv / 100.0
    low_gl, high_gl = target_ranges_for(profile, scoped["timestamp_ms"].to_numpy())

    count = len(values_gl)
    low_mask = values_gl < low_gl
    in_range_mask = ~low_mask & (values_gl <= high_gl)

    mean = float(values_gl.mean())
    std = float(math.sqrt(float(np.mean((values_gl - mean) ** 2))))
    cv_pct = std / mean * 100 if mean > 0 else 0.0
    in_range_pct = float(in_range_mask.sum()) / count * 100
    low_pct = float(low_mask.sum()) / count * 100
    deltas = np.abs(np.diff(sgv))
    mean_abs_delta = float(deltas.mean()) if deltas.size else 0.0

    tir_score = clamp(in_range_pct, 0, 100)
    variability_score = clamp(100 - max(0.0, cv_pct - CV_TOLERANCE_PCT) * CV_PENALTY_PER_PCT, 0, 100)
    hypo_score = clamp(100 - low_pct * LOW_PENALTY_PER_PCT, 0, 100)
    stability_score = clamp(100 - mean_abs_delta * DELTA_PENALTY_PER_MGDL, 0, 100)
    overall = (
        tir_score * TIR_WEIGHT
        + variability_score * VARIABILITY_WEIGHT
        + hypo_score * HYPO_WEIGHT
        + stability_score * STABILITY_WEIGHT
    )

    return HealthScoreCard(
        overall=round2(overall),
        tir_score=round2(tir_score),
        variability_score=round2(variability_score),
        hypo_score=round2(hypo_score),
        stability_score=round2(stability_score),
        in_range_pct=round2(in_range_pct),
        low_pct=round2(low_pct),
        cv_pct=round2(cv_pct),
    )
