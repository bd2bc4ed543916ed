"""Time-in-range buckets over trailing day, week and month periods."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Final, Iterable, Optional

import numpy as np
import pandas as pd

from .models import GlucoseReading, TherapyProfile, TimeInRangeBucket, TimeInRangeStats
from .time_windows import target_ranges_for
from .utils import DAY_MS, epoch_ms, from_epoch_ms, readings_frame, resolve_now, round2, scope_frame

PERIODS_MS: Final[dict[str, int]] = {
    "day": DAY_MS,
    "week": 7 * DAY_MS,
    "month": 30 * DAY_MS,
}

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _empty_bucket(label: str, now: datetime) -> TimeInRangeBucket:
    return TimeInRangeBucket(
        label=label,
        from_time=_EPOCH,
        to_time=now,
        count=0,
        in_range_pct=0.0,
        low_pct=0.0,
        high_pct=0.0,
        avg_gl=None,
    )


def compute_bucket(
    frame: pd.DataFrame,
    profile: TherapyProfile,
    label: str,
    period_ms: int,
    now: datetime,
) -> TimeInRangeBucket:
    """Classify readings in ``[now - period_ms, now]`` against their own targets."""

    now_ms = epoch_ms(now)
    start_ms = now_ms - period_ms
    scoped = scope_frame(frame, start_ms, now_ms)
    if scoped.empty:
        return _empty_bucket(label, now)

    values_gl = scoped["sgv_mgdl"].to_numpy(dtype=float) / 100.0
    low_gl, high_gl = target_ranges_for(profile, scoped["timestamp_ms"].to_numpy())

    low_mask = values_gl < low_gl
    high_mask = values_gl > high_gl
    in_range_mask = ~(low_mask | high_mask)
    count = len(values_gl)

    return TimeInRangeBucket(
        label=label,
        from_time=from_epoch_ms(start_ms),
        to_time=now,
        count=count,
        in_range_pct=round2(float(in_range_mask.sum()) / count * 100),
        low_pct=round2(float(low_mask.sum()) / count * 100),
        high_pct=round2(float(high_mask.sum()) / count * 100),
        avg_gl=round2(float(np.sum(values_gl)) / count),
    )


def compute_time_in_range(
    entries: Iterable[GlucoseReading],
    profile: TherapyProfile,
    now: Optional[datetime] = None,
) -> TimeInRangeStats:
    """Return day/week/month buckets trailing from a single ``now``."""

    current = resolve_now(now)
    frame = readings_frame(entries)
    buckets = {
        label: compute_bucket(frame, profile, label, period_ms, current)
        for label, period_ms in PERIODS_MS.items()
    }
    return TimeInRangeStats(**buckets)
