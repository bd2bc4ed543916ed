"""Resolve which time-of-day window applies to an instant.

Windows are ``HH:MM`` pairs on a 24-hour clock. A window whose start is later
than its end wraps past midnight. Malformed clock strings read as 00:00
instead of raising, so a partially broken profile still yields numbers; the
:class:`ParsedClock` result records when that fallback happened.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone, tzinfo
from typing import Optional, Protocol, Sequence, TypeVar

import numpy as np
import pandas as pd
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import ParsedClock, TherapyProfile
from .utils import resolve_now

_CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class ClockWindow(Protocol):
    start_hhmm: str
    end_hhmm: str


W = TypeVar("W", bound=ClockWindow)


def parse_clock(value: str) -> ParsedClock:
    match = _CLOCK_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        return ParsedClock(minutes=0, defaulted=True)
    return ParsedClock(minutes=int(match.group(1)) * 60 + int(match.group(2)))


def clock_minutes(value: str) -> int:
    return parse_clock(value).minutes


def zone_for(name: Optional[str]) -> tzinfo:
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def minutes_of_day(instant: datetime, tz_name: Optional[str] = None) -> int:
    local = resolve_now(instant).astimezone(zone_for(tz_name))
    return local.hour * 60 + local.minute


def local_minutes(timestamps_ms: Sequence[int] | np.ndarray, tz_name: Optional[str] = None) -> np.ndarray:
    """Vectorised :func:`minutes_of_day` over epoch-millisecond timestamps."""

    stamps = pd.to_datetime(pd.Series(np.asarray(timestamps_ms, dtype="int64")), unit="ms", utc=True)
    if tz_name:
        stamps = stamps.dt.tz_convert(zone_for(tz_name))
    return (stamps.dt.hour * 60 + stamps.dt.minute).to_numpy(dtype="int64")


def window_contains(target, start: int, end: int):
    """Return whether ``target`` minutes fall inside ``[start, end]``.

    Accepts a scalar or a numpy array of minutes.
    """

    if start <= end:
        return (target >= start) & (target <= end)
    return (target >= start) | (target <= end)


def sorted_windows(windows: Sequence[W]) -> list[W]:
    """Order windows by start minute; ties keep their configured order."""

    return sorted(windows, key=lambda window: clock_minutes(window.start_hhmm))


def _first_match(windows: Sequence[W], target: int) -> W:
    ordered = sorted_windows(windows)
    if not ordered:
        raise ValueError("At least one window is required")
    for window in ordered:
        if window_contains(target, clock_minutes(window.start_hhmm), clock_minutes(window.end_hhmm)):
            return window
    return ordered[0]


def resolve_window(windows: Sequence[W], instant: datetime, tz_name: Optional[str] = None) -> W:
    """Return the window active at ``instant`` in the given local timezone.

    Falls back to the earliest-starting window when nothing matches.
    """

    return _first_match(windows, minutes_of_day(instant, tz_name))


def resolve_window_for_clock(windows: Sequence[W], value_hhmm: str) -> W:
    return _first_match(windows, clock_minutes(value_hhmm))


def target_range_at(profile: TherapyProfile, instant: datetime) -> tuple[float, float]:
    """Return ``(low_gl, high_gl)`` for ``instant``, or the flat targets."""

    if not profile.target_windows:
        return profile.target_low_gl, profile.target_high_gl
    window = resolve_window(profile.target_windows, instant, profile.local_timezone)
    return window.low_gl, window.high_gl


def target_range_for_clock(profile: TherapyProfile, value_hhmm: str) -> tuple[float, float]:
    if not profile.target_windows:
        return profile.target_low_gl, profile.target_high_gl
    window = resolve_window_for_clock(profile.target_windows, value_hhmm)
    return window.low_gl, window.high_gl


def target_ranges_for(profile: TherapyProfile, timestamps_ms: Sequence[int] | np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Vectorised :func:`target_range_at` for many readings."""

    count = len(timestamps_ms)
    ordered = sorted_windows(profile.target_windows)
    if not ordered:
        return (
            np.full(count, float(profile.target_low_gl)),
            np.full(count, float(profile.target_high_gl)),
        )

    minutes = local_minutes(timestamps_ms, profile.local_timezone)
    low = np.full(count, float(ordered[0].low_gl))
    high = np.full(count, float(ordered[0].high_gl))
    resolved = np.zeros(count, dtype=bool)
    for window in ordered:
        mask = window_contains(minutes, clock_minutes(window.start_hhmm), clock_minutes(window.end_hhmm)) & ~resolved
        low[mask] = window.low_gl
        high[mask] = window.high_gl
        resolved |= mask
    return low, high
