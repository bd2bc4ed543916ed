"""Shared helpers for the analytics modules."""
from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Final, Iterable, Optional

import pandas as pd

from .models import GlucoseReading

MINUTE_MS: Final[int] = 60 * 1000
HOUR_MS: Final[int] = 60 * MINUTE_MS
DAY_MS: Final[int] = 24 * HOUR_MS

_READING_COLUMNS = ["timestamp_ms", "sgv_mgdl"]


def round2(value: float) -> float:
    """Round to 2 decimals, exact halves away from zero."""

    if not math.isfinite(value):
        return float(value)
    return float(Decimal(float(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def resolve_now(now: Optional[datetime]) -> datetime:
    """Return ``now`` as an aware datetime, sampling the wall clock when absent.

    Naive datetimes are taken to be UTC.
    """

    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def epoch_ms(moment: datetime) -> int:
    return int(round(resolve_now(moment).timestamp() * 1000))


def from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def to_iso(value_ms: int) -> str:
    """Format epoch milliseconds as ``YYYY-MM-DDTHH:MM:SS.sssZ``."""

    moment = from_epoch_ms(value_ms)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp_ms(value: object) -> Optional[int]:
    """Parse an ISO-8601 string to epoch milliseconds, or ``None`` if malformed.

    Strings without an offset are read as UTC. Keywords such as ``"now"`` are
    rejected.
    """

    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = pd.to_datetime(value.strip(), utc=True, format="ISO8601", errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return int(parsed.value // 1_000_000)


def is_finite_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def readings_frame(entries: Iterable[GlucoseReading]) -> pd.DataFrame:
    """Return readings as a chronologically sorted dataframe.

    Sorting is stable so readings sharing a timestamp keep their input order.
    """

    rows = [(int(entry.timestamp_ms), float(entry.sgv_mgdl)) for entry in entries]
    if not rows:
        return pd.DataFrame(
            {
                "timestamp_ms": pd.Series(dtype="int64"),
                "sgv_mgdl": pd.Series(dtype="float64"),
            }
        )
    frame = pd.DataFrame(rows, columns=_READING_COLUMNS)
    return frame.sort_values("timestamp_ms", kind="stable").reset_index(drop=True)


def scope_frame(frame: pd.DataFrame, start_ms: int, end_ms: int) -> pd.DataFrame:
    """Slice readings to the inclusive ``[start_ms, end_ms]`` interval."""

    if frame.empty:
        return frame
    mask = (frame["timestamp_ms"] >= start_ms) & (frame["timestamp_ms"] <= end_ms)
    return frame.loc[mask].reset_index(drop=True)
