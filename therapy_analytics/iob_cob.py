"""Insulin-on-board and carbs-on-board estimates.

Both totals use straight-line decay over the profile's action/absorption
duration. This is an approximation for dashboard display, not a
pharmacokinetic model.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .models import IobCobSnapshot, TherapyProfile, TreatmentEvent
from .utils import HOUR_MS, epoch_ms, parse_timestamp_ms, resolve_now, round2


def remaining_fraction(elapsed_ms: float, duration_hours: float) -> float:
    """Fraction of a dose still active after ``elapsed_ms``."""

    duration_ms = duration_hours * HOUR_MS
    if duration_ms <= 0:
        return 0.0
    return max(0.0, 1.0 - elapsed_ms / duration_ms)


def compute_iob_cob(
    treatments: Iterable[TreatmentEvent],
    profile: TherapyProfile,
    now: Optional[datetime] = None,
) -> IobCobSnapshot:
    """Sum the still-active share of every past insulin and carb entry.

    Treatments dated after ``now`` or with an unparseable timestamp are
    ignored. A treatment carrying both insulin and carbs counts toward both.
    """

    now_ms = epoch_ms(resolve_now(now))
    iob = 0.0
    cob = 0.0

    for treatment in treatments:
        at = parse_timestamp_ms(treatment.created_at)
        if at is None or at > now_ms:
            continue
        elapsed = now_ms - at

        if treatment.insulin_units is not None and treatment.insulin_units > 0:
            iob += treatment.insulin_units * remaining_fraction(elapsed, profile.insulin_action_hours)
        if treatment.carbs_grams is not None and treatment.carbs_grams > 0:
            cob += treatment.carbs_grams * remaining_fraction(elapsed, profile.carb_absorption_hours)

    return IobCobSnapshot(iob_units=round2(iob), cob_grams=round2(cob))
