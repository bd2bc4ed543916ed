"""Meal bolus estimate from carb ratio, correction factor and IOB/COB.

The result is advisory. Callers must show "cannot compute a dose" when
:class:`DoseValidationError` is raised rather than substitute a value.
"""
from __future__ import annotations

import logging
import math

from .models import DoseAdvice, GlucoseStatus, TherapyProfile
from .time_windows import parse_clock, resolve_window_for_clock, target_range_for_clock
from .utils import is_finite_number, round2

LOW_GLUCOSE_NOTE = "Current glucose is below target. Treat low glucose first before taking a correction dose."
IOB_COB_NOTE = "Insulin-on-board and carbs-on-board were subtracted from the estimate."
DISCLAIMER_NOTE = "Estimate does not include activity, illness, or delayed digestion."
CLINICIAN_NOTE = "Confirm any dose decision with your clinician's treatment plan."
DEFAULTED_MEAL_TIME_NOTE = "Meal time was not a valid HH:MM value; 00:00 windows were used."


class DoseValidationError(ValueError):
    """Raised when a dose cannot be computed from the given inputs."""


def round_to_half_unit(value: float) -> float:
    """Round to the nearest 0.5 U, ties away from zero."""

    return math.copysign(math.floor(abs(value) * 2 + 0.5), value) / 2


def glucose_from_mgdl_to_gl(value_mgdl: float) -> float:
    return round2(value_mgdl / 100)


def _validate_inputs(carbs_grams: float, current_glucose_gl: float, iob_units: float, cob_grams: float) -> None:
    if not is_finite_number(carbs_grams) or carbs_grams < 0:
        raise DoseValidationError("Carbs must be a positive number.")
    if not is_finite_number(current_glucose_gl) or current_glucose_gl <= 0:
        raise DoseValidationError("Current glucose must be a positive number.")
    if not is_finite_number(iob_units) or iob_units < 0:
        raise DoseValidationError("Insulin on board cannot be negative.")
    if not is_finite_number(cob_grams) or cob_grams < 0:
        raise DoseValidationError("Carbs on board cannot be negative.")


def calculate_dose(
    carbs_grams: float,
    current_glucose_gl: float,
    meal_time_hhmm: str,
    profile: TherapyProfile,
    iob_units: float = 0.0,
    cob_grams: float = 0.0,
) -> DoseAdvice:
    """Estimate a meal bolus.

    Low glucose forces the correction to zero and takes precedence over any
    high-range correction. IOB offsets the correction and COB (converted to
    units through the active ratio) offsets the carb bolus; neither adjusted
    part goes below zero.
    """

    _validate_inputs(carbs_grams, current_glucose_gl, iob_units, cob_grams)

    target_low_gl, target_high_gl = target_range_for_clock(profile, meal_time_hhmm)
    if not is_finite_number(target_low_gl) or target_low_gl <= 0:
        raise DoseValidationError("Target low must be positive.")
    if not is_finite_number(target_high_gl) or target_high_gl <= target_low_gl:
        raise DoseValidationError("Target high must be greater than target low.")

    correction_factor = profile.correction_factor_drop_gl_per_unit
    if not is_finite_number(correction_factor) or correction_factor <= 0:
        raise DoseValidationError("Correction factor must be positive.")

    if not profile.ratio_windows:
        raise DoseValidationError("At least one insulin ratio window is required.")
    ratio = resolve_window_for_clock(profile.ratio_windows, meal_time_hhmm).grams_per_unit
    if not is_finite_number(ratio) or ratio <= 0:
        raise DoseValidationError("Ratio grams per unit must be positive.")

    notes: list[str] = []
    if parse_clock(meal_time_hhmm).defaulted:
        logging.warning(f"Meal time {meal_time_hhmm!r} is not HH:MM; resolving windows at 00:00")
        notes.append(DEFAULTED_MEAL_TIME_NOTE)

    carb_bolus = carbs_grams / ratio

    status = GlucoseStatus.IN_RANGE
    correction = 0.0
    if current_glucose_gl < target_low_gl:
        status = GlucoseStatus.LOW
        notes.append(LOW_GLUCOSE_NOTE)
    elif current_glucose_gl > target_high_gl:
        status = GlucoseStatus.HIGH
        correction = (current_glucose_gl - target_high_gl) / correction_factor

    cob_as_units = cob_grams / ratio
    adjusted_correction = max(0.0, correction - iob_units)
    adjusted_carb_bolus = max(0.0, carb_bolus - cob_as_units)

    total = carb_bolus + correction
    adjusted_total = adjusted_carb_bolus + adjusted_correction

    if iob_units > 0 or cob_grams > 0:
        notes.append(IOB_COB_NOTE)
    notes.append(DISCLAIMER_NOTE)
    notes.append(CLINICIAN_NOTE)

    return DoseAdvice(
        ratio_grams_per_unit=ratio,
        carb_bolus_units=round2(carb_bolus),
        correction_units=round2(correction),
        total_units=round2(total),
        iob_units=round2(iob_units),
        cob_grams=round2(cob_grams),
        cob_as_units=round2(cob_as_units),
        adjusted_carb_bolus_units=round2(adjusted_carb_bolus),
        adjusted_correction_units=round2(adjusted_correction),
        adjusted_total_units=round2(adjusted_total),
        rounded_half_unit_dose=round2(round_to_half_unit(adjusted_total)),
        target_low_gl=target_low_gl,
        target_high_gl=target_high_gl,
        correction_factor_drop_gl_per_unit=correction_factor,
        glucose_status=status,
        notes=tuple(notes),
    )
