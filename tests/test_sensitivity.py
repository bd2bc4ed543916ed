from datetime import datetime, timedelta, timezone

import pytest

from therapy_analytics.models import Confidence, GlucoseReading, RatioWindow, TherapyProfile, TreatmentEvent
from therapy_analytics.sensitivity import confidence_for, estimate_sensitivity, is_correction_only
from therapy_analytics.utils import epoch_ms, to_iso

BASE = datetime(2026, 2, 1, 10, 0, tzinfo=timezone.utc)

PROFILE = TherapyProfile(
    ratio_windows=(RatioWindow("00:00", "23:59", 10),),
    correction_factor_drop_gl_per_unit=0.5,
    target_low_gl=0.8,
    target_high_gl=1.3,
    insulin_action_hours=4,
    carb_absorption_hours=3,
)


def _reading(at: datetime, sgv: float) -> GlucoseReading:
    return GlucoseReading(timestamp_ms=epoch_ms(at), sgv_mgdl=sgv)


def _correction(at: datetime, units: float, carbs=None) -> TreatmentEvent:
    return TreatmentEvent(created_at=to_iso(epoch_ms(at)), insulin_units=units, carbs_grams=carbs)


def _episode(at: datetime, before: float, after: float, before_offset_min: float = 0):
    return [
        _reading(at + timedelta(minutes=before_offset_min), before),
        _reading(at + timedelta(minutes=120), after),
    ]


def test_single_correction_blends_with_configured_factor():
    insight = estimate_sensitivity(_episode(BASE, 250, 200), [_correction(BASE, 2)], PROFILE)
    assert insight.sample_count == 1
    assert insight.average_drop_per_unit_gl == pytest.approx(0.25)
    assert insight.suggested_correction_factor_gl == pytest.approx(0.4)
    assert insight.confidence is Confidence.LOW


def test_carb_threshold_for_correction_only():
    assert is_correction_only(TreatmentEvent(created_at="x", insulin_units=1, carbs_grams=5))
    assert not is_correction_only(TreatmentEvent(created_at="x", insulin_units=1, carbs_grams=6))
    assert not is_correction_only(TreatmentEvent(created_at="x", insulin_units=0))
    assert not is_correction_only(TreatmentEvent(created_at="x", carbs_grams=20))

    entries = _episode(BASE, 250, 200)
    assert estimate_sensitivity(entries, [_correction(BASE, 2, carbs=6)], PROFILE).sample_count == 0
    assert estimate_sensitivity(entries, [_correction(BASE, 2, carbs=5)], PROFILE).sample_count == 1


def test_missing_follow_up_reading_yields_empty_insight():
    entries = [_reading(BASE, 250), _reading(BASE + timedelta(minutes=200), 180)]
    insight = estimate_sensitivity(entries, [_correction(BASE, 2)], PROFILE)
    assert insight.sample_count == 0
    assert insight.average_drop_per_unit_gl is None
    assert insight.suggested_correction_factor_gl is None
    assert insight.confidence is Confidence.LOW


def test_rise_after_correction_is_discarded():
    insight = estimate_sensitivity(_episode(BASE, 180, 220), [_correction(BASE, 1)], PROFILE)
    assert insight.sample_count == 0


def test_pre_reading_must_be_within_twenty_minutes():
    late = _episode(BASE, 250, 200, before_offset_min=-25)
    assert estimate_sensitivity(late, [_correction(BASE, 2)], PROFILE).sample_count == 0
    near = _episode(BASE, 250, 200, before_offset_min=-15)
    assert estimate_sensitivity(near, [_correction(BASE, 2)], PROFILE).sample_count == 1


@pytest.mark.parametrize("created_at", ["yesterday", "now", "today", "not a date"])
def test_unparseable_treatment_time_is_skipped(created_at):
    treatment = TreatmentEvent(created_at=created_at, insulin_units=2)
    assert estimate_sensitivity(_episode(BASE, 250, 200), [treatment], PROFILE).sample_count == 0


def test_confidence_grows_with_samples():
    entries = []
    treatments = []
    for day in range(10):
        at = BASE + timedelta(days=day)
        entries.extend(_episode(at, 250, 150))
        treatments.append(_correction(at, 2))

    assert estimate_sensitivity(entries, treatments[:4], PROFILE).confidence is Confidence.MEDIUM
    insight = estimate_sensitivity(entries, treatments, PROFILE)
    assert insight.sample_count == 10
    assert insight.confidence is Confidence.HIGH
    assert insight.average_drop_per_unit_gl == pytest.approx(0.5)
    assert insight.suggested_correction_factor_gl == pytest.approx(0.5)


def test_confidence_thresholds():
    assert confidence_for(3) is Confidence.LOW
    assert confidence_for(4) is Confidence.MEDIUM
    assert confidence_for(9) is Confidence.MEDIUM
    assert confidence_for(10) is Confidence.HIGH
