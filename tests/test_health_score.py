from datetime import datetime, timedelta, timezone

import pytest

from therapy_analytics.health_score import compute_health_score
from therapy_analytics.models import GlucoseReading, RatioWindow, TherapyProfile
from therapy_analytics.utils import epoch_ms

NOW = datetime(2026, 2, 15, 12, 0, tzinfo=timezone.utc)

PROFILE = TherapyProfile(
    ratio_windows=(RatioWindow("00:00", "23:59", 10),),
    correction_factor_drop_gl_per_unit=0.5,
    target_low_gl=0.8,
    target_high_gl=1.3,
    insulin_action_hours=4,
    carb_absorption_hours=3,
)


def _series(values, end=NOW, step_minutes=5):
    count = len(values)
    return [
        GlucoseReading(
            timestamp_ms=epoch_ms(end - timedelta(minutes=(count - 1 - idx) * step_minutes)),
            sgv_mgdl=value,
        )
        for idx, value in enumerate(values)
    ]


def test_requires_twelve_readings():
    assert compute_health_score(_series([120] * 11), PROFILE, NOW) is None


def test_flat_in_range_series_scores_full_marks():
    card = compute_health_score(_series([120] * 12), PROFILE, NOW)
    assert card is not None
    assert card.overall == 100
    assert card.tir_score == 100
    assert card.variability_score == 100
    assert card.hypo_score == 100
    assert card.stability_score == 100
    assert card.in_range_pct == 100
    assert card.low_pct == 0
    assert card.cv_pct == 0


def test_volatile_series_is_penalised():
    card = compute_health_score(_series([60, 180] * 6), PROFILE, NOW)
    assert card.cv_pct == pytest.approx(50)
    assert card.variability_score == pytest.approx(10)
    assert card.low_pct == pytest.approx(50)
    assert card.hypo_score == 0
    assert card.tir_score == 0
    assert card.stability_score == 0
    assert card.overall == pytest.approx(2.0)


def test_readings_older_than_two_weeks_are_ignored():
    old = _series([120] * 12, end=NOW - timedelta(days=15))
    assert compute_health_score(old, PROFILE, NOW) is None

    recent = _series([120] * 12)
    assert compute_health_score(old + recent, PROFILE, NOW).overall == 100


def test_scores_stay_within_bounds():
    card = compute_health_score(_series([40, 300, 45, 290] * 4), PROFILE, NOW)
    for score in (card.overall, card.tir_score, card.variability_score, card.hypo_score, card.stability_score):
        assert 0 <= score <= 100
