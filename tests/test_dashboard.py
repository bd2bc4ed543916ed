import json
from datetime import datetime, timedelta, timezone

import pytest

from therapy_analytics.dashboard import build_dashboard_report, dose_advice_to_dict, report_to_dict
from therapy_analytics.dosing import calculate_dose
from therapy_analytics.models import GlucoseReading, RatioWindow, TherapyProfile, TreatmentEvent
from therapy_analytics.run_report import main
from therapy_analytics.utils import epoch_ms, to_iso

NOW = datetime(2026, 2, 15, 12, 0, tzinfo=timezone.utc)

PROFILE = TherapyProfile(
    ratio_windows=(RatioWindow("00:00", "23:59", 10),),
    correction_factor_drop_gl_per_unit=0.5,
    target_low_gl=0.8,
    target_high_gl=1.3,
    insulin_action_hours=4,
    carb_absorption_hours=3,
)


def _readings(values, step_minutes=5):
    count = len(values)
    return [
        GlucoseReading(timestamp_ms=epoch_ms(NOW - timedelta(minutes=(count - 1 - idx) * step_minutes)), sgv_mgdl=value)
        for idx, value in enumerate(values)
    ]


def test_report_uses_one_reference_time():
    entries = _readings([110] * 20 + [100, 100, 100, 100, 140])
    treatments = [TreatmentEvent(created_at=to_iso(epoch_ms(NOW - timedelta(hours=2))), insulin_units=2)]

    report = build_dashboard_report(entries, treatments, [], PROFILE, NOW)

    assert report.generated_at == NOW
    assert report.iob_cob.iob_units == 1.0
    assert report.time_in_range.day.to_time == NOW
    assert report.time_in_range.day.count == 25
    assert len(report.inferred_meals) == 1
    assert report.health_score is not None
    assert report.sensitivity.sample_count == 0


def test_report_dict_is_json_serialisable():
    report = build_dashboard_report(_readings([120] * 12), [], [], PROFILE, NOW)
    payload = report_to_dict(report)

    encoded = json.loads(json.dumps(payload))
    assert encoded["generated_at"] == NOW.isoformat()
    assert encoded["time_in_range"]["week"]["label"] == "week"
    assert encoded["sensitivity"]["confidence"] == "low"
    assert encoded["health_score"]["overall"] == 100


def test_dose_advice_dict_uses_plain_values():
    payload = dose_advice_to_dict(calculate_dose(20, 1.0, "12:00", PROFILE))
    assert payload["glucose_status"] == "in-range"
    assert isinstance(payload["notes"], list)
    assert payload["rounded_half_unit_dose"] == 2.0


def test_cli_report_from_files(tmp_path):
    entries = [{"date": reading.timestamp_ms, "sgv": reading.sgv_mgdl} for reading in _readings([120] * 12)]
    entries.append({"sgv": 90})
    entries_path = tmp_path / "entries.json"
    entries_path.write_text(json.dumps(entries))
    output_path = tmp_path / "report.json"

    exit_code = main(
        [
            "--output",
            str(output_path),
            "report",
            "--entries",
            str(entries_path),
            "--now",
            "2026-02-15T12:00:00Z",
        ]
    )

    assert exit_code == 0
    payload = json.loads(output_path.read_text())
    assert payload["time_in_range"]["day"]["count"] == 12
    assert payload["iob_cob"] == {"iob_units": 0.0, "cob_grams": 0.0}
    assert payload["inferred_meals"] == []


def test_cli_dose_uses_default_profile(capsys):
    exit_code = main(["dose", "--carbs", "50", "--glucose", "1.6", "--meal-time", "06:45"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["ratio_grams_per_unit"] == 5
    assert payload["correction_units"] == pytest.approx(0.6)
    assert payload["rounded_half_unit_dose"] == 10.5


def test_cli_dose_rejects_invalid_input(capsys):
    exit_code = main(["dose", "--carbs=-1", "--glucose", "1.2", "--meal-time", "12:00"])

    assert exit_code == 2
    assert "Cannot compute a dose" in capsys.readouterr().err


def test_meal_inference_only_covers_last_day():
    old_rise = [
        GlucoseReading(timestamp_ms=epoch_ms(NOW - timedelta(days=5, minutes=20 - idx * 5)), sgv_mgdl=value)
        for idx, value in enumerate([100, 100, 100, 100, 140])
    ]
    recent = _readings([110] * 12)

    report = build_dashboard_report(old_rise + recent, [], [], PROFILE, NOW)

    assert report.inferred_meals == ()
    assert report.time_in_range.week.count == 17
