from datetime import datetime, timedelta, timezone

from therapy_analytics.meal_inference import detect_inferred_meals
from therapy_analytics.models import GlucoseReading, MealEvent, MealSource
from therapy_analytics.utils import epoch_ms, to_iso

START = datetime(2026, 2, 15, 8, 0, tzinfo=timezone.utc)


def _series(values, step_minutes=5, start=START):
    return [
        GlucoseReading(timestamp_ms=epoch_ms(start + timedelta(minutes=idx * step_minutes)), sgv_mgdl=value)
        for idx, value in enumerate(values)
    ]


def _meal(at: datetime) -> MealEvent:
    return MealEvent(id="m1", name="Lunch", carbs_grams=40, eaten_at=to_iso(epoch_ms(at)))


def test_detects_single_rise():
    meals = detect_inferred_meals(_series([100, 100, 100, 100, 135]), [])
    assert len(meals) == 1
    meal = meals[0]
    expected_ts = epoch_ms(START + timedelta(minutes=20))
    assert meal.id == f"inferred-{expected_ts}"
    assert meal.eaten_at == "2026-02-15T08:20:00.000Z"
    assert meal.rise_mgdl == 35


def test_inferred_meal_converts_to_meal_event():
    meal = detect_inferred_meals(_series([100, 100, 100, 100, 135]), [])[0].as_meal_event()
    assert meal.source is MealSource.INFERRED
    assert meal.carbs_grams == 0
    assert meal.name == "Inferred meal"


def test_needs_five_readings():
    assert detect_inferred_meals(_series([100, 100, 100, 150]), []) == []


def test_small_rise_is_ignored():
    assert detect_inferred_meals(_series([100, 105, 110, 115, 129]), []) == []


def test_logged_meal_within_an_hour_suppresses_detection():
    entries = _series([100, 100, 100, 100, 135])
    detected_at = START + timedelta(minutes=20)
    assert detect_inferred_meals(entries, [_meal(detected_at - timedelta(minutes=60))]) == []
    assert len(detect_inferred_meals(entries, [_meal(detected_at - timedelta(minutes=61))])) == 1


def test_unparseable_logged_meal_is_ignored():
    entries = _series([100, 100, 100, 100, 135])
    meal = MealEvent(id="m1", name="Lunch", carbs_grams=40, eaten_at="not a date")
    assert len(detect_inferred_meals(entries, [meal])) == 1


def test_rises_within_ninety_minutes_are_merged():
    values = []
    for minute in range(0, 245, 5):
        if minute <= 60:
            values.append(100 + minute * 2)
        elif minute <= 180:
            values.append(220)
        else:
            values.append(220 + (minute - 180) * 2)

    meals = detect_inferred_meals(_series(values), [])
    assert [meal.eaten_at for meal in meals] == [
        "2026-02-15T08:20:00.000Z",
        "2026-02-15T11:20:00.000Z",
    ]


def test_sparse_readings_fall_outside_rise_window():
    assert detect_inferred_meals(_series([100, 110, 120, 130, 200], step_minutes=10), []) == []


def test_unsorted_input_is_ordered_first():
    entries = list(reversed(_series([100, 100, 100, 100, 135])))
    meals = detect_inferred_meals(entries, [])
    assert len(meals) == 1
    assert meals[0].rise_mgdl == 35
