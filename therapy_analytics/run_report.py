"""Command-line entry point for dashboard reports and dose estimates.

Inputs are raw upstream payloads: Nightscout entries/treatments JSON arrays and
an integrations meals array, either read from files or fetched live::

    python -m therapy_analytics.run_report report \\
        --entries entries.json --treatments treatments.json --meals meals.json \\
        --profile profile.json --now 2026-02-15T12:00:00Z

    python -m therapy_analytics.run_report report --fetch --days 30

    python -m therapy_analytics.run_report dose --carbs 50 --glucose 1.6 --meal-time 06:45
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from api_clients.integrations_client import IntegrationsClient, normalize_meals
from api_clients.nightscout_client import NightscoutClient, normalize_entries, normalize_treatments
from models.profile_models import DEFAULT_PROFILE_SETTINGS, load_profile

from .dashboard import build_dashboard_report, dose_advice_to_dict, report_to_dict
from .dosing import DoseValidationError, calculate_dose
from .models import GlucoseReading, MealEvent, TherapyProfile, TreatmentEvent
from .utils import resolve_now


def _load_json(path: Optional[Path]) -> Any:
    if path is None:
        return []
    with path.open() as handle:
        return json.load(handle)


def _resolve_profile(path: Optional[Path]) -> TherapyProfile:
    if path is None:
        return DEFAULT_PROFILE_SETTINGS.to_profile()
    return load_profile(path)


def _parse_now(value: Optional[str]) -> datetime:
    if not value:
        return resolve_now(None)
    return resolve_now(datetime.fromisoformat(value.replace("Z", "+00:00")))


async def _fetch_inputs(
    days: float, now: datetime, with_meals: bool
) -> tuple[list[GlucoseReading], list[TreatmentEvent], list[MealEvent]]:
    nightscout = NightscoutClient()
    entries = await nightscout.get_entries_for_days(days, now=now)
    treatments = await nightscout.get_treatments_for_days(days, now=now)
    meals: list[MealEvent] = []
    if with_meals:
        meals = await IntegrationsClient().get_meals(days, now=now)
    return entries, treatments, meals


def run_report(args: argparse.Namespace) -> dict:
    now = _parse_now(args.now)
    profile = _resolve_profile(args.profile)
    if args.fetch:
        entries, treatments, meals = asyncio.run(_fetch_inputs(args.days, now, args.with_meals))
    else:
        entries = normalize_entries(_load_json(args.entries))
        treatments = normalize_treatments(_load_json(args.treatments))
        meals = normalize_meals(_load_json(args.meals))
    report = build_dashboard_report(entries, treatments, meals, profile, now)
    return report_to_dict(report)


def run_dose(args: argparse.Namespace) -> dict:
    profile = _resolve_profile(args.profile)
    advice = calculate_dose(
        args.carbs,
        args.glucose,
        args.meal_time,
        profile,
        iob_units=args.iob,
        cob_grams=args.cob,
    )
    return dose_advice_to_dict(advice)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Therapy analytics for CGM and treatment history")
    parser.add_argument("--output", type=Path, help="Optional output JSON file")
    parser.add_argument("--indent", type=int, default=2, help="Pretty-print JSON with the given indent")
    subparsers = parser.add_subparsers(dest="command", required=True)

    report = subparsers.add_parser("report", help="Compute the dashboard metrics")
    report.add_argument("--entries", type=Path, help="Nightscout entries JSON file")
    report.add_argument("--treatments", type=Path, help="Nightscout treatments JSON file")
    report.add_argument("--meals", type=Path, help="Integrations meals JSON file")
    report.add_argument("--profile", type=Path, help="Therapy profile JSON file (defaults apply otherwise)")
    report.add_argument("--now", help="Reference time (ISO-8601); defaults to the current time")
    report.add_argument("--fetch", action="store_true", help="Fetch inputs from the configured APIs")
    report.add_argument("--with-meals", action="store_true", help="Also fetch logged meals when using --fetch")
    report.add_argument("--days", type=float, default=30, help="Days of history to fetch (default: 30)")

    dose = subparsers.add_parser("dose", help="Estimate a meal bolus")
    dose.add_argument("--carbs", type=float, required=True, help="Carbohydrates in grams")
    dose.add_argument("--glucose", type=float, required=True, help="Current glucose in g/L")
    dose.add_argument("--meal-time", required=True, help="Meal time (HH:MM)")
    dose.add_argument("--profile", type=Path, help="Therapy profile JSON file (defaults apply otherwise)")
    dose.add_argument("--iob", type=float, default=0.0, help="Insulin on board in units")
    dose.add_argument("--cob", type=float, default=0.0, help="Carbs on board in grams")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.command == "dose":
        try:
            result = run_dose(args)
        except DoseValidationError as exc:
            print(f"Cannot compute a dose: {exc}", file=sys.stderr)
            return 2
    else:
        result = run_report(args)

    output_text = json.dumps(result, indent=args.indent)
    if args.output:
        args.output.write_text(output_text)
    else:
        print(output_text)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
