"""
Nightscout API client for fetching glucose entries and treatments.
"""
import logging
import math
import os
from datetime import datetime
from typing import Any, Optional, Sequence

import httpx
from pydantic import ValidationError

from models.nightscout_models import RawNightscoutEntry, RawTreatmentEntry
from therapy_analytics.models import GlucoseReading, TreatmentEvent, TrendSummary
from therapy_analytics.utils import DAY_MS, epoch_ms, parse_timestamp_ms, resolve_now, to_iso

# get Nightscout environment variables
NIGHTSCOUT_BASE_URL = os.getenv("NIGHTSCOUT_BASE_URL")
NIGHTSCOUT_READ_TOKEN = os.getenv("NIGHTSCOUT_READ_TOKEN")
API_TIMEOUT_SECONDS = float(os.getenv("THERAPY_API_TIMEOUT_SECONDS", "10"))

ENTRIES_ENDPOINT = "/api/v1/entries.json"
TREATMENTS_ENDPOINT = "/api/v1/treatments.json"


class NightscoutRequestError(RuntimeError):
    """Raised when Nightscout answers with an error or does not answer in time."""


def _finite(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return value


def normalize_entry(raw: Any) -> Optional[GlucoseReading]:
    """Convert a raw entry to a reading, or ``None`` if it lacks a usable date or sgv."""
    try:
        entry = RawNightscoutEntry.model_validate(raw)
    except ValidationError:
        logging.debug(f"Rejected malformed Nightscout entry: {raw!r}")
        return None

    timestamp_ms: Optional[int] = None
    if entry.date is not None and math.isfinite(entry.date) and entry.date > 0:
        timestamp_ms = int(entry.date)
    elif entry.dateString is not None:
        timestamp_ms = parse_timestamp_ms(entry.dateString)

    sgv = _finite(entry.sgv)
    if not timestamp_ms or sgv is None:
        logging.debug(f"Rejected Nightscout entry without date/sgv: {raw!r}")
        return None

    return GlucoseReading(
        timestamp_ms=timestamp_ms,
        sgv_mgdl=sgv,
        trend_direction=entry.direction,
        device=entry.device,
    )


def normalize_treatment(raw: Any) -> Optional[TreatmentEvent]:
    """Convert a raw treatment, or ``None`` when ``created_at`` is missing or unparseable."""
    try:
        treatment = RawTreatmentEntry.model_validate(raw)
    except ValidationError:
        logging.debug(f"Rejected malformed Nightscout treatment: {raw!r}")
        return None

    if treatment.created_at is None or parse_timestamp_ms(treatment.created_at) is None:
        logging.debug(f"Rejected Nightscout treatment without valid created_at: {raw!r}")
        return None

    return TreatmentEvent(
        created_at=treatment.created_at,
        insulin_units=_finite(treatment.insulin),
        carbs_grams=_finite(treatment.carbs),
        event_type=treatment.eventType,
        notes=treatment.notes,
    )


def normalize_entries(payload: Any) -> list[GlucoseReading]:
    if not isinstance(payload, list):
        raise ValueError("Nightscout response payload is invalid.")
    return [entry for entry in (normalize_entry(item) for item in payload) if entry is not None]


def normalize_treatments(payload: Any) -> list[TreatmentEvent]:
    if not isinstance(payload, list):
        raise ValueError("Nightscout treatment payload is invalid.")
    return [item for item in (normalize_treatment(raw) for raw in payload) if item is not None]


def compute_trend_summary(entries: Sequence[GlucoseReading]) -> TrendSummary:
    """Latest value, delta to the previous reading, and trend arrow."""
    if not entries:
        return TrendSummary(current=None, delta=None, direction=None, updated_at=None)

    ordered = sorted(entries, key=lambda entry: entry.timestamp_ms, reverse=True)
    latest = ordered[0]
    previous = ordered[1] if len(ordered) > 1 else None
    return TrendSummary(
        current=latest.sgv_mgdl,
        delta=latest.sgv_mgdl - previous.sgv_mgdl if previous is not None else None,
        direction=latest.trend_direction,
        updated_at=to_iso(latest.timestamp_ms),
    )


class NightscoutClient:
    """
    Read-only client for a Nightscout site.

    Sends the read token as a bearer header and, when the site rejects it with
    401/403, retries once with the token as a ``token`` query parameter.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        read_token: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or NIGHTSCOUT_BASE_URL or "").rstrip("/")
        self.read_token = read_token or NIGHTSCOUT_READ_TOKEN
        if not self.base_url or not self.read_token:
            raise ValueError("Nightscout base URL/read token not set")
        self.timeout = timeout if timeout is not None else API_TIMEOUT_SECONDS

    async def _make_request(self, endpoint: str, params: Optional[dict] = None) -> Any:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        headers = {"Accept": "application/json", "Authorization": f"Bearer {self.read_token}"}

        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=self.timeout) as client:
                response = await client.get(url, params=params, headers=headers)
                logging.info(f"Request {url} completed with status: {response.status_code}")

                if response.status_code in (401, 403):
                    fallback_params = dict(params or {})
                    fallback_params["token"] = self.read_token
                    response = await client.get(url, params=fallback_params, headers={"Accept": "application/json"})
                    logging.info(f"Token fallback for {url} completed with status: {response.status_code}")

                if not response.is_success:
                    logging.error(f"Nightscout request failed: status={response.status_code}, url={url}")
                    raise NightscoutRequestError(f"Nightscout request failed ({response.status_code}).")
                return response.json() if response.text else []
        except httpx.TimeoutException as e:
            logging.error(f"Timeout calling Nightscout {url}: {e}")
            raise NightscoutRequestError("Nightscout request timed out.") from e
        except httpx.RequestError as e:
            logging.error(f"Request error calling Nightscout {url}: {e}")
            raise

    async def get_latest(self, count: int) -> list[GlucoseReading]:
        payload = await self._make_request(ENTRIES_ENDPOINT, params={"count": str(count)})
        return sorted(normalize_entries(payload), key=lambda entry: entry.timestamp_ms, reverse=True)

    async def get_entries_for_days(self, days: float, now: Optional[datetime] = None) -> list[GlucoseReading]:
        """Fetch enough 5-minute entries to cover ``days`` and drop older ones."""
        max_entries = max(1, math.ceil(days * 24 * 12))
        entries = await self.get_latest(max_entries)
        cutoff = epoch_ms(resolve_now(now)) - days * DAY_MS
        return [entry for entry in entries if entry.timestamp_ms >= cutoff]

    async def get_summary(self) -> TrendSummary:
        return compute_trend_summary(await self.get_latest(2))

    async def get_treatments_for_days(self, days: float, now: Optional[datetime] = None) -> list[TreatmentEvent]:
        max_treatments = max(50, math.ceil(days * 24 * 6))
        payload = await self._make_request(TREATMENTS_ENDPOINT, params={"count": str(max_treatments)})
        cutoff = epoch_ms(resolve_now(now)) - days * DAY_MS

        dated = [
            (parse_timestamp_ms(treatment.created_at), treatment)
            for treatment in normalize_treatments(payload)
        ]
        recent = [(at, treatment) for at, treatment in dated if at is not None and at >= cutoff]
        recent.sort(key=lambda pair: pair[0], reverse=True)
        return [treatment for _, treatment in recent]
