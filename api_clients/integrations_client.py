"""
Integrations API client for logged meals and the Health Connect summary.
"""
import logging
import math
import os
from datetime import datetime, timedelta
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from models.integrations_models import RawMealResponse, RawSummaryResponse
from therapy_analytics.models import HealthSummary, MealEvent, MealSource
from therapy_analytics.utils import parse_timestamp_ms, resolve_now, round2, to_iso

INTEGRATIONS_API_BASE_URL = os.getenv("INTEGRATIONS_API_BASE_URL")
INTEGRATIONS_API_READ_TOKEN = os.getenv("INTEGRATIONS_API_READ_TOKEN")
API_TIMEOUT_SECONDS = float(os.getenv("THERAPY_API_TIMEOUT_SECONDS", "10"))

MEALS_ENDPOINT = "/v1/meals"
SUMMARY_ENDPOINT = "/v1/summary"
MEALS_LIMIT = 1000


class IntegrationsRequestError(RuntimeError):
    """Raised when the integrations API answers with an error or times out."""


def normalize_meal(raw: Any) -> Optional[MealEvent]:
    """Convert a raw meal, or ``None`` when a required field is missing or invalid."""
    try:
        meal = RawMealResponse.model_validate(raw)
    except ValidationError:
        logging.debug(f"Rejected malformed meal: {raw!r}")
        return None

    eaten_at = parse_timestamp_ms(meal.eatenAt)
    if (
        meal.id is None
        or meal.name is None
        or meal.carbsGrams is None
        or not math.isfinite(meal.carbsGrams)
        or eaten_at is None
    ):
        logging.debug(f"Rejected incomplete meal: {raw!r}")
        return None

    calories = meal.calories if meal.calories is not None and math.isfinite(meal.calories) else None
    return MealEvent(
        id=meal.id,
        name=meal.name,
        carbs_grams=round2(meal.carbsGrams),
        eaten_at=to_iso(eaten_at),
        source=MealSource.LOGGED,
        calories=round2(calories) if calories is not None else None,
    )


def normalize_meals(payload: Any) -> list[MealEvent]:
    if not isinstance(payload, list):
        raise ValueError("Meals payload must be a JSON array.")
    return [meal for meal in (normalize_meal(item) for item in payload) if meal is not None]


def normalize_summary(raw: Any) -> Optional[HealthSummary]:
    try:
        summary = RawSummaryResponse.model_validate(raw)
    except ValidationError:
        logging.debug(f"Rejected malformed health summary: {raw!r}")
        return None

    if summary.syncedAt is None or parse_timestamp_ms(summary.syncedAt) is None:
        return None
    if summary.weightUpdatedAt is not None and parse_timestamp_ms(summary.weightUpdatedAt) is None:
        return None
    for value in (summary.stepsLast24h, summary.weightKgLatest):
        if value is not None and not math.isfinite(value):
            return None

    return HealthSummary(
        steps_last_24h=summary.stepsLast24h,
        weight_kg_latest=summary.weightKgLatest,
        weight_updated_at=summary.weightUpdatedAt,
        synced_at=summary.syncedAt,
    )


class IntegrationsClient:
    """
    Read-only client for the integrations ingestion API.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        read_token: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or INTEGRATIONS_API_BASE_URL or "").rstrip("/")
        self.read_token = read_token or INTEGRATIONS_API_READ_TOKEN
        if not self.base_url or not self.read_token:
            raise ValueError("Integrations API base URL/read token not set")
        self.timeout = timeout if timeout is not None else API_TIMEOUT_SECONDS
        self.headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.read_token}",
        }

    async def _make_request(self, endpoint: str, params: Optional[dict] = None) -> Any:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=self.timeout) as client:
                response = await client.get(url, params=params, headers=self.headers)
                logging.info(f"Request {url} completed with status: {response.status_code}")
                if not response.is_success:
                    logging.error(f"Integrations API request failed: status={response.status_code}, url={url}")
                    raise IntegrationsRequestError(f"Integrations API request failed ({response.status_code}).")
                return response.json() if response.text else None
        except httpx.TimeoutException as e:
            logging.error(f"Timeout calling integrations API {url}: {e}")
            raise IntegrationsRequestError("Integrations API request timed out.") from e
        except httpx.RequestError as e:
            logging.error(f"Request error calling integrations API {url}: {e}")
            raise

    async def get_health_summary(self) -> Optional[HealthSummary]:
        payload = await self._make_request(SUMMARY_ENDPOINT)
        if not isinstance(payload, dict):
            return None
        return normalize_summary(payload)

    async def get_meals(self, days: float, now: Optional[datetime] = None) -> list[MealEvent]:
        """Logged meals from the last ``days``, newest first."""
        to_time = resolve_now(now)
        from_time = to_time - timedelta(days=days)
        params = {
            "from": from_time.isoformat(),
            "to": to_time.isoformat(),
            "limit": str(MEALS_LIMIT),
        }
        payload = await self._make_request(MEALS_ENDPOINT, params=params)
        if not isinstance(payload, list):
            return []

        meals = normalize_meals(payload)
        meals.sort(key=lambda meal: parse_timestamp_ms(meal.eaten_at) or 0, reverse=True)
        return meals
