"""API clients and helpers for external services."""

from .integrations_client import (
    IntegrationsClient,
    IntegrationsRequestError,
    normalize_meal,
    normalize_meals,
    normalize_summary,
)
from .nightscout_client import (
    NightscoutClient,
    NightscoutRequestError,
    compute_trend_summary,
    normalize_entries,
    normalize_entry,
    normalize_treatment,
    normalize_treatments,
)

__all__ = [
    "IntegrationsClient",
    "IntegrationsRequestError",
    "NightscoutClient",
    "NightscoutRequestError",
    "compute_trend_summary",
    "normalize_entries",
    "normalize_entry",
    "normalize_meal",
    "normalize_meals",
    "normalize_summary",
    "normalize_treatment",
    "normalize_treatments",
]
