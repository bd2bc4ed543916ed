"""
Integrations API payload models (meals and Health Connect summary).
"""
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class RawMealResponse(BaseModel):
    """
    Model for a meal returned by /v1/meals.
    """
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(default=None, description="Meal id")
    name: Optional[str] = Field(default=None, description="Meal name")
    carbsGrams: Optional[float] = Field(default=None, description="Carbohydrate grams")
    eatenAt: Optional[str] = Field(default=None, description="ISO-8601 time eaten")
    source: Optional[str] = Field(default=None, description="Originating app")
    calories: Optional[float] = Field(default=None, description="Energy in kcal")


class RawSummaryResponse(BaseModel):
    """
    Model for the activity/weight summary returned by /v1/summary.
    """
    model_config = ConfigDict(extra="ignore")

    stepsLast24h: Optional[float] = Field(default=None, description="Steps over the last 24 hours")
    weightKgLatest: Optional[float] = Field(default=None, description="Latest weight in kg")
    weightUpdatedAt: Optional[str] = Field(default=None, description="When the weight was recorded")
    syncedAt: Optional[str] = Field(default=None, description="Last sync time")
    source: Optional[str] = Field(default=None, description="Summary source")
