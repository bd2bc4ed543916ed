"""
Nightscout API payload models.
"""
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class RawNightscoutEntry(BaseModel):
    """
    Model for a raw sensor glucose entry from /api/v1/entries.json.
    """
    model_config = ConfigDict(extra="ignore")

    date: Optional[float] = Field(default=None, description="Epoch milliseconds")
    dateString: Optional[str] = Field(default=None, description="ISO-8601 timestamp")
    sgv: Optional[float] = Field(default=None, description="Sensor glucose in mg/dL")
    direction: Optional[str] = Field(default=None, description="Trend arrow name")
    device: Optional[str] = Field(default=None, description="Uploader device")


class RawTreatmentEntry(BaseModel):
    """
    Model for a raw treatment from /api/v1/treatments.json.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id", description="Nightscout document id")
    created_at: Optional[str] = Field(default=None, description="ISO-8601 creation time")
    eventType: Optional[str] = Field(default=None, description="Care portal event type")
    insulin: Optional[float] = Field(default=None, description="Insulin units")
    carbs: Optional[float] = Field(default=None, description="Carbohydrate grams")
    notes: Optional[str] = Field(default=None, description="Free-text notes")
    enteredBy: Optional[str] = Field(default=None, description="Author")
