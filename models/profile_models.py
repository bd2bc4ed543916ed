"""
Therapy profile settings schema.

Validates a profile the way the settings store does before it reaches the
analytics engine, then converts it to the engine's ``TherapyProfile``.
"""
import json
import re
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from therapy_analytics.models import RatioWindow, TargetWindow, TherapyProfile

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def _check_hhmm(value: str) -> str:
    if not _HHMM.match(value):
        raise ValueError("Window time must use HH:MM.")
    return value


class RatioWindowSettings(BaseModel):
    """
    Carb ratio window as stored in settings.
    """
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(default=None, description="Window id")
    startHHMM: str = Field(description="Window start (HH:MM)")
    endHHMM: str = Field(description="Window end (HH:MM)")
    gramsPerUnit: float = Field(gt=0, allow_inf_nan=False, description="Grams of carbs per insulin unit")

    @field_validator("startHHMM", "endHHMM")
    @classmethod
    def check_times(cls, value: str) -> str:
        return _check_hhmm(value)


class TargetWindowSettings(BaseModel):
    """
    Target glucose range window as stored in settings.
    """
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(default=None, description="Window id")
    startHHMM: str = Field(description="Window start (HH:MM)")
    endHHMM: str = Field(description="Window end (HH:MM)")
    lowGL: float = Field(gt=0, allow_inf_nan=False, description="Low bound in g/L")
    highGL: float = Field(allow_inf_nan=False, description="High bound in g/L")

    @field_validator("startHHMM", "endHHMM")
    @classmethod
    def check_times(cls, value: str) -> str:
        return _check_hhmm(value)

    @model_validator(mode="after")
    def check_high_above_low(self) -> "TargetWindowSettings":
        if self.highGL <= self.lowGL:
            raise ValueError("Target window high must be greater than low.")
        return self


class TherapyProfileSettings(BaseModel):
    """
    Full therapy profile as stored in settings.
    """
    model_config = ConfigDict(extra="ignore")

    ratioWindows: List[RatioWindowSettings] = Field(min_length=1, description="Carb ratio windows")
    targetWindows: List[TargetWindowSettings] = Field(default_factory=list, description="Target range windows")
    correctionFactorDropGLPerUnit: float = Field(gt=0, allow_inf_nan=False, description="g/L drop per unit")
    targetLowGL: float = Field(gt=0, allow_inf_nan=False, description="Flat target low in g/L")
    targetHighGL: float = Field(allow_inf_nan=False, description="Flat target high in g/L")
    insulinActionHours: float = Field(gt=0, allow_inf_nan=False, description="Insulin action duration")
    carbAbsorptionHours: float = Field(gt=0, allow_inf_nan=False, description="Carb absorption duration")
    localTimezone: Optional[str] = Field(default=None, description="IANA timezone for wall-clock windows")

    @model_validator(mode="after")
    def check_flat_target_order(self) -> "TherapyProfileSettings":
        if self.targetHighGL <= self.targetLowGL:
            raise ValueError("Target high must be greater than target low.")
        return self

    def to_profile(self) -> TherapyProfile:
        return TherapyProfile(
            ratio_windows=tuple(
                RatioWindow(
                    start_hhmm=window.startHHMM,
                    end_hhmm=window.endHHMM,
                    grams_per_unit=window.gramsPerUnit,
                    id=window.id,
                )
                for window in self.ratioWindows
            ),
            target_windows=tuple(
                TargetWindow(
                    start_hhmm=window.startHHMM,
                    end_hhmm=window.endHHMM,
                    low_gl=window.lowGL,
                    high_gl=window.highGL,
                    id=window.id,
                )
                for window in self.targetWindows
            ),
            correction_factor_drop_gl_per_unit=self.correctionFactorDropGLPerUnit,
            target_low_gl=self.targetLowGL,
            target_high_gl=self.targetHighGL,
            insulin_action_hours=self.insulinActionHours,
            carb_absorption_hours=self.carbAbsorptionHours,
            local_timezone=self.localTimezone,
        )


DEFAULT_PROFILE_SETTINGS = TherapyProfileSettings(
    ratioWindows=[
        RatioWindowSettings(id="morning", startHHMM="04:00", endHHMM="11:30", gramsPerUnit=5),
        RatioWindowSettings(id="day", startHHMM="11:31", endHHMM="03:59", gramsPerUnit=7),
    ],
    targetWindows=[
        TargetWindowSettings(id="sleep", startHHMM="00:00", endHHMM="05:59", lowGL=0.8, highGL=1.3),
        TargetWindowSettings(id="morning", startHHMM="06:00", endHHMM="11:59", lowGL=0.8, highGL=1.3),
        TargetWindowSettings(id="day", startHHMM="12:00", endHHMM="23:59", lowGL=0.8, highGL=1.3),
    ],
    correctionFactorDropGLPerUnit=0.5,
    targetLowGL=0.8,
    targetHighGL=1.3,
    insulinActionHours=4,
    carbAbsorptionHours=3,
)


def load_profile(path: Path) -> TherapyProfile:
    """Read and validate a profile JSON file."""
    payload = json.loads(Path(path).read_text())
    return TherapyProfileSettings.model_validate(payload).to_profile()
