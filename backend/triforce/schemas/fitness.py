"""Pydantic schemas for PMC and fitness forecast endpoints."""

from datetime import date as date_type
from typing import Literal

from pydantic import BaseModel, Field


class FitnessMetricResponse(BaseModel):
    """One day of CTL/ATL/TSB."""

    date: date_type = Field(..., description="Date of the metric")
    daily_tss: float = Field(..., ge=0, description="Total TSS for the day")
    activity_count: int = Field(..., ge=0)
    ctl: float = Field(..., description="Chronic Training Load (Fitness)")
    atl: float = Field(..., description="Acute Training Load (Fatigue)")
    tsb: float = Field(..., description="Training Stress Balance (Form)")

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "date": "2024-01-15",
                "daily_tss": 75.5,
                "activity_count": 1,
                "ctl": 55.2,
                "atl": 68.4,
                "tsb": -13.2,
            }
        }


class RecalculateRequest(BaseModel):
    days: int = Field(default=90, ge=7, le=365, description="Number of days to recalculate (7-365)")


class ForecastPoint(BaseModel):
    date: date_type
    projected_ctl: float
    projected_atl: float
    projected_tsb: float
    source: Literal["planned", "estimated", "decay"]

    class Config:
        from_attributes = True


class PlannedWeekRequest(BaseModel):
    week_start: date_type
    target_tss: float = Field(..., ge=0, description="Planned TSS for the week")
    week_type: Literal["build", "recovery", "peak", "taper"] = "build"


class PlanForecastRequest(BaseModel):
    """Forecast from explicit weeks instead of the stored plan."""

    current_ctl: float = Field(..., ge=0)
    current_atl: float = Field(..., ge=0)
    weeks: list[PlannedWeekRequest] = Field(..., min_length=1, max_length=52)


class TSSModification(BaseModel):
    date: date_type
    tss: float = Field(..., ge=0)


class ModificationsRequest(BaseModel):
    modifications: list[TSSModification] = Field(default_factory=list)
    days_ahead: int = Field(default=30, ge=1, le=180)


class RequiredTSSRequest(BaseModel):
    current_ctl: float = Field(..., ge=0)
    target_ctl: float = Field(..., ge=0)
    weeks_to_race: int = Field(..., ge=1, le=52)


class RequiredTSS(BaseModel):
    weekly_tss: list[int]
    average_ramp_rate: float = Field(..., description="CTL points per week")
    achievable: bool
    warnings: list[str]

    class Config:
        from_attributes = True


class TaperRequest(BaseModel):
    race_date: date_type
    target_tsb: float = Field(default=15, ge=-30, le=50)


class TaperDay(BaseModel):
    date: date_type
    suggested_tss: int

    class Config:
        from_attributes = True


class TaperSimulation(BaseModel):
    taper_plan: list[TaperDay]
    projected_tsb_on_race_day: float
    target_tsb: float

    class Config:
        from_attributes = True
