"""Pydantic schemas for zone, aerobic and swim analytics endpoints."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


# Zones

class Zone(BaseModel):
    """Schema for one training zone (min inclusive, max exclusive)."""

    zone: int = Field(..., ge=1, description="1-based zone number")
    name: str = Field(..., description="Zone name (e.g., 'Tempo')")
    min: float = Field(..., ge=0, description="Lower bound in bpm, watts or m/s")
    max: float = Field(..., ge=0, description="Upper bound in bpm, watts or m/s")
    description: str = Field(..., description="What the zone trains")

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "zone": 2,
                "name": "Aerobic",
                "min": 138,
                "max": 151,
                "description": "Endurance pace, conversational",
            }
        }


class SwimZone(Zone):
    """Swim zone with the pace range as m:ss per 100m."""

    pace_min: str = Field(..., description="Faster end of the zone per 100m")
    pace_max: str = Field(..., description="Slower end of the zone per 100m")


class UserZones(BaseModel):
    """All zone families for the current user."""

    hr_zones: Optional[list[Zone]] = None
    power_zones: Optional[list[Zone]] = None
    pace_zones: Optional[list[Zone]] = None
    swim_zones: Optional[list[Zone]] = None

    class Config:
        from_attributes = True


class TimeInZone(BaseModel):
    zone: int
    name: str
    seconds: int = Field(..., ge=0)
    percentage: float = Field(..., ge=0, le=100)

    class Config:
        from_attributes = True


class TimeInZonesResponse(BaseModel):
    """Zone table used for an activity and the time spent in each zone."""

    activity_id: int
    metric_type: Literal["heart_rate", "power", "speed"]
    zones: list[Zone]
    time_in_zones: list[TimeInZone]


class ThresholdDetection(BaseModel):
    """Suggested threshold; the athlete confirms before it is stored."""

    value: float = Field(..., description="FTP in watts, or threshold speed in m/s")
    confidence: float = Field(..., ge=0, le=1)
    method: str
    based_on_activities: int = Field(..., ge=0)
    suggested_at: datetime

    class Config:
        from_attributes = True


class HRZonesRequest(BaseModel):
    lthr: int = Field(..., ge=100, le=220, description="Lactate threshold heart rate in bpm")


class PowerZonesRequest(BaseModel):
    ftp: int = Field(..., ge=50, le=600, description="Functional threshold power in watts")


class PaceZonesRequest(BaseModel):
    threshold_pace: float = Field(..., ge=2, le=7, description="Threshold pace as speed in m/s")


class SwimZonesRequest(BaseModel):
    css: float = Field(..., gt=0, description="Critical swim speed in m/s")


# Aerobic

class Decoupling(BaseModel):
    """Aerobic decoupling of one activity."""

    decoupling_percent: float
    ef_first_half: float
    ef_second_half: float
    rating: Literal["excellent", "good", "needs_work", "deficient"]
    used_power: bool

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "decoupling_percent": 4.2,
                "ef_first_half": 1.512,
                "ef_second_half": 1.449,
                "rating": "excellent",
                "used_power": True,
            }
        }


class EFTrendPoint(BaseModel):
    date: datetime
    activity_id: int
    activity_name: str
    ef: float
    duration: int = Field(..., description="Moving time in seconds")
    distance: Optional[float] = Field(None, description="Distance in meters")

    class Config:
        from_attributes = True


class EFTrend(BaseModel):
    """Efficiency Factor trend over the requested window."""

    points: list[EFTrendPoint]
    average_ef: float
    trend_direction: Literal["improving", "declining", "stable"]
    trend_percent: float
    best_ef: Optional[EFTrendPoint] = None

    class Config:
        from_attributes = True


# Duration curves

class CurvePoint(BaseModel):
    duration: int = Field(..., gt=0, description="Duration in seconds")
    label: str = Field(..., description="Display label (e.g., '20min')")
    value: float = Field(..., ge=0, description="Watts for power, m/s for pace")
    activity_id: Optional[int] = None
    achieved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DurationCurve(BaseModel):
    """Best efforts per duration over the requested window."""

    curve_type: Literal["power", "pace"]
    period_days: int
    points: list[CurvePoint]
    activity_count: int

    class Config:
        from_attributes = True


class Phenotype(BaseModel):
    phenotype: Literal["sprinter", "pursuiter", "time_trialist", "all_rounder"]
    description: str
    strengths: list[str]
    weaknesses: list[str]
    sprint_score: int = Field(..., ge=0, le=100)
    sustained_score: int = Field(..., ge=0, le=100)

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "phenotype": "time_trialist",
                "description": "Excels at sustained high power",
                "strengths": ["Time trials", "Long climbs", "Solo breakaways"],
                "weaknesses": ["Sprint finishes", "Punchy races", "Short attacks"],
                "sprint_score": 10,
                "sustained_score": 95,
            }
        }


class PowerCurveAnalysis(BaseModel):
    curve: DurationCurve
    phenotype: Phenotype
    estimated_ftp: int = Field(..., ge=0, description="Watts; 0 when no usable effort")


# CSS

class CSSRequest(BaseModel):
    """400m and 200m time trial results in seconds."""

    t400: int = Field(..., ge=180, le=1200, description="400m time in seconds (3-20 minutes)")
    t200: int = Field(..., ge=90, le=600, description="200m time in seconds (1.5-10 minutes)")


class CSSResult(BaseModel):
    css: float = Field(..., description="Critical swim speed in m/s")
    css_pace_100m: float = Field(..., description="Seconds per 100m")
    css_pace_formatted: str
    estimated_t750: int
    estimated_t1500: int

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "css": 0.952,
                "css_pace_100m": 105.0,
                "css_pace_formatted": "1:45",
                "estimated_t750": 803,
                "estimated_t1500": 1622,
            }
        }


class CSSEstimate(BaseModel):
    css: float
    css_pace_100m: float
    css_pace_formatted: str
    confidence: float = Field(..., ge=0, le=1)
    based_on: str
    swim_count: int

    class Config:
        from_attributes = True


class TrainingPace(BaseModel):
    speed: float = Field(..., description="Speed in m/s")
    pace: str = Field(..., description="Pace per 100m")

    class Config:
        from_attributes = True


class RacePrediction(BaseModel):
    time: int = Field(..., description="Predicted time in seconds")
    formatted: str

    class Config:
        from_attributes = True


class CSSAnalysis(BaseModel):
    """CSS from a test, with everything derived from it."""

    css: CSSResult
    zones: list[SwimZone]
    training_paces: dict[str, TrainingPace]
    race_predictions: dict[str, RacePrediction]


class CSSEstimateAnalysis(BaseModel):
    estimate: CSSEstimate
    zones: list[SwimZone]
    training_paces: dict[str, TrainingPace]
