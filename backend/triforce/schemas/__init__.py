"""Pydantic schemas package for API request/response models."""

from triforce.schemas.common import ApiResponse, ErrorResponse
from triforce.schemas.analytics import (
    CSSAnalysis,
    CSSEstimateAnalysis,
    CSSRequest,
    Decoupling,
    DurationCurve,
    EFTrend,
    Phenotype,
    PowerCurveAnalysis,
    SwimZone,
    ThresholdDetection,
    TimeInZonesResponse,
    UserZones,
    Zone,
)
from triforce.schemas.fitness import (
    FitnessMetricResponse,
    ForecastPoint,
    RequiredTSS,
    TaperSimulation,
)

__all__ = [
    # Envelope
    "ApiResponse",
    "ErrorResponse",
    # Analytics schemas
    "CSSAnalysis",
    "CSSEstimateAnalysis",
    "CSSRequest",
    "Decoupling",
    "DurationCurve",
    "EFTrend",
    "Phenotype",
    "PowerCurveAnalysis",
    "SwimZone",
    "ThresholdDetection",
    "TimeInZonesResponse",
    "UserZones",
    "Zone",
    # Fitness schemas
    "FitnessMetricResponse",
    "ForecastPoint",
    "RequiredTSS",
    "TaperSimulation",
]
