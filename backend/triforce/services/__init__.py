"""Services package for the analytics engine."""

from triforce.services.aerobic_service import AerobicService, aerobic_service
from triforce.services.css_service import CSSService, css_service
from triforce.services.duration_curve_service import (
    DurationCurveService,
    duration_curve_service,
)
from triforce.services.fitness_service import FitnessService, fitness_service
from triforce.services.forecast_service import ForecastService, forecast_service
from triforce.services.zone_calculator import ZoneCalculator, zone_calculator

__all__ = [
    "AerobicService",
    "aerobic_service",
    "CSSService",
    "css_service",
    "DurationCurveService",
    "duration_curve_service",
    "FitnessService",
    "fitness_service",
    "ForecastService",
    "forecast_service",
    "ZoneCalculator",
    "zone_calculator",
]
