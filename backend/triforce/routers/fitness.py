"""Fitness API router: PMC recalculation and CTL/ATL/TSB forecasts."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from triforce.database import get_db
from triforce.models.user import User
from triforce.schemas.common import ApiResponse
from triforce.schemas.fitness import (
    FitnessMetricResponse,
    ForecastPoint,
    ModificationsRequest,
    PlanForecastRequest,
    RecalculateRequest,
    RequiredTSS,
    RequiredTSSRequest,
    TaperRequest,
    TaperSimulation,
)
from triforce.services.auth_service import get_current_user
from triforce.services.fitness_service import fitness_service
from triforce.services.forecast_service import PlannedWeek, forecast_service

logger = logging.getLogger(__name__)

router = APIRouter()

NO_FITNESS_DATA = "No fitness data available. Recalculate your fitness history first."


@router.post("/recalculate", response_model=ApiResponse[list[FitnessMetricResponse]])
async def recalculate_fitness(
    request: RecalculateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Recalculate daily CTL/ATL/TSB from the user's activities."""
    metrics = fitness_service.calculate_fitness_history(db, current_user.id, days=request.days)
    return {"success": True, "data": metrics}


@router.get("/forecast", response_model=ApiResponse[list[ForecastPoint]])
async def get_forecast(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Forecast fitness through the active training plan.

    Without an active plan the current load is decayed over four weeks.
    """
    forecast = forecast_service.get_forecast_from_plan(db, current_user.id)

    if not forecast:
        return {"success": True, "data": None, "message": NO_FITNESS_DATA}

    return {"success": True, "data": forecast}


@router.post("/forecast/plan", response_model=ApiResponse[list[ForecastPoint]])
async def forecast_planned_weeks(
    request: PlanForecastRequest,
    current_user: User = Depends(get_current_user),
):
    """Forecast fitness from explicitly supplied weekly targets."""
    weeks = [
        PlannedWeek(week_start=w.week_start, target_tss=w.target_tss, week_type=w.week_type)
        for w in request.weeks
    ]
    forecast = forecast_service.forecast_fitness(request.current_ctl, request.current_atl, weeks)
    return {"success": True, "data": forecast}


@router.post("/forecast/modifications", response_model=ApiResponse[list[ForecastPoint]])
async def forecast_with_modifications(
    request: ModificationsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Forecast fitness with per-day TSS overrides."""
    forecast = forecast_service.project_with_modifications(
        db, current_user.id, request.modifications, request.days_ahead
    )

    if not forecast:
        return {"success": True, "data": None, "message": NO_FITNESS_DATA}

    return {"success": True, "data": forecast}


@router.post("/required-tss", response_model=ApiResponse[RequiredTSS])
async def required_tss(
    request: RequiredTSSRequest,
    current_user: User = Depends(get_current_user),
):
    """Weekly TSS needed to reach a target CTL by race day."""
    result = forecast_service.calculate_required_tss(
        request.current_ctl, request.target_ctl, request.weeks_to_race
    )
    return {"success": True, "data": result}


@router.post("/taper", response_model=ApiResponse[TaperSimulation])
async def simulate_taper(
    request: TaperRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Simulate a progressive taper into a race."""
    simulation = forecast_service.simulate_taper(
        db, current_user.id, request.race_date, request.target_tsb
    )

    if simulation is None:
        return {"success": True, "data": None, "message": NO_FITNESS_DATA}

    return {"success": True, "data": simulation}
