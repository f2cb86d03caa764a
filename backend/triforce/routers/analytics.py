"""Analytics API router: training zones, aerobic efficiency, duration curves and swim CSS."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from triforce import repositories
from triforce.database import get_db
from triforce.models.activity import Activity, SportType
from triforce.models.user import User
from triforce.schemas.analytics import (
    CSSAnalysis,
    CSSEstimateAnalysis,
    CSSRequest,
    Decoupling,
    DurationCurve,
    EFTrend,
    HRZonesRequest,
    PaceZonesRequest,
    PowerCurveAnalysis,
    PowerZonesRequest,
    SwimZonesRequest,
    ThresholdDetection,
    TimeInZonesResponse,
    UserZones,
    Zone,
)
from triforce.schemas.common import ApiResponse
from triforce.services.aerobic_service import aerobic_service
from triforce.services.auth_service import get_current_user
from triforce.services.css_service import css_service
from triforce.services.duration_curve_service import duration_curve_service
from triforce.services.zone_calculator import zone_calculator

logger = logging.getLogger(__name__)

router = APIRouter()

DATA_UNAVAILABLE_MESSAGE = "Activity data is unavailable right now. Please try again later."


def _get_owned_activity(db: Session, activity_id: int, user: User) -> Optional[Activity]:
    """Return the user's activity, None if it cannot be loaded, or raise 404."""
    try:
        activity = repositories.get_activity(db, activity_id)
    except SQLAlchemyError as e:
        logger.warning(f"Failed to load activity {activity_id}: {e}")
        return None

    if activity is None or activity.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Activity not found",
        )
    return activity


@router.get("/zones", response_model=ApiResponse[UserZones])
async def get_zones(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get every training zone family for the current user."""
    zones = zone_calculator.get_user_zones(db, current_user.id)
    return {"success": True, "data": zones}


@router.get("/ef-trend", response_model=ApiResponse[EFTrend])
async def get_ef_trend(
    sport: Literal["BIKE", "RUN"] = Query(..., description="Sport to analyse"),
    days: int = Query(90, ge=7, le=365, description="Window size in days"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Get the Efficiency Factor trend.

    Always returns data; with no qualifying activities the trend is empty
    and stable.
    """
    trend = aerobic_service.get_ef_trend(db, current_user.id, sport, days)
    return {"success": True, "data": trend}


@router.get("/power-curve", response_model=ApiResponse[PowerCurveAnalysis])
async def get_power_curve(
    days: int = Query(90, ge=7, le=365, description="Window size in days"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the power duration curve with phenotype and estimated FTP."""
    curve = duration_curve_service.build_power_curve(db, current_user.id, days)

    return {
        "success": True,
        "data": {
            "curve": curve,
            "phenotype": duration_curve_service.determine_phenotype(curve.points),
            "estimated_ftp": duration_curve_service.estimate_ftp_from_curve(curve.points),
        },
    }


@router.get("/pace-curve", response_model=ApiResponse[DurationCurve])
async def get_pace_curve(
    days: int = Query(90, ge=7, le=365, description="Window size in days"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the run pace duration curve (speeds in m/s)."""
    curve = duration_curve_service.build_pace_curve(db, current_user.id, days)
    return {"success": True, "data": curve}


@router.post("/css", response_model=ApiResponse[CSSAnalysis])
async def calculate_css(
    request: CSSRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Calculate CSS from 400m and 200m test times.

    The result is saved to the athlete profile and returned with swim zones,
    training paces and race predictions.
    """
    result = css_service.calculate_css(request.t400, request.t200)
    zones = css_service.calculate_swim_zones(result.css_pace_100m)
    training_paces = css_service.get_training_paces(result.css)
    race_predictions = css_service.predict_race_times(result.css)

    css_service.update_user_css(db, current_user.id, result.css)

    return {
        "success": True,
        "data": {
            "css": result,
            "zones": zones,
            "training_paces": training_paces,
            "race_predictions": race_predictions,
        },
    }


@router.get("/css/estimate", response_model=ApiResponse[CSSEstimateAnalysis])
async def estimate_css(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Estimate CSS from recent 400-1500m swims."""
    estimate = css_service.estimate_css_from_history(db, current_user.id)

    if estimate is None:
        return {
            "success": True,
            "data": None,
            "message": "Not enough swim data to estimate CSS. Record some 400-1500m swims.",
        }

    return {
        "success": True,
        "data": {
            "estimate": estimate,
            "zones": css_service.calculate_swim_zones(estimate.css_pace_100m),
            "training_paces": css_service.get_training_paces(estimate.css),
        },
    }


@router.get("/detect-threshold", response_model=ApiResponse[ThresholdDetection])
async def detect_threshold(
    sport: Literal["BIKE", "RUN", "SWIM"] = Query(..., description="Sport to detect"),
    days: int = Query(90, ge=30, le=365, description="Lookback window in days"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Suggest a threshold from recent activities."""
    detection = zone_calculator.detect_threshold(db, current_user.id, sport, days)

    if detection is None:
        return {
            "success": True,
            "data": None,
            "message": f"Not enough {sport.lower()} data to detect threshold.",
        }

    return {"success": True, "data": detection}


@router.get("/decoupling/{activity_id}", response_model=ApiResponse[Decoupling])
async def get_decoupling(
    activity_id: int,
    use_power: bool = Query(True, description="Use power instead of speed when available"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get aerobic decoupling for one of the user's activities."""
    if _get_owned_activity(db, activity_id, current_user) is None:
        return {"success": True, "data": None, "message": DATA_UNAVAILABLE_MESSAGE}

    result = aerobic_service.calculate_decoupling(db, activity_id, use_power)

    if result is None:
        return {
            "success": True,
            "data": None,
            "message": "Not enough heart rate data to calculate decoupling.",
        }

    return {"success": True, "data": result}


@router.get("/time-in-zones/{activity_id}", response_model=ApiResponse[TimeInZonesResponse])
async def get_time_in_zones(
    activity_id: int,
    metric_type: Literal["heart_rate", "power", "speed"] = Query("heart_rate"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Get time spent in each zone for an activity.

    Speed is bucketed into swim zones for swims and run pace zones otherwise.
    """
    activity = _get_owned_activity(db, activity_id, current_user)
    if activity is None:
        return {"success": True, "data": None, "message": DATA_UNAVAILABLE_MESSAGE}

    user_zones = zone_calculator.get_user_zones(db, current_user.id)

    zones: Optional[list] = None
    if metric_type == "heart_rate":
        zones = user_zones.hr_zones
    elif metric_type == "power":
        zones = user_zones.power_zones
    elif activity.sport_type == SportType.SWIM:
        zones = user_zones.swim_zones
    else:
        zones = user_zones.pace_zones

    if zones is None:
        return {
            "success": True,
            "data": None,
            "message": "Set the matching threshold in your profile to see time in zones.",
        }

    time_in_zones = zone_calculator.get_activity_time_in_zones(db, activity_id, zones, metric_type)
    if time_in_zones is None:
        return {"success": True, "data": None, "message": DATA_UNAVAILABLE_MESSAGE}

    return {
        "success": True,
        "data": {
            "activity_id": activity_id,
            "metric_type": metric_type,
            "zones": zones,
            "time_in_zones": time_in_zones,
        },
    }


@router.post("/calculate-zones/hr", response_model=ApiResponse[list[Zone]])
async def calculate_hr_zones(
    request: HRZonesRequest,
    current_user: User = Depends(get_current_user),
):
    """Calculate heart rate zones from LTHR."""
    return {"success": True, "data": zone_calculator.calculate_hr_zones(request.lthr)}


@router.post("/calculate-zones/power", response_model=ApiResponse[list[Zone]])
async def calculate_power_zones(
    request: PowerZonesRequest,
    current_user: User = Depends(get_current_user),
):
    """Calculate power zones from FTP."""
    return {"success": True, "data": zone_calculator.calculate_power_zones(request.ftp)}


@router.post("/calculate-zones/pace", response_model=ApiResponse[list[Zone]])
async def calculate_pace_zones(
    request: PaceZonesRequest,
    current_user: User = Depends(get_current_user),
):
    """Calculate run pace zones from threshold pace in m/s."""
    return {"success": True, "data": zone_calculator.calculate_pace_zones(request.threshold_pace)}


@router.post("/calculate-zones/swim", response_model=ApiResponse[list[Zone]])
async def calculate_swim_zones(
    request: SwimZonesRequest,
    current_user: User = Depends(get_current_user),
):
    """Calculate swim zones from CSS in m/s."""
    return {"success": True, "data": zone_calculator.calculate_swim_zones(request.css)}
