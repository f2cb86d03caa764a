"""Query helpers the analytics services read from and write through.

These functions are the only place the services touch the ORM. They never
commit; the calling service owns the transaction.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from triforce.models.activity import Activity, SportType
from triforce.models.activity_metrics import ActivityMetrics
from triforce.models.activity_record import ActivityRecord
from triforce.models.athlete_profile import AthleteProfile
from triforce.models.fitness_metric import FitnessMetric
from triforce.models.training_plan import PlanStatus, TrainingPlan


def list_samples(db: Session, activity_id: int) -> list[ActivityRecord]:
    """Return the samples of an activity ordered by timestamp."""
    return (
        db.query(ActivityRecord)
        .filter(ActivityRecord.activity_id == activity_id)
        .order_by(ActivityRecord.timestamp.asc(), ActivityRecord.id.asc())
        .all()
    )


def list_activities(
    db: Session,
    user_id: int,
    sport_type: Optional[SportType] = None,
    since: Optional[datetime] = None,
    min_moving_time: Optional[int] = None,
    min_distance: Optional[float] = None,
    max_distance: Optional[float] = None,
    require_heart_rate: bool = False,
    require_speed: bool = False,
    order_by_speed: bool = False,
    descending: bool = False,
    limit: Optional[int] = None,
    with_metrics: bool = False,
) -> list[Activity]:
    """
    Return activity summaries for a user matching the given filters.

    Args:
        db: Database session
        user_id: Owner of the activities
        sport_type: Restrict to one sport
        since: Only activities starting at or after this instant
        min_moving_time: Minimum moving time in seconds
        min_distance: Minimum distance in meters (inclusive)
        max_distance: Maximum distance in meters (inclusive)
        require_heart_rate: Only activities with an average heart rate
        require_speed: Only activities with a positive average speed
        order_by_speed: Order by average speed instead of start date
        descending: Reverse the ordering
        limit: Maximum number of rows
        with_metrics: Eagerly load the ActivityMetrics row

    Returns:
        List of matching activities
    """
    query = db.query(Activity).filter(Activity.user_id == user_id)

    if sport_type is not None:
        query = query.filter(Activity.sport_type == sport_type)
    if since is not None:
        query = query.filter(Activity.start_date >= since)
    if min_moving_time is not None:
        query = query.filter(Activity.moving_time >= min_moving_time)
    if min_distance is not None:
        query = query.filter(Activity.distance >= min_distance)
    if max_distance is not None:
        query = query.filter(Activity.distance <= max_distance)
    if require_heart_rate:
        query = query.filter(Activity.avg_heart_rate.isnot(None))
    if require_speed:
        query = query.filter(Activity.avg_speed > 0)
    if with_metrics:
        query = query.options(selectinload(Activity.metrics))

    order_column = Activity.avg_speed if order_by_speed else Activity.start_date
    if descending:
        query = query.order_by(order_column.desc(), Activity.id.asc())
    else:
        query = query.order_by(order_column.asc(), Activity.id.asc())

    if limit is not None:
        query = query.limit(limit)

    return query.all()


def get_activity(db: Session, activity_id: int) -> Optional[Activity]:
    """Return a single activity or None."""
    return db.query(Activity).filter(Activity.id == activity_id).first()


def update_activity_derived(
    db: Session,
    activity_id: int,
    efficiency_factor: Optional[float] = None,
    decoupling: Optional[float] = None,
) -> None:
    """
    Cache derived aerobic values on an activity.

    The values are also copied onto the activity's metrics row when one
    exists.
    """
    activity_values = {}
    metrics_values = {}
    if efficiency_factor is not None:
        activity_values[Activity.efficiency_factor] = efficiency_factor
        metrics_values[ActivityMetrics.efficiency_factor] = efficiency_factor
    if decoupling is not None:
        activity_values[Activity.decoupling] = decoupling
        metrics_values[ActivityMetrics.aerobic_decoupling] = decoupling

    if not activity_values:
        return

    db.query(Activity).filter(Activity.id == activity_id).update(
        activity_values, synchronize_session="fetch"
    )
    db.query(ActivityMetrics).filter(ActivityMetrics.activity_id == activity_id).update(
        metrics_values, synchronize_session="fetch"
    )


def upsert_activity_metrics(db: Session, activity_id: int, **values) -> ActivityMetrics:
    """Create the metrics row of an activity if missing and apply the values."""
    metrics = (
        db.query(ActivityMetrics).filter(ActivityMetrics.activity_id == activity_id).first()
    )
    if metrics is None:
        metrics = ActivityMetrics(activity_id=activity_id)
        db.add(metrics)

    for field, value in values.items():
        setattr(metrics, field, value)

    db.flush()
    return metrics


def set_normalized_power(db: Session, activity_id: int, normalized_power: float) -> None:
    db.query(Activity).filter(Activity.id == activity_id).update(
        {Activity.normalized_power: normalized_power}, synchronize_session="fetch"
    )


def get_profile(db: Session, user_id: int) -> Optional[AthleteProfile]:
    """Return the athlete profile of a user, if any."""
    return db.query(AthleteProfile).filter(AthleteProfile.user_id == user_id).first()


def upsert_profile(db: Session, user_id: int, **patch) -> AthleteProfile:
    """Create the profile if missing and apply the given field values."""
    profile = get_profile(db, user_id)
    if profile is None:
        profile = AthleteProfile(user_id=user_id)
        db.add(profile)

    for field, value in patch.items():
        setattr(profile, field, value)

    db.flush()
    return profile


def get_latest_fitness_metric(db: Session, user_id: int) -> Optional[FitnessMetric]:
    """Return the most recent daily PMC row for a user."""
    return (
        db.query(FitnessMetric)
        .filter(FitnessMetric.user_id == user_id)
        .order_by(FitnessMetric.date.desc())
        .first()
    )


def get_active_plan(db: Session, user_id: int) -> Optional[TrainingPlan]:
    """Return the user's active training plan with its weeks loaded."""
    return (
        db.query(TrainingPlan)
        .options(selectinload(TrainingPlan.weeks))
        .filter(
            TrainingPlan.user_id == user_id,
            TrainingPlan.status == PlanStatus.ACTIVE,
        )
        .order_by(TrainingPlan.start_date.desc())
        .first()
    )
