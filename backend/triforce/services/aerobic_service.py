"""Aerobic analytics service.

Efficiency Factor (EF) and aerobic decoupling:
- EF: output per heartbeat (NP / HR for bike, m/min / HR for run)
- Decoupling (Pw:Hr or Pa:Hr): EF drift between the two halves of a session
- EF trend: how aerobic efficiency moves over weeks of training
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterator, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from triforce import repositories
from triforce.exceptions import InvalidInputError
from triforce.models.activity import SportType
from triforce.services.formatting import round_half_up

logger = logging.getLogger(__name__)


@dataclass
class DecouplingResult:
    """Split-half EF comparison for one activity."""
    decoupling_percent: float
    ef_first_half: float
    ef_second_half: float
    rating: str
    used_power: bool


@dataclass
class EFTrendPoint:
    date: datetime
    activity_id: int
    activity_name: str
    ef: float
    duration: int
    distance: Optional[float] = None


@dataclass
class EFTrendData:
    """EF observations in date order plus summary statistics."""
    points: list[EFTrendPoint] = field(default_factory=list)
    average_ef: float = 0
    trend_direction: str = "stable"
    trend_percent: float = 0
    best_ef: Optional[EFTrendPoint] = None


def rate_decoupling(decoupling_percent: float) -> str:
    """
    Rate a decoupling percentage.

    <5% excellent (fully aerobic), 5-7.5% good, 7.5-10% needs work,
    10% and above deficient. Negative values are excellent.
    """
    if decoupling_percent < 5:
        return "excellent"
    if decoupling_percent < 7.5:
        return "good"
    if decoupling_percent < 10:
        return "needs_work"
    return "deficient"


def _sample_field(sample: Any, name: str) -> Optional[float]:
    if isinstance(sample, dict):
        return sample.get(name)
    return getattr(sample, name, None)


def _half_ef(samples: Sequence[Any], use_power: bool) -> Optional[float]:
    """EF over the samples carrying both heart rate and the chosen signal."""
    signal = "power" if use_power else "speed"
    valid = [
        (_sample_field(s, "heart_rate"), _sample_field(s, signal))
        for s in samples
        if _sample_field(s, "heart_rate") and _sample_field(s, signal)
    ]

    if len(valid) < AerobicService.MIN_VALID_SAMPLES_PER_HALF:
        return None

    avg_hr = sum(hr for hr, _ in valid) / len(valid)
    avg_signal = sum(value for _, value in valid) / len(valid)

    if use_power:
        return avg_signal / avg_hr
    return (avg_signal * 60) / avg_hr


def decoupling_from_samples(
    samples: Sequence[Any],
    use_power: bool = True,
) -> Optional[DecouplingResult]:
    """
    Calculate aerobic decoupling from an ordered sample sequence.

    Decoupling % = (EF_first - EF_second) / EF_first x 100

    The sequence is split at floor(n / 2) into two contiguous halves, so the
    second half holds the extra sample when the length is odd. If power is requested but the
    first half has too few power samples, both halves are recomputed from
    speed.

    Args:
        samples: Samples ordered by timestamp, as ORM rows or dicts
        use_power: Prefer power over speed as the output signal

    Returns:
        DecouplingResult, or None when there are fewer than 20 samples or
        either half has fewer than 10 usable samples
    """
    if len(samples) < AerobicService.MIN_SAMPLES:
        logger.debug(f"Not enough samples for decoupling calculation: {len(samples)}")
        return None

    midpoint = len(samples) // 2
    first_half = samples[:midpoint]
    second_half = samples[midpoint:]

    used_power = use_power
    ef_first = _half_ef(first_half, used_power)
    ef_second = _half_ef(second_half, used_power)

    if ef_first is None and use_power:
        used_power = False
        ef_first = _half_ef(first_half, used_power)
        ef_second = _half_ef(second_half, used_power)

    if ef_first is None or ef_second is None:
        return None

    decoupling_percent = round_half_up((ef_first - ef_second) / ef_first * 100, 2)

    return DecouplingResult(
        decoupling_percent=decoupling_percent,
        ef_first_half=round_half_up(ef_first, 3),
        ef_second_half=round_half_up(ef_second, 3),
        rating=rate_decoupling(decoupling_percent),
        used_power=used_power,
    )


class AerobicService:
    """Efficiency Factor and aerobic decoupling calculations."""

    MIN_SAMPLES = 20
    MIN_VALID_SAMPLES_PER_HALF = 10

    # EF trend
    MIN_TREND_MOVING_TIME = 1800  # 30 minutes
    MIN_TREND_POINTS = 6
    TREND_THRESHOLD_PERCENT = 3

    EF_SPORTS = (SportType.BIKE, SportType.RUN)

    def _ef_sport(self, sport_type: Union[SportType, str]) -> SportType:
        try:
            sport = SportType(sport_type)
        except ValueError:
            sport = None
        if sport not in self.EF_SPORTS:
            raise InvalidInputError("Sport must be one of BIKE, RUN")
        return sport

    def calculate_efficiency_factor(
        self,
        output: float,
        avg_hr: float,
        sport_type: Union[SportType, str],
    ) -> float:
        """
        Calculate Efficiency Factor (EF).

        Bike: NP / avg HR (typically 1.0-2.0 for trained cyclists)
        Run: (speed m/s x 60) / avg HR, i.e. m/min per bpm

        Args:
            output: Normalized power in watts (bike) or speed in m/s (run)
            avg_hr: Average heart rate in bpm
            sport_type: BIKE or RUN

        Returns:
            EF rounded to 3 decimals, or 0 when avg_hr is not positive.
            0 means undefined, not a measured efficiency.
        """
        sport = self._ef_sport(sport_type)

        if avg_hr is None or avg_hr <= 0:
            return 0

        if sport == SportType.BIKE:
            return round_half_up(output / avg_hr, 3)
        return round_half_up((output * 60) / avg_hr, 3)

    def calculate_decoupling(
        self,
        db: Session,
        activity_id: int,
        use_power: bool = True,
    ) -> Optional[DecouplingResult]:
        """
        Calculate aerobic decoupling for a stored activity.

        Returns None when the samples cannot be loaded or there are not
        enough of them.
        """
        try:
            samples = repositories.list_samples(db, activity_id)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to load samples for activity {activity_id}: {e}")
            return None

        return decoupling_from_samples(samples, use_power)

    def _activity_ef(self, activity, sport: SportType) -> Optional[float]:
        """Stored EF, or EF computed from the activity summary."""
        if activity.efficiency_factor:
            return activity.efficiency_factor
        if not activity.avg_heart_rate:
            return None
        if sport == SportType.BIKE and activity.normalized_power:
            return self.calculate_efficiency_factor(
                activity.normalized_power, activity.avg_heart_rate, SportType.BIKE
            )
        if sport == SportType.RUN and activity.avg_speed:
            return self.calculate_efficiency_factor(
                activity.avg_speed, activity.avg_heart_rate, SportType.RUN
            )
        return None

    def _trend_points(self, activities: list, sport: SportType) -> Iterator[EFTrendPoint]:
        for activity in activities:
            ef = self._activity_ef(activity, sport)
            if ef and ef > 0:
                yield EFTrendPoint(
                    date=activity.start_date,
                    activity_id=activity.id,
                    activity_name=activity.name,
                    ef=ef,
                    duration=activity.moving_time,
                    distance=activity.distance or None,
                )

    def get_ef_trend(
        self,
        db: Session,
        user_id: int,
        sport_type: Union[SportType, str],
        days: int = 90,
        now: Optional[datetime] = None,
    ) -> EFTrendData:
        """
        Get the EF trend over time for a user.

        Considers activities of the sport inside the window that have an
        average heart rate and last at least 30 minutes. With six or more
        points, the mean of the first third is compared with the mean of the
        last third (third size is len // 3, so middle points may be left out
        of both groups).

        Args:
            db: Database session
            user_id: User to analyse
            sport_type: BIKE or RUN
            days: Window size in days
            now: Reference time (defaults to utcnow)

        Returns:
            EFTrendData; the zeroed stable default when nothing qualifies
        """
        sport = self._ef_sport(sport_type)
        if days <= 0:
            raise InvalidInputError("days must be positive")

        since = (now or datetime.utcnow()) - timedelta(days=days)

        try:
            activities = repositories.list_activities(
                db,
                user_id,
                sport_type=sport,
                since=since,
                min_moving_time=self.MIN_TREND_MOVING_TIME,
                require_heart_rate=True,
            )
        except SQLAlchemyError as e:
            logger.warning(f"Failed to load activities for EF trend (user {user_id}): {e}")
            return EFTrendData()

        points = list(self._trend_points(activities, sport))
        if not points:
            return EFTrendData()

        average_ef = sum(p.ef for p in points) / len(points)

        # max() keeps the first occurrence, so ties go to the earliest point
        best_ef = max(points, key=lambda p: p.ef)

        trend_direction = "stable"
        trend_percent = 0

        if len(points) >= self.MIN_TREND_POINTS:
            third = len(points) // 3
            first_avg = sum(p.ef for p in points[:third]) / third
            last_avg = sum(p.ef for p in points[-third:]) / third

            trend_percent = round_half_up((last_avg - first_avg) / first_avg * 100, 1)

            if trend_percent > self.TREND_THRESHOLD_PERCENT:
                trend_direction = "improving"
            elif trend_percent < -self.TREND_THRESHOLD_PERCENT:
                trend_direction = "declining"

        return EFTrendData(
            points=points,
            average_ef=round_half_up(average_ef, 3),
            trend_direction=trend_direction,
            trend_percent=trend_percent,
            best_ef=best_ef,
        )

    def calculate_and_store_ef(self, db: Session, activity_id: int) -> Optional[float]:
        """
        Calculate EF for an activity and cache it on the activity row.

        Returns:
            The EF, or None when the activity is missing, is not a bike or run,
            or lacks heart rate or output data
        """
        try:
            activity = repositories.get_activity(db, activity_id)
            if activity is None or not activity.avg_heart_rate:
                return None

            ef = None
            if activity.sport_type == SportType.BIKE and activity.normalized_power:
                ef = self.calculate_efficiency_factor(
                    activity.normalized_power, activity.avg_heart_rate, SportType.BIKE
                )
            elif activity.sport_type == SportType.RUN and activity.avg_speed:
                ef = self.calculate_efficiency_factor(
                    activity.avg_speed, activity.avg_heart_rate, SportType.RUN
                )

            if ef:
                repositories.update_activity_derived(db, activity_id, efficiency_factor=ef)
                db.commit()
                logger.info(f"Stored EF {ef} for activity {activity_id}")

            return ef or None
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Failed to calculate and store EF for activity {activity_id}: {e}")
            return None

    def calculate_and_store_decoupling(self, db: Session, activity_id: int) -> Optional[float]:
        """
        Calculate decoupling for an activity and cache the percentage.

        The value is written to the activity and, when present, to its
        metrics row.
        """
        result = self.calculate_decoupling(db, activity_id)
        if result is None:
            return None

        try:
            repositories.update_activity_derived(
                db, activity_id, decoupling=result.decoupling_percent
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Failed to store decoupling for activity {activity_id}: {e}")
            return None

        logger.info(f"Stored decoupling {result.decoupling_percent}% for activity {activity_id}")
        return result.decoupling_percent


# Create a singleton instance for convenience
aerobic_service = AerobicService()
