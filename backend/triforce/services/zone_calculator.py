"""Training zone calculation service.

Builds heart rate, power, run pace and swim zone tables from a single
threshold value, buckets activity samples into zones, and estimates
thresholds from recent activity history.

Zone tables are never stored. Only the thresholds live on the athlete
profile and the tables are rebuilt on every call.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from triforce import repositories
from triforce.exceptions import InvalidInputError
from triforce.models.activity import SportType, WorkoutType
from triforce.services.formatting import pace_per_100m, pace_to_min_km, round_half_up

logger = logging.getLogger(__name__)


@dataclass
class ZoneDefinition:
    """One intensity band. ``min`` is inclusive, ``max`` exclusive."""
    zone: int
    name: str
    min: float
    max: float
    description: str


@dataclass
class TimeInZone:
    """Seconds and share of valid samples spent in one zone."""
    zone: int
    name: str
    seconds: int
    percentage: float


@dataclass
class ThresholdDetection:
    """Best-effort threshold estimate derived from activity history."""
    value: float
    confidence: float
    method: str
    based_on_activities: int
    suggested_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class UserZones:
    """All zone families for a user; a family is None without its threshold."""
    hr_zones: Optional[list[ZoneDefinition]] = None
    power_zones: Optional[list[ZoneDefinition]] = None
    pace_zones: Optional[list[ZoneDefinition]] = None
    swim_zones: Optional[list[ZoneDefinition]] = None


class ZoneCalculator:
    """Calculate training zones for heart rate, power, run pace and swimming."""

    # 7-zone heart rate model (Friel), fractions of LTHR
    HR_ZONE_BREAKPOINTS = (0.81, 0.89, 0.93, 0.99, 1.02, 1.06)
    HR_ZONE_CAP = 1.2
    HR_ZONES = (
        ("Recovery", "Active recovery, very easy effort"),
        ("Aerobic", "Endurance pace, conversational"),
        ("Tempo", "Moderate effort, steady state"),
        ("SubThreshold", "Hard effort, sustainable for 20-60 min"),
        ("SuperThreshold", "Very hard, threshold to VO2max"),
        ("VO2max", "Maximum aerobic capacity"),
        ("Anaerobic", "Maximum effort, very short duration"),
    )

    # 7-zone power model (Coggan), fractions of FTP
    POWER_ZONE_BREAKPOINTS = (0.55, 0.75, 0.90, 1.05, 1.20, 1.50)
    POWER_ZONE_CAP = 2.0
    POWER_ZONES = (
        ("Active Recovery", "Very easy spinning, recovery"),
        ("Endurance", "Long rides, base training"),
        ("Tempo", "Brisk pace, moderate effort"),
        ("Threshold", "FTP efforts, sustainable for 20-60 min"),
        ("VO2max", "3-8 minute intervals"),
        ("Anaerobic", "30s-3min efforts"),
        ("Neuromuscular", "Short sprints, max power"),
    )

    # 6-zone run pace model, fractions of threshold speed.
    # The third value is the representative speed shown in the description.
    PACE_ZONE_BOUNDS = (0.65, 0.75, 0.85, 0.92, 1.00, 1.10, 1.30)
    PACE_ZONES = (
        ("Recovery", "Easy recovery pace", 0.70),
        ("Aerobic", "Endurance pace", 0.80),
        ("Tempo", "Marathon to half-marathon pace", 0.88),
        ("Threshold", "Lactate threshold", 0.96),
        ("VO2max", "5K race pace", 1.05),
        ("Anaerobic", "Sprint intervals", 1.20),
    )

    # 5-zone swim model, fractions of CSS
    SWIM_ZONE_BOUNDS = (0.75, 0.85, 0.93, 1.00, 1.05, 1.20)
    SWIM_ZONES = (
        ("Recovery", "Easy swimming, drills", 0.80),
        ("Endurance", "Long distance, aerobic base", 0.89),
        ("Tempo", "Race pace effort", 0.96),
        ("Threshold", "CSS intervals", 1.02),
        ("VO2max", "Sprint work", 1.12),
    )

    METRIC_TYPES = ("heart_rate", "power", "speed")

    # Threshold detection
    MIN_DETECTION_MOVING_TIME = 1200  # 20 minutes
    FTP_FROM_20MIN_FACTOR = 0.95
    RUN_TEMPO_MIN_SECONDS = 1800
    RUN_TEMPO_MAX_SECONDS = 3600
    SWIM_TEST_MIN_DISTANCE = 400
    SWIM_TEST_MAX_DISTANCE = 1500

    @staticmethod
    def _contiguous_zones(
        bounds: list[float],
        names: Iterable[tuple[str, str]],
    ) -> list[ZoneDefinition]:
        return [
            ZoneDefinition(
                zone=index + 1,
                name=name,
                min=bounds[index],
                max=bounds[index + 1],
                description=description,
            )
            for index, (name, description) in enumerate(names)
        ]

    def calculate_hr_zones(self, lthr: float) -> list[ZoneDefinition]:
        """
        Calculate heart rate zones from lactate threshold heart rate.

        Zone 1: <81% LTHR (Recovery)
        Zone 2: 81-89% (Aerobic)
        Zone 3: 89-93% (Tempo)
        Zone 4: 93-99% (SubThreshold)
        Zone 5: 99-102% (SuperThreshold)
        Zone 6: 102-106% (VO2max)
        Zone 7: 106-120% (Anaerobic)

        Args:
            lthr: Lactate threshold heart rate in bpm

        Returns:
            Seven zones with integer bpm bounds

        Raises:
            InvalidInputError: If LTHR is not positive
        """
        if lthr is None or lthr <= 0:
            raise InvalidInputError("LTHR must be a positive number")

        bounds = [0]
        bounds += [round_half_up(lthr * pct) for pct in self.HR_ZONE_BREAKPOINTS]
        bounds.append(round_half_up(lthr * self.HR_ZONE_CAP))
        return self._contiguous_zones(bounds, self.HR_ZONES)

    def calculate_power_zones(self, ftp: float) -> list[ZoneDefinition]:
        """
        Calculate power zones from Functional Threshold Power.

        Zone 1: <55% FTP (Active Recovery)
        Zone 2: 55-75% (Endurance)
        Zone 3: 75-90% (Tempo)
        Zone 4: 90-105% (Threshold)
        Zone 5: 105-120% (VO2max)
        Zone 6: 120-150% (Anaerobic)
        Zone 7: 150-200% (Neuromuscular)

        Args:
            ftp: Functional Threshold Power in watts

        Returns:
            Seven zones with integer watt bounds

        Raises:
            InvalidInputError: If FTP is not positive
        """
        if ftp is None or ftp <= 0:
            raise InvalidInputError("FTP must be a positive number")

        bounds = [0]
        bounds += [round_half_up(ftp * pct) for pct in self.POWER_ZONE_BREAKPOINTS]
        bounds.append(round_half_up(ftp * self.POWER_ZONE_CAP))
        return self._contiguous_zones(bounds, self.POWER_ZONES)

    def calculate_pace_zones(self, threshold_pace: float) -> list[ZoneDefinition]:
        """
        Calculate run pace zones from threshold pace.

        Bounds are speeds in m/s, so a faster pace means a higher zone.

        Args:
            threshold_pace: Threshold pace as a speed in m/s

        Returns:
            Six zones with speed bounds rounded to 0.01 m/s

        Raises:
            InvalidInputError: If the threshold pace is not positive
        """
        if threshold_pace is None or threshold_pace <= 0:
            raise InvalidInputError("Threshold pace must be a positive number")

        bounds = [round_half_up(threshold_pace * pct, 2) for pct in self.PACE_ZONE_BOUNDS]
        names = [
            (name, f"{label} ({pace_to_min_km(threshold_pace * shown)}/km)")
            for name, label, shown in self.PACE_ZONES
        ]
        return self._contiguous_zones(bounds, names)

    def calculate_swim_zones(self, css: float) -> list[ZoneDefinition]:
        """
        Calculate swim zones from Critical Swim Speed.

        Args:
            css: Critical Swim Speed in m/s

        Returns:
            Five zones with speed bounds rounded to 0.01 m/s

        Raises:
            InvalidInputError: If CSS is not positive
        """
        if css is None or css <= 0:
            raise InvalidInputError("CSS must be a positive number")

        bounds = [round_half_up(css * pct, 2) for pct in self.SWIM_ZONE_BOUNDS]
        names = [
            (name, f"{label} ({pace_per_100m(css * shown)}/100m)")
            for name, label, shown in self.SWIM_ZONES
        ]
        return self._contiguous_zones(bounds, names)

    @staticmethod
    def _sample_value(record: Any, metric_type: str) -> Optional[float]:
        if isinstance(record, dict):
            return record.get(metric_type)
        return getattr(record, metric_type, None)

    def calculate_time_in_zones(
        self,
        records: Iterable[Any],
        zones: list[ZoneDefinition],
        metric_type: str,
    ) -> list[TimeInZone]:
        """
        Calculate time spent in each zone from activity samples.

        Every sample with a positive value counts as one second, which assumes
        1 Hz recording. Samples without a positive value are left out of both
        the zone counts and the total. Values at or above the top zone's max
        are counted in the top zone.

        Args:
            records: Samples as ORM rows or dicts with heart_rate/power/speed
            zones: Zone table to bucket into
            metric_type: "heart_rate", "power" or "speed"

        Returns:
            Seconds and percentage (one decimal) per zone
        """
        if metric_type not in self.METRIC_TYPES:
            raise InvalidInputError(
                f"metric_type must be one of {', '.join(self.METRIC_TYPES)}"
            )

        zone_counts = [0] * len(zones)
        valid_records = 0

        for record in records:
            value = self._sample_value(record, metric_type)
            if value is None or value <= 0:
                continue

            valid_records += 1
            last = len(zones) - 1
            for index, zone in enumerate(zones):
                if zone.min <= value < zone.max:
                    zone_counts[index] += 1
                    break
                if index == last and value >= zone.max:
                    zone_counts[index] += 1

        return [
            TimeInZone(
                zone=zone.zone,
                name=zone.name,
                seconds=zone_counts[index],
                percentage=(
                    round_half_up(zone_counts[index] / valid_records * 100, 1)
                    if valid_records > 0
                    else 0.0
                ),
            )
            for index, zone in enumerate(zones)
        ]

    def get_activity_time_in_zones(
        self,
        db: Session,
        activity_id: int,
        zones: list[ZoneDefinition],
        metric_type: str,
    ) -> Optional[list[TimeInZone]]:
        """
        Bucket the stored samples of an activity into zones.

        Returns None when the samples cannot be loaded.
        """
        try:
            samples = repositories.list_samples(db, activity_id)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to load samples for time in zones (activity {activity_id}): {e}")
            return None

        return self.calculate_time_in_zones(samples, zones, metric_type)

    def detect_threshold(
        self,
        db: Session,
        user_id: int,
        sport_type: Union[SportType, str],
        lookback_days: int = 90,
        now: Optional[datetime] = None,
    ) -> Optional[ThresholdDetection]:
        """
        Estimate a threshold from recent activities.

        This is a heuristic, not a fitted model:
        - BIKE: 95% of the best stored 20-minute power, falling back to the
          best normalized power.
        - RUN: best average speed among tempo/time-trial sessions or 30-60
          minute efforts.
        - SWIM: best average speed among 400-1500m swims.

        Only activities of at least 20 minutes inside the lookback window are
        considered.

        Args:
            db: Database session
            user_id: User to analyse
            sport_type: BIKE, RUN or SWIM
            lookback_days: Size of the history window in days
            now: Reference time (defaults to utcnow)

        Returns:
            ThresholdDetection, or None when no activity qualifies
        """
        sport = _coerce_sport(sport_type, (SportType.BIKE, SportType.RUN, SportType.SWIM))
        if lookback_days <= 0:
            raise InvalidInputError("lookback_days must be positive")

        since = (now or datetime.utcnow()) - timedelta(days=lookback_days)

        try:
            activities = repositories.list_activities(
                db,
                user_id,
                sport_type=sport,
                since=since,
                min_moving_time=self.MIN_DETECTION_MOVING_TIME,
                descending=True,
                with_metrics=sport == SportType.BIKE,
            )
        except SQLAlchemyError as e:
            logger.warning(f"Failed to load activities for threshold detection (user {user_id}): {e}")
            return None

        if not activities:
            logger.debug(f"No {sport.value} activities for threshold detection (user {user_id})")
            return None

        if sport == SportType.BIKE:
            return self._detect_ftp(activities)
        if sport == SportType.RUN:
            return self._detect_run_threshold(activities)
        return self._detect_swim_threshold(activities)

    def _detect_ftp(self, activities: list) -> Optional[ThresholdDetection]:
        best_20min = 0.0
        for activity in activities:
            peak = activity.metrics.peak_20min if activity.metrics else None
            if peak and peak > best_20min:
                best_20min = peak

        if best_20min == 0:
            powers = [a.normalized_power for a in activities if a.normalized_power]
            if powers:
                best_20min = max(powers)

        if best_20min == 0:
            return None

        return ThresholdDetection(
            value=round_half_up(best_20min * self.FTP_FROM_20MIN_FACTOR),
            confidence=0.8 if len(activities) >= 5 else 0.6,
            method="Best 20-min power x 0.95",
            based_on_activities=len(activities),
        )

    def _detect_run_threshold(self, activities: list) -> Optional[ThresholdDetection]:
        tempo_activities = [
            a for a in activities
            if a.workout_type in (WorkoutType.TEMPO, WorkoutType.TIME_TRIAL)
            or self.RUN_TEMPO_MIN_SECONDS <= a.moving_time <= self.RUN_TEMPO_MAX_SECONDS
        ]
        if not tempo_activities:
            return None

        best_speed = max((a.avg_speed or 0 for a in tempo_activities), default=0)
        if best_speed <= 0:
            return None

        return ThresholdDetection(
            value=round_half_up(best_speed, 2),
            confidence=0.75 if len(tempo_activities) >= 3 else 0.5,
            method="Best average pace from tempo efforts",
            based_on_activities=len(tempo_activities),
        )

    def _detect_swim_threshold(self, activities: list) -> Optional[ThresholdDetection]:
        swims = [
            a for a in activities
            if a.distance and self.SWIM_TEST_MIN_DISTANCE <= a.distance <= self.SWIM_TEST_MAX_DISTANCE
        ]
        if not swims:
            return None

        best_speed = max((a.avg_speed or 0 for a in swims), default=0)
        if best_speed <= 0:
            return None

        return ThresholdDetection(
            value=round_half_up(best_speed, 2),
            confidence=0.6,
            method="Best average pace from 400-1500m swims",
            based_on_activities=len(swims),
        )

    def get_user_zones(self, db: Session, user_id: int) -> UserZones:
        """
        Get every zone family for a user from their stored thresholds.

        Never raises: a missing profile or a database error yields all-null
        zones.
        """
        try:
            profile = repositories.get_profile(db, user_id)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to load athlete profile for user {user_id}: {e}")
            return UserZones()

        if profile is None:
            return UserZones()

        return UserZones(
            hr_zones=self.calculate_hr_zones(profile.lthr) if _positive(profile.lthr) else None,
            power_zones=self.calculate_power_zones(profile.ftp) if _positive(profile.ftp) else None,
            pace_zones=(
                self.calculate_pace_zones(profile.threshold_pace)
                if _positive(profile.threshold_pace)
                else None
            ),
            swim_zones=self.calculate_swim_zones(profile.css) if _positive(profile.css) else None,
        )


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


def _coerce_sport(sport_type: Union[SportType, str], allowed: tuple) -> SportType:
    """Normalise a sport argument and check it is one of ``allowed``."""
    try:
        sport = SportType(sport_type)
    except ValueError:
        sport = None
    if sport not in allowed:
        names = ", ".join(s.value for s in allowed)
        raise InvalidInputError(f"Sport must be one of {names}")
    return sport


# Create a singleton instance for convenience
zone_calculator = ZoneCalculator()
