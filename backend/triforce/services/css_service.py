"""Critical Swim Speed (CSS) service.

CSS is the slope of the distance-time line through a 200m and a 400m time
trial. From it the service derives swim zones, training paces and race time
predictions, and it can estimate CSS from recent swim history when no test
results are available.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from triforce import repositories
from triforce.exceptions import InvalidInputError
from triforce.models.activity import SportType
from triforce.services import formatting
from triforce.services.formatting import format_duration, round_half_up

logger = logging.getLogger(__name__)


@dataclass
class CSSResult:
    css: float  # m/s
    css_pace_100m: float  # seconds per 100m
    css_pace_formatted: str
    estimated_t750: int  # seconds
    estimated_t1500: int  # seconds


@dataclass
class CSSEstimate:
    css: float
    css_pace_100m: float
    css_pace_formatted: str
    confidence: float
    based_on: str
    swim_count: int


@dataclass
class SwimZone:
    """
    Swim zone with speed bounds and the matching pace strings.

    ``pace_min`` is the faster (smaller) pace and corresponds to ``max``;
    ``pace_max`` is the slower pace and corresponds to ``min``.
    """
    zone: int
    name: str
    min: float
    max: float
    description: str
    pace_min: str
    pace_max: str


@dataclass
class TrainingPace:
    speed: float
    pace: str


@dataclass
class RacePrediction:
    time: int
    formatted: str


class CSSService:
    """Critical Swim Speed calculations and swim zone management."""

    SHORT_TRIAL_DISTANCE = 200
    LONG_TRIAL_DISTANCE = 400

    # Pacing losses over longer single efforts
    T750_FACTOR = 1.02
    T1500_FACTOR = 1.03

    # History estimate
    HISTORY_DAYS = 90
    HISTORY_MIN_DISTANCE = 400
    HISTORY_MAX_DISTANCE = 1500
    HISTORY_LIMIT = 10
    CSS_TO_BEST_PACE = 0.93

    SWIM_ZONE_BOUNDS = (0.75, 0.85, 0.93, 1.00, 1.05, 1.20)
    SWIM_ZONES = (
        ("Recovery", "Easy swimming, drills, warmup/cooldown"),
        ("Endurance", "Aerobic base, long distance sets"),
        ("Tempo", "Tempo efforts, race pace simulation"),
        ("Threshold", "CSS intervals, threshold training"),
        ("VO2max", "High intensity, sprint work"),
    )

    TRAINING_PACES = (
        ("recovery", 0.80),
        ("endurance", 0.88),
        ("tempo", 0.95),
        ("threshold", 1.0),
        ("interval", 1.05),
        ("sprint", 1.15),
    )

    # Shorter races are swum faster than CSS, longer ones slower
    RACE_DISTANCES = (
        ("t400", 400, 1.03),
        ("t750", 750, 1.0),
        ("t1500", 1500, 0.98),
        ("t1900", 1900, 0.97),
        ("t3800", 3800, 0.95),
    )

    def format_pace(self, total_seconds: float) -> str:
        """Format seconds to a pace string (e.g. 105 -> "1:45")."""
        return formatting.format_pace(total_seconds)

    def parse_pace(self, pace: str) -> int:
        """Parse a pace string to seconds (e.g. "1:45" -> 105)."""
        return formatting.parse_pace(pace)

    def calculate_css(self, t400_seconds: float, t200_seconds: float) -> CSSResult:
        """
        Calculate CSS from 400m and 200m time trials.

        CSS = (D2 - D1) / (T2 - T1) with D2 = 400m and D1 = 200m.

        Args:
            t400_seconds: 400m time in seconds
            t200_seconds: 200m time in seconds

        Returns:
            CSSResult with CSS, pace per 100m and 750m/1500m estimates

        Raises:
            InvalidInputError: If a time is not positive or the 400m time is
                not greater than the 200m time
        """
        if t400_seconds <= 0 or t200_seconds <= 0:
            raise InvalidInputError("Times must be positive numbers")

        if t400_seconds <= t200_seconds:
            raise InvalidInputError("400m time must be greater than 200m time")

        css = (self.LONG_TRIAL_DISTANCE - self.SHORT_TRIAL_DISTANCE) / (t400_seconds - t200_seconds)
        css_pace_100m = 100 / css

        return CSSResult(
            css=round_half_up(css, 3),
            css_pace_100m=round_half_up(css_pace_100m, 1),
            css_pace_formatted=self.format_pace(css_pace_100m),
            estimated_t750=round_half_up(750 / css * self.T750_FACTOR),
            estimated_t1500=round_half_up(1500 / css * self.T1500_FACTOR),
        )

    def estimate_css_from_history(
        self,
        db: Session,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Optional[CSSEstimate]:
        """
        Estimate CSS from the user's recent 400-1500m swims.

        CSS is typically 90-95% of the best pace over these distances; 93% is
        used. With three or more swims the top three speeds are averaged.

        Confidence: 0.5 for one or two swims, 0.6 for three or four, 0.7 for
        five or more.

        Returns:
            CSSEstimate, or None when there is no qualifying swim
        """
        since = (now or datetime.utcnow()) - timedelta(days=self.HISTORY_DAYS)

        try:
            swims = repositories.list_activities(
                db,
                user_id,
                sport_type=SportType.SWIM,
                since=since,
                min_distance=self.HISTORY_MIN_DISTANCE,
                max_distance=self.HISTORY_MAX_DISTANCE,
                require_speed=True,
                order_by_speed=True,
                descending=True,
                limit=self.HISTORY_LIMIT,
            )
        except SQLAlchemyError as e:
            logger.warning(f"Failed to load swims for CSS estimate (user {user_id}): {e}")
            return None

        if not swims:
            logger.debug(f"No swims to estimate CSS from (user {user_id})")
            return None

        swim_count = len(swims)
        if swim_count >= 3:
            top_speeds = [s.avg_speed for s in swims[:3]]
            best_speed = sum(top_speeds) / len(top_speeds)
        else:
            best_speed = swims[0].avg_speed

        confidence = 0.5
        based_on = "single swim"
        if swim_count >= 5:
            confidence = 0.7
            based_on = f"{swim_count} swims"
        elif swim_count >= 3:
            confidence = 0.6
            based_on = f"{swim_count} swims"

        css = best_speed * self.CSS_TO_BEST_PACE
        css_pace_100m = 100 / css

        return CSSEstimate(
            css=round_half_up(css, 3),
            css_pace_100m=round_half_up(css_pace_100m, 1),
            css_pace_formatted=self.format_pace(css_pace_100m),
            confidence=confidence,
            based_on=based_on,
            swim_count=swim_count,
        )

    def calculate_swim_zones(self, css_pace_100m: float) -> list[SwimZone]:
        """
        Calculate swim zones from a CSS pace.

        Zones are expressed as speeds (m/s) and ascend with speed, so the
        faster pace string of each zone comes from its upper speed bound.

        Args:
            css_pace_100m: CSS pace in seconds per 100m

        Returns:
            Five zones with speed bounds and formatted pace range

        Raises:
            InvalidInputError: If the pace is not positive
        """
        if css_pace_100m is None or css_pace_100m <= 0:
            raise InvalidInputError("CSS pace must be a positive number")

        css = 100 / css_pace_100m
        bounds = self.SWIM_ZONE_BOUNDS

        zones = []
        for index, (name, description) in enumerate(self.SWIM_ZONES):
            lower, upper = bounds[index], bounds[index + 1]
            zones.append(
                SwimZone(
                    zone=index + 1,
                    name=name,
                    min=round_half_up(css * lower, 2),
                    max=round_half_up(css * upper, 2),
                    description=description,
                    pace_min=self.format_pace(100 / (css * upper)),
                    pace_max=self.format_pace(100 / (css * lower)),
                )
            )
        return zones

    def get_training_paces(self, css: float) -> dict[str, TrainingPace]:
        """Training speeds and paces per 100m for six named efforts."""
        if css is None or css <= 0:
            raise InvalidInputError("CSS must be a positive number")

        return {
            name: TrainingPace(
                speed=round_half_up(css * factor, 3),
                pace=self.format_pace(100 / (css * factor)),
            )
            for name, factor in self.TRAINING_PACES
        }

    def predict_race_times(self, css: float) -> dict[str, RacePrediction]:
        """Predict 400m to 3800m race times from CSS."""
        if css is None or css <= 0:
            raise InvalidInputError("CSS must be a positive number")

        predictions = {}
        for key, distance, factor in self.RACE_DISTANCES:
            seconds = distance / (css * factor)
            predictions[key] = RacePrediction(
                time=round_half_up(seconds),
                formatted=format_duration(seconds),
            )
        return predictions

    def update_user_css(self, db: Session, user_id: int, css: float) -> None:
        """
        Store a CSS value on the user's athlete profile.

        Persistence failures are rolled back and re-raised.

        Raises:
            InvalidInputError: If CSS is not positive
            SQLAlchemyError: If the profile could not be written
        """
        if css is None or css <= 0:
            raise InvalidInputError("CSS must be a positive number")

        try:
            repositories.upsert_profile(db, user_id, css=css, updated_at=datetime.utcnow())
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to update CSS for user {user_id}: {e}")
            raise

        logger.info(f"Updated CSS for user {user_id}: {css} m/s")


# Create a singleton instance for convenience
css_service = CSSService()
