"""Fitness forecast service.

Projects CTL/ATL/TSB forward from planned training load using the
exponential form of the PMC update:

    ctl = ctl * e^(-1/42) + tss * (1 - e^(-1/42))
    atl = atl * e^(-1/7)  + tss * (1 - e^(-1/7))
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from triforce import repositories
from triforce.exceptions import InvalidInputError
from triforce.models.training_plan import WeekType
from triforce.services.formatting import round_half_up

logger = logging.getLogger(__name__)


@dataclass
class PlannedWeek:
    week_start: date
    target_tss: float
    week_type: str = "build"  # build, recovery, peak or taper


@dataclass
class ForecastPoint:
    date: date
    projected_ctl: float
    projected_atl: float
    projected_tsb: float
    source: str  # planned, estimated or decay


@dataclass
class RequiredTSSResult:
    weekly_tss: list[int]
    average_ramp_rate: float
    achievable: bool
    warnings: list[str] = field(default_factory=list)


@dataclass
class TaperDay:
    date: date
    suggested_tss: int


@dataclass
class TaperSimulation:
    taper_plan: list[TaperDay]
    projected_tsb_on_race_day: float
    target_tsb: float


class ForecastService:
    """Project future fitness from planned or hypothetical training load."""

    # PMC time constants (days)
    CTL_DAYS = 42
    ATL_DAYS = 7

    DEFAULT_LOAD = 50
    DECAY_DAYS = 28

    # Ramp rate in CTL points per week
    MAX_RAMP_RATE = 6
    HIGH_RISK_RAMP_RATE = 8
    RAMP_REALISATION = 0.8
    RECOVERY_WEEK_EVERY = 4
    RECOVERY_WEEK_LOAD = 0.65

    MIN_TAPER_DAYS = 7
    # (days remaining upper bound, fraction of current CTL as daily TSS)
    TAPER_STEPS = ((3, 0.3), (7, 0.5), (14, 0.7))

    def __init__(self):
        self.ctl_decay = math.exp(-1 / self.CTL_DAYS)
        self.atl_decay = math.exp(-1 / self.ATL_DAYS)

    def _step(self, ctl: float, atl: float, daily_tss: float) -> tuple[float, float]:
        ctl = ctl * self.ctl_decay + daily_tss * (1 - self.ctl_decay)
        atl = atl * self.atl_decay + daily_tss * (1 - self.atl_decay)
        return ctl, atl

    @staticmethod
    def _point(day: date, ctl: float, atl: float, source: str) -> ForecastPoint:
        return ForecastPoint(
            date=day,
            projected_ctl=round_half_up(ctl, 1),
            projected_atl=round_half_up(atl, 1),
            projected_tsb=round_half_up(ctl - atl, 1),
            source=source,
        )

    def forecast_fitness(
        self,
        current_ctl: float,
        current_atl: float,
        planned_weeks: Iterable[PlannedWeek],
    ) -> list[ForecastPoint]:
        """
        Project CTL/ATL/TSB through planned weeks.

        Each week's target TSS is spread evenly over its seven days.

        Returns:
            One point per planned day, source "planned"
        """
        forecast = []
        ctl, atl = current_ctl, current_atl

        for week in planned_weeks:
            daily_tss = (week.target_tss or 0) / 7
            for day in range(7):
                ctl, atl = self._step(ctl, atl, daily_tss)
                forecast.append(
                    self._point(week.week_start + timedelta(days=day), ctl, atl, "planned")
                )

        return forecast

    def project_decay(
        self,
        current_ctl: float,
        current_atl: float,
        days: int,
        start_date: Optional[date] = None,
    ) -> list[ForecastPoint]:
        """Project CTL/ATL with no training for ``days`` days after ``start_date``."""
        start_date = start_date or date.today()
        forecast = []
        ctl, atl = current_ctl, current_atl

        for day in range(1, days + 1):
            ctl *= self.ctl_decay
            atl *= self.atl_decay
            forecast.append(self._point(start_date + timedelta(days=day), ctl, atl, "decay"))

        return forecast

    def calculate_required_tss(
        self,
        current_ctl: float,
        target_ctl: float,
        weeks_to_race: int,
    ) -> RequiredTSSResult:
        """
        Calculate the weekly TSS needed to reach a target CTL by race day.

        Every fourth week is a recovery week at 65% of the current load.
        Build weeks ramp by at most 6 CTL points, and only about 80% of the
        planned ramp is assumed to be realised.

        Args:
            current_ctl: CTL today
            target_ctl: CTL wanted on race day
            weeks_to_race: Weeks available

        Returns:
            RequiredTSSResult with per-week TSS and ramp warnings

        Raises:
            InvalidInputError: If weeks_to_race is not positive
        """
        if weeks_to_race is None or weeks_to_race <= 0:
            raise InvalidInputError("weeks_to_race must be positive")

        average_ramp_rate = (target_ctl - current_ctl) / weeks_to_race

        warnings = []
        if average_ramp_rate > self.MAX_RAMP_RATE:
            warnings.append(
                f"Required ramp rate ({round_half_up(average_ramp_rate, 1):.1f} CTL/week) "
                f"exceeds recommended maximum ({self.MAX_RAMP_RATE} CTL/week)"
            )
        if average_ramp_rate > self.HIGH_RISK_RAMP_RATE:
            warnings.append("High injury risk at this ramp rate. Consider extending your timeline.")

        weekly_tss = []
        projected_ctl = current_ctl

        for week in range(weeks_to_race):
            if (week + 1) % self.RECOVERY_WEEK_EVERY == 0:
                weekly_tss.append(round_half_up(projected_ctl * 7 * self.RECOVERY_WEEK_LOAD))
                continue

            weeks_remaining = weeks_to_race - week
            target_ramp = min((target_ctl - projected_ctl) / weeks_remaining, self.MAX_RAMP_RATE)
            weekly_tss.append(round_half_up((projected_ctl + target_ramp) * 7))
            projected_ctl += target_ramp * self.RAMP_REALISATION

        return RequiredTSSResult(
            weekly_tss=weekly_tss,
            average_ramp_rate=round_half_up(average_ramp_rate, 1),
            achievable=average_ramp_rate <= self.MAX_RAMP_RATE,
            warnings=warnings,
        )

    def _current_load(self, db: Session, user_id: int) -> Optional[tuple[float, float]]:
        """Latest CTL/ATL, defaulting missing or zero values to 50."""
        try:
            metric = repositories.get_latest_fitness_metric(db, user_id)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to load fitness metrics for user {user_id}: {e}")
            return None

        if metric is None:
            logger.debug(f"No fitness metrics to forecast from (user {user_id})")
            return None

        return metric.ctl or self.DEFAULT_LOAD, metric.atl or self.DEFAULT_LOAD

    def get_forecast_from_plan(
        self,
        db: Session,
        user_id: int,
        today: Optional[date] = None,
    ) -> list[ForecastPoint]:
        """
        Forecast from the user's active training plan.

        Without an active plan (or one with no weeks) the current load is
        projected with 28 days of decay. Without fitness data the forecast
        is empty.
        """
        load = self._current_load(db, user_id)
        if load is None:
            return []
        current_ctl, current_atl = load

        try:
            plan = repositories.get_active_plan(db, user_id)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to load active plan for user {user_id}: {e}")
            plan = None

        if plan is None or not plan.weeks:
            return self.project_decay(current_ctl, current_atl, self.DECAY_DAYS, today)

        planned_weeks = [
            PlannedWeek(
                week_start=week.start_date.date(),
                target_tss=week.target_tss or 0,
                week_type="recovery" if week.week_type == WeekType.RECOVERY else "build",
            )
            for week in plan.weeks
        ]
        return self.forecast_fitness(current_ctl, current_atl, planned_weeks)

    def _taper_fraction(self, days_remaining: int) -> float:
        for limit, fraction in self.TAPER_STEPS:
            if days_remaining <= limit:
                return fraction
        return 1.0

    def simulate_taper(
        self,
        db: Session,
        user_id: int,
        race_date: date,
        target_tsb: float = 15,
        today: Optional[date] = None,
    ) -> Optional[TaperSimulation]:
        """
        Simulate a progressive taper into a race.

        Daily TSS is 100% of current CTL until two weeks out, then 70%, 50% in
        the final week and 30% in the last three days. Typical race-day TSB
        is +10 to +25.

        Returns:
            TaperSimulation, or None when the user has no fitness data

        Raises:
            InvalidInputError: If the race is less than 7 days away
        """
        today = today or date.today()
        days_to_race = (race_date - today).days

        if days_to_race < self.MIN_TAPER_DAYS:
            raise InvalidInputError("Need at least 7 days to race for taper planning")

        load = self._current_load(db, user_id)
        if load is None:
            return None
        current_ctl, current_atl = load

        taper_plan = []
        ctl, atl = current_ctl, current_atl

        for day in range(1, days_to_race + 1):
            daily_tss = round_half_up(current_ctl * self._taper_fraction(days_to_race - day))
            taper_plan.append(TaperDay(date=today + timedelta(days=day), suggested_tss=daily_tss))
            ctl, atl = self._step(ctl, atl, daily_tss)

        return TaperSimulation(
            taper_plan=taper_plan,
            projected_tsb_on_race_day=round_half_up(ctl - atl, 1),
            target_tsb=target_tsb,
        )

    def project_with_modifications(
        self,
        db: Session,
        user_id: int,
        modifications: Iterable[Any],
        days_ahead: int = 30,
        today: Optional[date] = None,
    ) -> list[ForecastPoint]:
        """
        Project fitness with per-day TSS overrides.

        Days with an override are "planned"; every other day assumes a load
        equal to the current CTL and is "estimated".

        Args:
            db: Database session
            user_id: User to project for
            modifications: Items with ``date`` and ``tss`` (objects or dicts)
            days_ahead: Number of days to project
            today: Reference day (defaults to today)

        Returns:
            One point per day, or an empty list without fitness data
        """
        if days_ahead <= 0:
            raise InvalidInputError("days_ahead must be positive")

        load = self._current_load(db, user_id)
        if load is None:
            return []
        current_ctl, current_atl = load

        overrides = {}
        for modification in modifications:
            if isinstance(modification, dict):
                overrides[modification["date"]] = modification["tss"]
            else:
                overrides[modification.date] = modification.tss

        today = today or date.today()
        estimated_tss = round_half_up(current_ctl)
        forecast = []
        ctl, atl = current_ctl, current_atl

        for day in range(1, days_ahead + 1):
            current = today + timedelta(days=day)
            if current in overrides:
                daily_tss, source = overrides[current], "planned"
            else:
                daily_tss, source = estimated_tss, "estimated"

            ctl, atl = self._step(ctl, atl, daily_tss)
            forecast.append(self._point(current, ctl, atl, source))

        return forecast


# Create a singleton instance for convenience
forecast_service = ForecastService()
