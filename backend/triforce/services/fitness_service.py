"""Training load and Performance Management Chart service.

This service implements the standard multisport training load metrics:
- Training Stress Score (TSS) for bike, run, swim and heart rate
- Normalized Power (NP)
- Intensity Factor (IF)
- CTL (fitness), ATL (fatigue) and TSB (form), stored per day

The per-activity TSS functions are helpers for ingestion, which fills
Activity.tss before the PMC history is rebuilt. Normalized Power is also
computed when peak efforts are stored for a ride.
"""

import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from triforce import repositories
from triforce.exceptions import InvalidInputError
from triforce.models.activity import Activity
from triforce.models.fitness_metric import FitnessMetric
from triforce.services.formatting import round_half_up

logger = logging.getLogger(__name__)


class FitnessService:
    """Calculate training stress and fitness metrics."""

    # PMC time constants in days
    CTL_TIME_CONSTANT = 42
    ATL_TIME_CONSTANT = 7

    NP_WINDOW_SECONDS = 30

    # hrTSS exponential weighting
    HR_TSS_K = 1.67
    HR_TSS_B = 1.92
    HR_TSS_SCALE = 3.33
    HR_TSS_MAX_PER_HOUR = 150

    def calculate_normalized_power(self, power_data: list[Optional[float]]) -> int:
        """
        Calculate Normalized Power (NP) from a power stream.

        NP is the fourth root of the mean fourth power of the 30-second
        rolling average, so surges weigh more than steady riding.

        Args:
            power_data: 1 Hz power samples in watts; None counts as 0

        Returns:
            NP in whole watts, the plain mean for streams under 30 samples
        """
        if not power_data:
            return 0

        # Missing and negative readings count as zero watts
        cleaned_data = [p if p is not None and p >= 0 else 0 for p in power_data]

        if len(cleaned_data) < self.NP_WINDOW_SECONDS:
            return round_half_up(sum(cleaned_data) / len(cleaned_data))

        window_sum = sum(cleaned_data[:self.NP_WINDOW_SECONDS])
        rolling_averages = [window_sum / self.NP_WINDOW_SECONDS]
        for i in range(self.NP_WINDOW_SECONDS, len(cleaned_data)):
            window_sum += cleaned_data[i] - cleaned_data[i - self.NP_WINDOW_SECONDS]
            rolling_averages.append(window_sum / self.NP_WINDOW_SECONDS)

        avg_fourth_power = sum(avg ** 4 for avg in rolling_averages) / len(rolling_averages)

        return round_half_up(avg_fourth_power ** 0.25)

    def calculate_intensity_factor(self, normalized_power: float, ftp: float) -> float:
        """
        Calculate Intensity Factor (IF).

        IF = NP / FTP, rounded to 2 decimals.

        Raises:
            InvalidInputError: If FTP is zero or negative
        """
        if ftp is None or ftp <= 0:
            raise InvalidInputError("FTP must be a positive number")

        if normalized_power <= 0:
            return 0.0

        return round_half_up(normalized_power / ftp, 2)

    def calculate_bike_tss(
        self,
        duration_seconds: int,
        normalized_power: float,
        ftp: float
    ) -> float:
        """
        Calculate bike Training Stress Score (TSS).

        TSS = seconds x NP x IF / (FTP x 3600) x 100, so one hour at FTP is 100.

        Args:
            duration_seconds: Moving time in seconds
            normalized_power: NP in watts
            ftp: FTP in watts

        Returns:
            Training Stress Score rounded to one decimal

        Raises:
            InvalidInputError: If FTP is zero or negative
        """
        if ftp is None or ftp <= 0:
            raise InvalidInputError("FTP must be a positive number")

        if duration_seconds <= 0 or normalized_power <= 0:
            return 0.0

        intensity_factor = normalized_power / ftp
        tss = (duration_seconds * normalized_power * intensity_factor) / (ftp * 3600) * 100

        return round_half_up(tss, 1)

    def _if_squared_tss(self, duration_seconds: int, intensity_factor: float) -> float:
        if duration_seconds <= 0 or intensity_factor <= 0:
            return 0.0
        duration_hours = duration_seconds / 3600
        return round_half_up(duration_hours * intensity_factor ** 2 * 100, 1)

    def calculate_run_tss(self, duration_seconds: int, intensity_factor: float) -> float:
        """
        Calculate run TSS (rTSS).

        rTSS = duration_hours × IF² × 100, with IF = actual speed / threshold speed.
        """
        return self._if_squared_tss(duration_seconds, intensity_factor)

    def calculate_swim_tss(self, duration_seconds: int, intensity_factor: float) -> float:
        """Calculate swim TSS (sTSS); same shape as rTSS with IF relative to CSS."""
        return self._if_squared_tss(duration_seconds, intensity_factor)

    def calculate_hr_tss(self, duration_seconds: int, avg_hr: float, lthr: float) -> float:
        """
        Estimate TSS from heart rate when power or pace is not available.

        hrTSS = hours × 1.67 × e^(1.92 × avg_hr / lthr) × 3.33, capped at
        150 TSS per hour.

        Args:
            duration_seconds: Moving time in seconds
            avg_hr: Average heart rate in bpm
            lthr: Lactate threshold heart rate in bpm

        Returns:
            Estimated TSS rounded to one decimal

        Raises:
            InvalidInputError: If LTHR is zero or negative
        """
        if lthr is None or lthr <= 0:
            raise InvalidInputError("LTHR must be a positive number")

        if duration_seconds <= 0 or not avg_hr or avg_hr <= 0:
            return 0.0

        duration_hours = duration_seconds / 3600
        hr_tss = (
            duration_hours
            * self.HR_TSS_K
            * math.exp(self.HR_TSS_B * avg_hr / lthr)
            * self.HR_TSS_SCALE
        )

        return round_half_up(min(hr_tss, duration_hours * self.HR_TSS_MAX_PER_HOUR), 1)

    def calculate_ctl(
        self,
        tss_history: list[tuple[date, float]],
        target_date: date,
        initial_ctl: float = 0.0
    ) -> float:
        """
        CTL ("fitness") on ``target_date``.

        Daily update: ctl += (tss - ctl) / 42

        Args:
            tss_history: List of (date, tss) tuples
            target_date: Day to evaluate
            initial_ctl: CTL on the day before the first history entry

        Returns:
            CTL value rounded to one decimal
        """
        return self._calculate_ewma(tss_history, target_date, self.CTL_TIME_CONSTANT, initial_ctl)

    def calculate_atl(
        self,
        tss_history: list[tuple[date, float]],
        target_date: date,
        initial_atl: float = 0.0
    ) -> float:
        """
        ATL ("fatigue") on ``target_date``.

        Daily update: atl += (tss - atl) / 7
        """
        return self._calculate_ewma(tss_history, target_date, self.ATL_TIME_CONSTANT, initial_atl)

    def _calculate_ewma(
        self,
        tss_history: list[tuple[date, float]],
        target_date: date,
        time_constant: int,
        initial_value: float = 0.0
    ) -> float:
        """
        Walk day by day from the first history entry to ``target_date``.

        Days without an entry count as zero TSS. Entries after
        ``target_date`` are ignored.
        """
        if not tss_history:
            return round_half_up(initial_value, 1)

        tss_by_date: dict[date, float] = {}
        for day, tss in tss_history:
            tss_by_date[day] = tss_by_date.get(day, 0.0) + tss

        ewma = initial_value
        current_date = min(tss_by_date)

        while current_date <= target_date:
            daily_tss = tss_by_date.get(current_date, 0.0)
            ewma = ewma + (daily_tss - ewma) / time_constant
            current_date += timedelta(days=1)

        return round_half_up(ewma, 1)

    def calculate_tsb(self, ctl: float, atl: float) -> float:
        """
        TSB ("form") = CTL - ATL.

        Race-ready athletes usually sit between +15 and +25; a hard block
        pushes it to -10 or below.
        """
        return round_half_up(ctl - atl, 1)

    def calculate_fitness_history(
        self,
        db: Session,
        user_id: int,
        days: int = 90,
        end_date: Optional[date] = None
    ) -> list[FitnessMetric]:
        """
        Recalculate CTL/ATL/TSB for each day in the range and store them.

        Activities from an extra 42 days before the range are included so
        the moving averages are warmed up on the first returned day. One
        FitnessMetric row per day is created or updated.

        Args:
            db: Database session
            user_id: Athlete whose history is rebuilt
            days: Number of days to return, ending at ``end_date``
            end_date: Last day of the range (defaults to today)

        Returns:
            FitnessMetric rows ordered by date ascending

        Raises:
            InvalidInputError: If days is not positive
            SQLAlchemyError: If the rows could not be written
        """
        if days <= 0:
            raise InvalidInputError("days must be positive")

        end_date = end_date or date.today()
        result_start_date = end_date - timedelta(days=days - 1)
        history_start_date = result_start_date - timedelta(days=self.CTL_TIME_CONSTANT)

        activities = (
            db.query(Activity)
            .filter(
                and_(
                    Activity.user_id == user_id,
                    Activity.start_date >= datetime.combine(history_start_date, time.min),
                    Activity.start_date < datetime.combine(end_date + timedelta(days=1), time.min)
                )
            )
            .all()
        )

        # Daily TSS totals and activity counts
        daily_tss: dict[date, float] = {}
        daily_count: dict[date, int] = {}
        for activity in activities:
            activity_date = activity.start_date.date()
            daily_tss[activity_date] = daily_tss.get(activity_date, 0.0) + (activity.tss or 0.0)
            daily_count[activity_date] = daily_count.get(activity_date, 0) + 1

        existing_metrics = {
            m.date: m
            for m in db.query(FitnessMetric).filter(
                and_(
                    FitnessMetric.user_id == user_id,
                    FitnessMetric.date >= result_start_date,
                    FitnessMetric.date <= end_date
                )
            )
        }

        metrics_list: list[FitnessMetric] = []
        ctl = 0.0
        atl = 0.0
        current_date = history_start_date

        try:
            while current_date <= end_date:
                tss = daily_tss.get(current_date, 0.0)
                ctl = ctl + (tss - ctl) / self.CTL_TIME_CONSTANT
                atl = atl + (tss - atl) / self.ATL_TIME_CONSTANT

                if current_date >= result_start_date:
                    metric = existing_metrics.get(current_date)
                    if metric is None:
                        metric = FitnessMetric(user_id=user_id, date=current_date)
                        db.add(metric)

                    metric.daily_tss = round_half_up(tss, 1)
                    metric.activity_count = daily_count.get(current_date, 0)
                    metric.ctl = round_half_up(ctl, 1)
                    metric.atl = round_half_up(atl, 1)
                    metric.tsb = self.calculate_tsb(ctl, atl)
                    metrics_list.append(metric)

                current_date += timedelta(days=1)

            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to store fitness history for user {user_id}: {e}")
            raise

        logger.info(
            f"Recalculated {len(metrics_list)} days of fitness metrics for user {user_id} "
            f"from {len(activities)} activities"
        )
        return metrics_list

    def get_latest_metrics(
        self,
        db: Session,
        user_id: int
    ) -> Optional[FitnessMetric]:
        """
        Return the newest daily PMC row of a user.

        Returns:
            Latest FitnessMetric, or None if there are none or they could not
            be read
        """
        try:
            return repositories.get_latest_fitness_metric(db, user_id)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to load fitness metrics for user {user_id}: {e}")
            return None


# Create a singleton instance for convenience
fitness_service = FitnessService()
