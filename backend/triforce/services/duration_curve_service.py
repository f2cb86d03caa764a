"""Power and pace duration curves.

A duration curve holds the best average output held for each standard
duration inside a window of days:
- Power curve: bike watts, with phenotype and FTP estimate derived from it
- Pace curve: run speed in m/s
- Peak efforts per activity are stored on ActivityMetrics so curves can be
  built without re-reading every sample
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from triforce import repositories
from triforce.models.activity import SportType
from triforce.services.fitness_service import fitness_service
from triforce.services.formatting import round_half_up

logger = logging.getLogger(__name__)


# Durations in seconds
STANDARD_DURATIONS = (5, 10, 15, 30, 60, 120, 180, 300, 600, 1200, 1800, 3600, 5400, 7200)
RUN_DURATIONS = (5, 30, 60, 180, 300, 600, 1200, 1800, 3600)

DURATION_LABELS = {
    5: "5s",
    10: "10s",
    15: "15s",
    30: "30s",
    60: "1min",
    120: "2min",
    180: "3min",
    300: "5min",
    600: "10min",
    1200: "20min",
    1800: "30min",
    3600: "60min",
    5400: "90min",
    7200: "120min",
}

# ActivityMetrics columns holding stored peaks, by duration
POWER_PEAK_FIELDS = {
    5: "peak_5s",
    30: "peak_30s",
    60: "peak_1min",
    300: "peak_5min",
    1200: "peak_20min",
    3600: "peak_60min",
}
PACE_PEAK_FIELDS = {
    5: "pace_peak_5s",
    60: "pace_peak_1min",
    300: "pace_peak_5min",
    1200: "pace_peak_20min",
}


@dataclass
class CurvePoint:
    """Best average value for one duration."""
    duration: int
    label: str
    value: float
    activity_id: Optional[int] = None
    achieved_at: Optional[datetime] = None


@dataclass
class DurationCurve:
    curve_type: str
    period_days: int
    points: list[CurvePoint] = field(default_factory=list)
    activity_count: int = 0


@dataclass
class PhenotypeAnalysis:
    """Rider type read off the shape of the power curve."""
    phenotype: str
    description: str
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    sprint_score: int = 0
    sustained_score: int = 0


@dataclass
class CurveComparison:
    duration: int
    label: str
    current: float
    previous: float
    change: float  # percent


def _duration_label(duration: int) -> str:
    return DURATION_LABELS.get(duration, f"{duration}s")


def _sample_value(sample: Any, name: str) -> float:
    if isinstance(sample, dict):
        value = sample.get(name)
    else:
        value = getattr(sample, name, None)
    return value or 0


class DurationCurveService:
    """Build duration curves and analyse them."""

    # Activities whose samples are scanned for durations without stored peaks
    MAX_SCANNED_ACTIVITIES = 20

    # FTP estimates from shorter efforts
    FTP_FROM_20MIN_FACTOR = 0.95
    FTP_FROM_8MIN_FACTOR = 0.9
    FTP_FROM_5MIN_FACTOR = 0.85

    MIN_PHENOTYPE_POINTS = 4

    def calculate_peak_for_duration(
        self,
        data: Sequence[Optional[float]],
        duration_seconds: int,
    ) -> float:
        """
        Best average over any contiguous window of ``duration_seconds``.

        Missing values count as 0. Returns 0 when the stream is shorter than
        the duration or the duration is not positive.
        """
        if duration_seconds <= 0 or len(data) < duration_seconds:
            return 0

        values = [value or 0 for value in data]

        window_sum = sum(values[:duration_seconds])
        best = window_sum / duration_seconds
        for i in range(duration_seconds, len(values)):
            window_sum += values[i] - values[i - duration_seconds]
            best = max(best, window_sum / duration_seconds)

        return best

    def _build_curve(
        self,
        db: Session,
        user_id: int,
        days: int,
        now: Optional[datetime],
        sport: SportType,
        durations: tuple,
        peak_fields: dict,
        signal: str,
        digits: int,
        curve_type: str,
    ) -> DurationCurve:
        since = (now or datetime.utcnow()) - timedelta(days=days)
        peaks: dict[int, tuple[float, Any]] = {}

        try:
            activities = repositories.list_activities(
                db,
                user_id,
                sport_type=sport,
                since=since,
                descending=True,
                with_metrics=True,
            )

            for activity in activities:
                if activity.metrics is None:
                    continue
                for duration, column in peak_fields.items():
                    value = getattr(activity.metrics, column)
                    if value and (duration not in peaks or value > peaks[duration][0]):
                        peaks[duration] = (value, activity)

            uncovered = [d for d in durations if d not in peaks]
            if uncovered:
                for activity in activities[:self.MAX_SCANNED_ACTIVITIES]:
                    samples = repositories.list_samples(db, activity.id)
                    stream = [_sample_value(s, signal) for s in samples]
                    for duration in uncovered:
                        peak = self.calculate_peak_for_duration(stream, duration)
                        if peak > 0 and (duration not in peaks or peak > peaks[duration][0]):
                            peaks[duration] = (peak, activity)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to build {curve_type} curve for user {user_id}: {e}")
            return DurationCurve(curve_type=curve_type, period_days=days)

        points = [
            CurvePoint(
                duration=duration,
                label=_duration_label(duration),
                value=round_half_up(peaks[duration][0], digits),
                activity_id=peaks[duration][1].id,
                achieved_at=peaks[duration][1].start_date,
            )
            for duration in durations
            if duration in peaks
        ]

        return DurationCurve(
            curve_type=curve_type,
            period_days=days,
            points=points,
            activity_count=len(activities),
        )

    def build_power_curve(
        self,
        db: Session,
        user_id: int,
        days: int = 90,
        now: Optional[datetime] = None,
    ) -> DurationCurve:
        """
        Build the bike power duration curve for a user.

        Stored peaks on ActivityMetrics are used first. Durations they do not
        cover are computed from the samples of the 20 most recent rides.
        Values are whole watts.

        Args:
            db: Database session
            user_id: User to analyse
            days: Window size in days
            now: Reference time (defaults to utcnow)

        Returns:
            DurationCurve; empty when nothing qualifies or loading fails
        """
        return self._build_curve(
            db, user_id, days, now,
            sport=SportType.BIKE,
            durations=STANDARD_DURATIONS,
            peak_fields=POWER_PEAK_FIELDS,
            signal="power",
            digits=0,
            curve_type="power",
        )

    def build_pace_curve(
        self,
        db: Session,
        user_id: int,
        days: int = 90,
        now: Optional[datetime] = None,
    ) -> DurationCurve:
        """Build the run speed duration curve (m/s, two decimals)."""
        return self._build_curve(
            db, user_id, days, now,
            sport=SportType.RUN,
            durations=RUN_DURATIONS,
            peak_fields=PACE_PEAK_FIELDS,
            signal="speed",
            digits=2,
            curve_type="pace",
        )

    def determine_phenotype(self, points: list[CurvePoint]) -> PhenotypeAnalysis:
        """
        Classify the rider from the power curve.

        sprint ratio = 5s / 5min power, sustained ratio = 20min / 5min power.
        Both are scaled to 0-100 scores: a 5s/5min ratio above 2.0 is typical
        of sprinters, a 20min/5min ratio above 0.88 of time trialists.
        """
        if len(points) < self.MIN_PHENOTYPE_POINTS:
            return PhenotypeAnalysis(
                phenotype="all_rounder",
                description="Not enough data to determine phenotype",
            )

        values = {p.duration: p.value for p in points}
        peak_5s = values.get(5) or 0
        peak_5min = values.get(300) or 0
        peak_20min = values.get(1200) or 0

        if not peak_5s or not peak_5min or not peak_20min:
            return PhenotypeAnalysis(
                phenotype="all_rounder",
                description="Insufficient data for phenotype analysis",
            )

        sprint_ratio = peak_5s / peak_5min
        sustained_ratio = peak_20min / peak_5min

        sprint_score = min(100, (sprint_ratio - 1.5) / 0.7 * 100)
        sustained_score = min(100, (sustained_ratio - 0.80) / 0.12 * 100)

        if sprint_score > 70 and sustained_score < 40:
            phenotype = "sprinter"
            description = "Strong in short, explosive efforts"
            strengths = ["Sprint finishes", "Short climbs", "Attacks"]
            weaknesses = ["Time trials", "Long climbs", "Breakaways"]
        elif sprint_score < 40 and sustained_score > 70:
            phenotype = "time_trialist"
            description = "Excels at sustained high power"
            strengths = ["Time trials", "Long climbs", "Solo breakaways"]
            weaknesses = ["Sprint finishes", "Punchy races", "Short attacks"]
        elif sprint_score > 50 and sustained_score > 50:
            phenotype = "pursuiter"
            description = "Strong in 1-5 minute efforts"
            strengths = ["VO2max intervals", "Medium climbs", "Criteriums"]
            weaknesses = ["Pure sprints", "Very long TTs"]
        else:
            phenotype = "all_rounder"
            description = "Balanced power across all durations"
            strengths = ["Versatility", "Stage races", "Varied terrain"]
            weaknesses = ["No standout specialty"]

        return PhenotypeAnalysis(
            phenotype=phenotype,
            description=description,
            strengths=strengths,
            weaknesses=weaknesses,
            sprint_score=round_half_up(max(0, sprint_score)),
            sustained_score=round_half_up(max(0, sustained_score)),
        )

    def estimate_ftp_from_curve(self, points: list[CurvePoint]) -> int:
        """
        Estimate FTP from the power curve.

        Uses 95% of 20-minute power, then 90% of 8-minute power, then 85% of
        5-minute power. Returns 0 when none of those points exist.
        """
        values = {p.duration: p.value for p in points}

        if 1200 in values:
            return round_half_up(values[1200] * self.FTP_FROM_20MIN_FACTOR)
        if 480 in values:
            return round_half_up(values[480] * self.FTP_FROM_8MIN_FACTOR)
        if 300 in values:
            return round_half_up(values[300] * self.FTP_FROM_5MIN_FACTOR)
        return 0

    def compare_curves(
        self,
        current: DurationCurve,
        previous: DurationCurve,
    ) -> list[CurveComparison]:
        """Percent change per duration present in both curves."""
        previous_values = {p.duration: p.value for p in previous.points}

        comparison = []
        for point in current.points:
            if point.duration not in previous_values:
                continue
            before = previous_values[point.duration]
            change = round_half_up((point.value - before) / before * 100, 1) if before > 0 else 0
            comparison.append(
                CurveComparison(
                    duration=point.duration,
                    label=point.label,
                    current=point.value,
                    previous=before,
                    change=change,
                )
            )

        return comparison

    def calculate_and_store_peaks(self, db: Session, activity_id: int) -> Optional[dict]:
        """
        Compute peak efforts for an activity and store them on its metrics row.

        Rides get power peaks and Normalized Power, runs get speed peaks.
        Durations longer than the activity are left empty.

        Returns:
            The stored peak values by column name, or None when the activity
            is missing, is another sport, or has no usable samples
        """
        try:
            activity = repositories.get_activity(db, activity_id)
            if activity is None or activity.sport_type not in (SportType.BIKE, SportType.RUN):
                return None

            samples = repositories.list_samples(db, activity_id)
            is_bike = activity.sport_type == SportType.BIKE
            signal = "power" if is_bike else "speed"
            peak_fields = POWER_PEAK_FIELDS if is_bike else PACE_PEAK_FIELDS
            stream = [_sample_value(s, signal) for s in samples]

            peaks = {}
            for duration, column in peak_fields.items():
                peak = self.calculate_peak_for_duration(stream, duration)
                if peak > 0:
                    peaks[column] = round_half_up(peak, 0 if is_bike else 2)

            if not peaks:
                logger.debug(f"No {signal} samples to derive peaks for activity {activity_id}")
                return None

            repositories.upsert_activity_metrics(db, activity_id, **peaks)
            if is_bike:
                repositories.set_normalized_power(
                    db, activity_id, fitness_service.calculate_normalized_power(stream)
                )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Failed to store peaks for activity {activity_id}: {e}")
            return None

        logger.info(f"Stored {len(peaks)} peak efforts for activity {activity_id}")
        return peaks


# Create a singleton instance for convenience
duration_curve_service = DurationCurveService()
