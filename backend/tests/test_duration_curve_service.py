"""Tests for power and pace duration curves."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from triforce.models.activity import Activity, SportType
from triforce.models.activity_metrics import ActivityMetrics
from triforce.services.duration_curve_service import (
    STANDARD_DURATIONS,
    CurvePoint,
    DurationCurve,
    DurationCurveService,
)
from triforce.services.zone_calculator import ZoneCalculator


@pytest.fixture
def service():
    return DurationCurveService()


def curve_points(values):
    return [CurvePoint(duration=d, label=f"{d}s", value=v) for d, v in values]


def surge_ride_samples():
    """30 samples: 5 at 200W, 5 at 400W, then 20 at 200W."""
    return [{"power": 200}] * 5 + [{"power": 400}] * 5 + [{"power": 200}] * 20


class TestPeakForDuration:
    """Tests for calculate_peak_for_duration."""

    def test_best_average_window(self, service):
        data = [
            200, 210, 220, 230, 240, 250, 260, 270, 280, 290,
            400, 410, 420, 430, 440,
            300, 290, 280, 270, 260,
        ]

        assert service.calculate_peak_for_duration(data, 5) == pytest.approx(420)

    def test_insufficient_data(self, service):
        assert service.calculate_peak_for_duration([200, 210, 220], 5) == 0

    def test_one_second_is_max_value(self, service):
        assert service.calculate_peak_for_duration([250, 300, 350, 280, 260], 1) == 350

    def test_empty_stream(self, service):
        assert service.calculate_peak_for_duration([], 5) == 0

    def test_zero_duration(self, service):
        assert service.calculate_peak_for_duration([100, 200, 300], 0) == 0

    def test_missing_values_count_as_zero(self, service):
        assert service.calculate_peak_for_duration([None, 100, None, 100], 2) == 50


class TestDeterminePhenotype:
    """Tests for determine_phenotype."""

    def test_sprinter(self, service):
        points = curve_points([(5, 1200), (60, 600), (300, 380), (1200, 300)])

        result = service.determine_phenotype(points)

        assert result.phenotype == "sprinter"
        assert "Sprint finishes" in result.strengths
        assert result.sprint_score == 100
        assert result.sustained_score == 0

    def test_time_trialist(self, service):
        points = curve_points([(5, 550), (60, 420), (300, 350), (1200, 320)])

        result = service.determine_phenotype(points)

        assert result.phenotype == "time_trialist"
        assert "Time trials" in result.strengths
        assert result.sprint_score == 10
        assert result.sustained_score == 95

    def test_pursuiter(self, service):
        points = curve_points([(5, 1000), (60, 600), (300, 400), (1200, 380)])

        assert service.determine_phenotype(points).phenotype == "pursuiter"

    def test_all_rounder(self, service):
        points = curve_points([(5, 700), (60, 500), (300, 400), (1200, 340)])

        result = service.determine_phenotype(points)

        assert result.phenotype == "all_rounder"
        assert result.sprint_score == 36
        assert result.sustained_score == 42

    def test_not_enough_points(self, service):
        result = service.determine_phenotype(curve_points([(5, 800), (60, 500)]))

        assert result.phenotype == "all_rounder"
        assert "Not enough data" in result.description
        assert result.strengths == []

    def test_missing_key_duration(self, service):
        points = curve_points([(10, 900), (60, 500), (300, 400), (1200, 340)])

        result = service.determine_phenotype(points)

        assert result.phenotype == "all_rounder"
        assert "Insufficient data" in result.description


class TestEstimateFTP:
    """Tests for estimate_ftp_from_curve."""

    def test_from_twenty_minutes(self, service):
        points = curve_points([(300, 350), (1200, 300)])

        assert service.estimate_ftp_from_curve(points) == 285

    def test_falls_back_to_eight_minutes(self, service):
        assert service.estimate_ftp_from_curve(curve_points([(300, 350), (480, 300)])) == 270

    def test_falls_back_to_five_minutes(self, service):
        assert service.estimate_ftp_from_curve(curve_points([(300, 350)])) == 298

    def test_empty_points(self, service):
        assert service.estimate_ftp_from_curve([]) == 0


class TestCompareCurves:

    def test_change_for_shared_durations(self, service):
        current = DurationCurve(
            curve_type="power", period_days=90, points=curve_points([(60, 420), (300, 330)])
        )
        previous = DurationCurve(
            curve_type="power", period_days=90, points=curve_points([(60, 400), (1200, 280)])
        )

        comparison = service.compare_curves(current, previous)

        assert len(comparison) == 1
        assert comparison[0].duration == 60
        assert comparison[0].change == 5.0

    def test_zero_previous_value(self, service):
        current = DurationCurve(curve_type="power", period_days=90, points=curve_points([(5, 500)]))
        previous = DurationCurve(curve_type="power", period_days=90, points=curve_points([(5, 0)]))

        assert service.compare_curves(current, previous)[0].change == 0


def test_standard_durations():
    for duration in (5, 60, 300, 1200, 3600):
        assert duration in STANDARD_DURATIONS


class TestBuildPowerCurve:
    """Tests for build_power_curve."""

    def test_no_rides_returns_empty_curve(self, service, db_session, user):
        curve = service.build_power_curve(db_session, user.id)

        assert curve.curve_type == "power"
        assert curve.period_days == 90
        assert curve.points == []
        assert curve.activity_count == 0

    def test_uses_stored_peaks(self, service, db_session, user, make_activity):
        ride = make_activity(SportType.BIKE, peak_20min=300)

        curve = service.build_power_curve(db_session, user.id)

        assert curve.activity_count == 1
        assert len(curve.points) == 1
        point = curve.points[0]
        assert point.duration == 1200
        assert point.label == "20min"
        assert point.value == 300
        assert point.activity_id == ride.id

    def test_computes_uncovered_durations_from_samples(
        self, service, db_session, user, make_activity, add_samples
    ):
        ride = make_activity(SportType.BIKE)
        add_samples(ride, surge_ride_samples())

        curve = service.build_power_curve(db_session, user.id)

        assert [(p.duration, p.value) for p in curve.points] == [
            (5, 400),
            (10, 300),
            (15, 267),
            (30, 233),
        ]

    def test_best_value_across_rides(self, service, db_session, user, make_activity, add_samples):
        sampled = make_activity(SportType.BIKE, days_ago=2)
        add_samples(sampled, surge_ride_samples())
        stored = make_activity(SportType.BIKE, days_ago=5)
        db_session.add(ActivityMetrics(activity_id=stored.id, peak_5s=650))
        db_session.commit()

        curve = service.build_power_curve(db_session, user.id)

        five_second = curve.points[0]
        assert five_second.value == 650
        assert five_second.activity_id == stored.id

    def test_ignores_old_rides_and_other_sports(self, service, db_session, user, make_activity):
        make_activity(SportType.BIKE, days_ago=120, peak_20min=300)
        make_activity(SportType.RUN, peak_20min=300)

        curve = service.build_power_curve(db_session, user.id)

        assert curve.points == []

    def test_database_error_returns_empty_curve(self, service):
        db = MagicMock()
        db.query.side_effect = SQLAlchemyError("connection lost")

        curve = service.build_power_curve(db, 1, days=30)

        assert curve == DurationCurve(curve_type="power", period_days=30)


class TestBuildPaceCurve:

    def test_speed_peaks_from_samples(self, service, db_session, user, make_activity, add_samples):
        run = make_activity(SportType.RUN)
        add_samples(run, [{"speed": 3.0}] * 25 + [{"speed": 5.0}] * 5)

        curve = service.build_pace_curve(db_session, user.id)

        assert curve.curve_type == "pace"
        assert [(p.duration, p.value) for p in curve.points] == [(5, 5.0), (30, 3.33)]

    def test_stored_pace_peak(self, service, db_session, user, make_activity):
        run = make_activity(SportType.RUN)
        db_session.add(ActivityMetrics(activity_id=run.id, pace_peak_20min=4.123))
        db_session.commit()

        curve = service.build_pace_curve(db_session, user.id)

        assert [(p.duration, p.value) for p in curve.points] == [(1200, 4.12)]


class TestCalculateAndStorePeaks:
    """Tests for calculate_and_store_peaks."""

    def test_ride_stores_power_peaks_and_np(
        self, service, db_session, make_activity, add_samples
    ):
        ride = make_activity(SportType.BIKE)
        add_samples(ride, surge_ride_samples())

        peaks = service.calculate_and_store_peaks(db_session, ride.id)

        assert peaks == {"peak_5s": 400, "peak_30s": 233}
        db_session.expire_all()
        metrics = db_session.query(ActivityMetrics).filter_by(activity_id=ride.id).one()
        assert metrics.peak_5s == 400
        assert metrics.peak_30s == 233
        assert metrics.peak_20min is None
        assert db_session.get(Activity, ride.id).normalized_power == 233

    def test_run_stores_speed_peaks(self, service, db_session, make_activity, add_samples):
        run = make_activity(SportType.RUN)
        add_samples(run, [{"speed": 3.0}] * 25 + [{"speed": 5.0}] * 5)

        assert service.calculate_and_store_peaks(db_session, run.id) == {"pace_peak_5s": 5.0}

    def test_updates_existing_metrics_row(self, service, db_session, make_activity, add_samples):
        ride = make_activity(SportType.BIKE, peak_20min=260)
        add_samples(ride, surge_ride_samples())

        service.calculate_and_store_peaks(db_session, ride.id)

        db_session.expire_all()
        rows = db_session.query(ActivityMetrics).filter_by(activity_id=ride.id).all()
        assert len(rows) == 1
        assert rows[0].peak_20min == 260
        assert rows[0].peak_5s == 400

    def test_swim_is_skipped(self, service, db_session, make_activity, add_samples):
        swim = make_activity(SportType.SWIM)
        add_samples(swim, [{"speed": 1.2}] * 10)

        assert service.calculate_and_store_peaks(db_session, swim.id) is None

    def test_without_samples(self, service, db_session, make_activity):
        ride = make_activity(SportType.BIKE)

        assert service.calculate_and_store_peaks(db_session, ride.id) is None
        assert db_session.query(ActivityMetrics).count() == 0

    def test_missing_activity(self, service, db_session, user):
        assert service.calculate_and_store_peaks(db_session, 999) is None

    def test_database_error_rolls_back(self, service):
        db = MagicMock()
        db.query.side_effect = SQLAlchemyError("connection lost")

        assert service.calculate_and_store_peaks(db, 1) is None
        db.rollback.assert_called_once()

    def test_stored_twenty_minute_peak_feeds_threshold_detection(
        self, service, db_session, user, make_activity, add_samples
    ):
        ride = make_activity(SportType.BIKE, moving_time=1500)
        add_samples(ride, [{"power": 300}] * 1200)

        service.calculate_and_store_peaks(db_session, ride.id)
        detection = ZoneCalculator().detect_threshold(db_session, user.id, SportType.BIKE)

        assert detection.value == 285
