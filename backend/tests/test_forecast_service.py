"""Tests for fitness forecasting."""

from datetime import date, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from triforce.exceptions import InvalidInputError
from triforce.models.training_plan import PlanStatus, PlanWeek, TrainingPlan, WeekType
from triforce.services.forecast_service import ForecastService, PlannedWeek
from triforce.services.fitness_service import FitnessService

TODAY = date(2024, 1, 1)


@pytest.fixture
def service():
    return ForecastService()


class TestForecastFitness:
    """Tests for forecast_fitness."""

    def test_converges_to_daily_load(self, service):
        weeks = [PlannedWeek(week_start=TODAY + timedelta(weeks=i), target_tss=700) for i in range(52)]

        forecast = service.forecast_fitness(0, 0, weeks)

        assert len(forecast) == 364
        assert abs(forecast[-1].projected_ctl - 100) < 0.1
        assert forecast[-1].projected_atl == 100.0

    def test_steady_state(self, service):
        weeks = [PlannedWeek(week_start=TODAY, target_tss=700)]

        forecast = service.forecast_fitness(100, 100, weeks)

        assert all(p.projected_ctl == 100.0 for p in forecast)
        assert all(p.projected_tsb == 0 for p in forecast)
        assert {p.source for p in forecast} == {"planned"}

    def test_days_follow_week_start(self, service):
        weeks = [
            PlannedWeek(week_start=date(2024, 1, 1), target_tss=350),
            PlannedWeek(week_start=date(2024, 1, 8), target_tss=350, week_type="recovery"),
        ]

        forecast = service.forecast_fitness(50, 50, weeks)

        assert forecast[0].date == date(2024, 1, 1)
        assert forecast[7].date == date(2024, 1, 8)
        assert forecast[-1].date == date(2024, 1, 14)

    def test_no_weeks(self, service):
        assert service.forecast_fitness(50, 50, []) == []


class TestProjectDecay:
    """Tests for project_decay."""

    def test_decay_from_fifty(self, service):
        forecast = service.project_decay(50, 50, 28, start_date=TODAY)

        assert len(forecast) == 28
        assert forecast[0].date == date(2024, 1, 2)
        assert forecast[0].projected_ctl == 48.8
        assert forecast[0].projected_atl == 43.3
        assert all(p.source == "decay" for p in forecast)

    def test_decay_is_monotonic(self, service):
        forecast = service.project_decay(80, 90, 28, start_date=TODAY)

        ctls = [p.projected_ctl for p in forecast]
        atls = [p.projected_atl for p in forecast]
        assert ctls == sorted(ctls, reverse=True)
        assert atls == sorted(atls, reverse=True)


class TestRequiredTSS:
    """Tests for calculate_required_tss."""

    def test_moderate_build(self, service):
        result = service.calculate_required_tss(50, 62, 4)

        assert result.weekly_tss == [371, 389, 409, 263]
        assert result.average_ramp_rate == 3.0
        assert result.achievable is True
        assert result.warnings == []

    def test_aggressive_ramp_warns_twice(self, service):
        result = service.calculate_required_tss(40, 88, 4)

        assert result.average_ramp_rate == 12.0
        assert result.achievable is False
        assert result.warnings[0] == (
            "Required ramp rate (12.0 CTL/week) exceeds recommended maximum (6 CTL/week)"
        )
        assert len(result.warnings) == 2

    def test_ramp_between_limits_warns_once(self, service):
        result = service.calculate_required_tss(40, 68, 4)

        assert result.average_ramp_rate == 7.0
        assert len(result.warnings) == 1

    def test_build_weeks_ramp_at_most_six(self, service):
        result = service.calculate_required_tss(40, 88, 3)

        assert result.weekly_tss[0] == round((40 + 6) * 7)

    def test_non_positive_weeks_raise(self, service):
        with pytest.raises(InvalidInputError):
            service.calculate_required_tss(50, 60, 0)


class TestForecastFromPlan:
    """Tests for get_forecast_from_plan."""

    def test_without_fitness_data(self, service, db_session, user):
        assert service.get_forecast_from_plan(db_session, user.id, today=TODAY) == []

    def test_without_plan_projects_decay(self, service, db_session, user, add_fitness_metric):
        add_fitness_metric(date(2023, 12, 31), ctl=50, atl=50)

        forecast = service.get_forecast_from_plan(db_session, user.id, today=TODAY)

        assert len(forecast) == 28
        assert forecast[0].projected_ctl == 48.8
        assert forecast[0].source == "decay"

    def test_zero_load_defaults_to_fifty(self, service, db_session, user, add_fitness_metric):
        add_fitness_metric(date(2023, 12, 31), ctl=0, atl=0)

        forecast = service.get_forecast_from_plan(db_session, user.id, today=TODAY)

        assert forecast[0].projected_ctl == 48.8

    def test_active_plan(self, service, db_session, user, add_fitness_metric):
        add_fitness_metric(date(2023, 12, 31), ctl=100, atl=100)
        plan = TrainingPlan(
            user_id=user.id,
            name="Spring build",
            start_date=datetime(2024, 1, 1),
            end_date=datetime(2024, 1, 15),
            status=PlanStatus.ACTIVE,
        )
        plan.weeks = [
            PlanWeek(week_number=1, start_date=datetime(2024, 1, 1), target_tss=700),
            PlanWeek(
                week_number=2,
                start_date=datetime(2024, 1, 8),
                target_tss=700,
                week_type=WeekType.RECOVERY,
            ),
        ]
        db_session.add(plan)
        db_session.commit()

        forecast = service.get_forecast_from_plan(db_session, user.id, today=TODAY)

        assert len(forecast) == 14
        assert forecast[0].date == date(2024, 1, 1)
        assert all(p.source == "planned" for p in forecast)
        assert forecast[-1].projected_ctl == 100.0

    def test_database_error_returns_empty(self, service):
        db = MagicMock()
        db.query.side_effect = SQLAlchemyError("connection lost")

        assert service.get_forecast_from_plan(db, 1, today=TODAY) == []


class TestSimulateTaper:
    """Tests for simulate_taper."""

    def test_progressive_taper(self, service, db_session, user, add_fitness_metric):
        add_fitness_metric(date(2023, 12, 31), ctl=60, atl=60)

        result = service.simulate_taper(db_session, user.id, date(2024, 1, 22), today=TODAY)

        plan = result.taper_plan
        assert len(plan) == 21
        assert plan[0].date == date(2024, 1, 2)
        assert plan[0].suggested_tss == 60
        assert plan[6].suggested_tss == 42
        assert plan[13].suggested_tss == 30
        assert plan[-1].suggested_tss == 18
        assert plan[-1].date == date(2024, 1, 22)
        assert result.projected_tsb_on_race_day > 0
        assert result.target_tsb == 15

    def test_race_too_close_raises(self, service, db_session, user, add_fitness_metric):
        add_fitness_metric(date(2023, 12, 31), ctl=60, atl=60)

        with pytest.raises(InvalidInputError, match="at least 7 days"):
            service.simulate_taper(db_session, user.id, date(2024, 1, 5), today=TODAY)

    def test_race_too_close_raises_without_data(self, service, db_session, user):
        with pytest.raises(InvalidInputError):
            service.simulate_taper(db_session, user.id, date(2024, 1, 5), today=TODAY)

    def test_without_fitness_data(self, service, db_session, user):
        assert service.simulate_taper(db_session, user.id, date(2024, 2, 1), today=TODAY) is None


class TestProjectWithModifications:
    """Tests for project_with_modifications."""

    def test_overrides_and_estimates(self, service, db_session, user, add_fitness_metric):
        add_fitness_metric(date(2023, 12, 31), ctl=60, atl=60)
        modifications = [
            {"date": date(2024, 1, 3), "tss": 200},
            {"date": date(2024, 1, 4), "tss": 0},
        ]

        forecast = service.project_with_modifications(
            db_session, user.id, modifications, days_ahead=7, today=TODAY
        )

        assert len(forecast) == 7
        assert [p.source for p in forecast] == [
            "estimated", "planned", "planned", "estimated", "estimated", "estimated", "estimated",
        ]
        # Steady at CTL until the first override
        assert forecast[0].projected_ctl == 60.0
        assert forecast[1].projected_atl > 60

    def test_no_modifications_holds_steady(self, service, db_session, user, add_fitness_metric):
        add_fitness_metric(date(2023, 12, 31), ctl=60, atl=70)

        forecast = service.project_with_modifications(db_session, user.id, [], days_ahead=30, today=TODAY)

        assert len(forecast) == 30
        assert all(p.projected_ctl == 60.0 for p in forecast)
        assert forecast[-1].projected_atl < 70

    def test_without_fitness_data(self, service, db_session, user):
        assert service.project_with_modifications(db_session, user.id, [], today=TODAY) == []

    def test_non_positive_days_raise(self, service, db_session, user):
        with pytest.raises(InvalidInputError):
            service.project_with_modifications(db_session, user.id, [], days_ahead=0)


def test_forecast_uses_same_time_constants_as_pmc():
    assert ForecastService.CTL_DAYS == FitnessService.CTL_TIME_CONSTANT
    assert ForecastService.ATL_DAYS == FitnessService.ATL_TIME_CONSTANT
