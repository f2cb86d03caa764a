"""Tests for the Critical Swim Speed service."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from triforce.exceptions import InvalidInputError
from triforce.models.activity import SportType
from triforce.models.athlete_profile import AthleteProfile
from triforce.services.css_service import CSSService


@pytest.fixture
def service():
    return CSSService()


class TestCalculateCSS:
    """Tests for calculate_css."""

    def test_standard_test_set(self, service):
        # 200m over a 210s difference
        result = service.calculate_css(360, 150)

        assert result.css == 0.952
        assert result.css_pace_100m == 105.0
        assert result.css_pace_formatted == "1:45"
        assert result.estimated_t750 == 803
        assert result.estimated_t1500 == 1622

    def test_equal_times_raise(self, service):
        with pytest.raises(InvalidInputError, match="400m time must be greater than 200m time"):
            service.calculate_css(300, 300)

    def test_400_faster_than_200_raises(self, service):
        with pytest.raises(InvalidInputError):
            service.calculate_css(150, 360)

    @pytest.mark.parametrize("t400,t200", [(0, 150), (360, 0), (-360, 150)])
    def test_non_positive_times_raise(self, service, t400, t200):
        with pytest.raises(InvalidInputError, match="Times must be positive numbers"):
            service.calculate_css(t400, t200)


class TestSwimZones:
    """Tests for calculate_swim_zones."""

    def test_zones_at_100s_pace(self, service):
        zones = service.calculate_swim_zones(100)

        assert len(zones) == 5
        assert [z.min for z in zones] == [0.75, 0.85, 0.93, 1.0, 1.05]
        assert zones[-1].max == 1.2

    def test_pace_strings_follow_speed_bounds(self, service):
        zones = service.calculate_swim_zones(100)

        # The faster pace comes from the upper speed bound
        assert zones[0].pace_min == "1:58"
        assert zones[0].pace_max == "2:13"
        assert zones[3].pace_min == "1:35"
        assert zones[3].pace_max == "1:40"

    def test_names(self, service):
        zones = service.calculate_swim_zones(105)
        assert [z.name for z in zones] == ["Recovery", "Endurance", "Tempo", "Threshold", "VO2max"]

    def test_non_positive_pace_raises(self, service):
        with pytest.raises(InvalidInputError):
            service.calculate_swim_zones(0)


class TestTrainingPaces:
    """Tests for get_training_paces."""

    def test_named_paces(self, service):
        paces = service.get_training_paces(1.0)

        assert list(paces) == ["recovery", "endurance", "tempo", "threshold", "interval", "sprint"]
        assert paces["recovery"].speed == 0.8
        assert paces["recovery"].pace == "2:05"
        assert paces["threshold"].pace == "1:40"
        assert paces["sprint"].speed == 1.15
        assert paces["sprint"].pace == "1:27"

    def test_zero_css_raises(self, service):
        with pytest.raises(InvalidInputError):
            service.get_training_paces(0)


class TestRacePredictions:
    """Tests for predict_race_times."""

    def test_predictions_at_one_meter_per_second(self, service):
        predictions = service.predict_race_times(1.0)

        assert predictions["t400"].time == 388
        assert predictions["t400"].formatted == "6:28"
        assert predictions["t750"].time == 750
        assert predictions["t750"].formatted == "12:30"
        assert predictions["t1500"].time == 1531
        assert predictions["t1500"].formatted == "25:31"
        assert predictions["t1900"].time == 1959
        assert predictions["t3800"].time == 4000
        assert predictions["t3800"].formatted == "1:06:40"

    def test_zero_css_raises(self, service):
        with pytest.raises(InvalidInputError):
            service.predict_race_times(0)


class TestEstimateFromHistory:
    """Tests for estimate_css_from_history."""

    def _swim(self, make_activity, speed, distance=1000, days_ago=5):
        return make_activity(
            SportType.SWIM,
            days_ago=days_ago,
            moving_time=round(distance / speed),
            distance=distance,
            avg_speed=speed,
        )

    def test_no_swims_returns_none(self, service, db_session, user):
        assert service.estimate_css_from_history(db_session, user.id) is None

    def test_single_swim(self, service, db_session, user, make_activity):
        self._swim(make_activity, 1.0)

        result = service.estimate_css_from_history(db_session, user.id)

        assert result.css == 0.93
        assert result.css_pace_100m == 107.5
        assert result.css_pace_formatted == "1:48"
        assert result.confidence == 0.5
        assert result.based_on == "single swim"
        assert result.swim_count == 1

    def test_two_swims_use_the_fastest(self, service, db_session, user, make_activity):
        self._swim(make_activity, 1.0)
        self._swim(make_activity, 1.1)

        result = service.estimate_css_from_history(db_session, user.id)

        assert result.css == 1.023
        assert result.confidence == 0.5
        assert result.swim_count == 2

    def test_three_swims_average_top_three(self, service, db_session, user, make_activity):
        for speed in (1.0, 1.2, 1.1):
            self._swim(make_activity, speed)

        result = service.estimate_css_from_history(db_session, user.id)

        assert result.css == 1.023
        assert result.confidence == 0.6
        assert result.based_on == "3 swims"

    def test_five_swims_raise_confidence(self, service, db_session, user, make_activity):
        for speed in (0.9, 1.0, 1.0, 1.0, 0.8):
            self._swim(make_activity, speed)

        result = service.estimate_css_from_history(db_session, user.id)

        assert result.css == 0.93
        assert result.confidence == 0.7
        assert result.based_on == "5 swims"

    def test_ignores_out_of_range_and_old_swims(self, service, db_session, user, make_activity):
        self._swim(make_activity, 1.5, distance=100)
        self._swim(make_activity, 1.5, distance=3800)
        self._swim(make_activity, 1.5, days_ago=120)
        make_activity(SportType.RUN, distance=1000, avg_speed=4.0)

        assert service.estimate_css_from_history(db_session, user.id) is None

    def test_database_error_returns_none(self, service):
        db = MagicMock()
        db.query.side_effect = SQLAlchemyError("connection lost")

        assert service.estimate_css_from_history(db, 1) is None


class TestUpdateUserCSS:
    """Tests for update_user_css."""

    def test_creates_profile(self, service, db_session, user):
        service.update_user_css(db_session, user.id, 0.952)

        profile = db_session.query(AthleteProfile).filter_by(user_id=user.id).one()
        assert profile.css == 0.952

    def test_updates_existing_profile(self, service, db_session, user, set_profile):
        set_profile(css=0.9, lthr=160)

        service.update_user_css(db_session, user.id, 1.05)

        profile = db_session.query(AthleteProfile).filter_by(user_id=user.id).one()
        assert profile.css == 1.05
        assert profile.lthr == 160

    def test_non_positive_css_raises(self, service, db_session, user):
        with pytest.raises(InvalidInputError):
            service.update_user_css(db_session, user.id, 0)

    def test_database_error_rolls_back_and_raises(self, service):
        db = MagicMock()
        db.query.side_effect = SQLAlchemyError("connection lost")

        with pytest.raises(SQLAlchemyError):
            service.update_user_css(db, 1, 1.0)

        db.rollback.assert_called_once()
        db.commit.assert_not_called()


class TestPaceHelpers:
    """The service exposes the shared pace helpers."""

    def test_format_and_parse(self, service):
        assert service.format_pace(105) == "1:45"
        assert service.parse_pace("1:45") == 105
        assert service.parse_pace("bad") == 0


def test_swims_sorted_by_speed_not_date(db_session, user, make_activity):
    """The fastest recent swims drive the estimate regardless of order."""
    now = datetime.utcnow()
    service = CSSService()
    make_activity(SportType.SWIM, days_ago=1, distance=800, avg_speed=0.9)
    make_activity(SportType.SWIM, days_ago=30, distance=800, avg_speed=1.0)

    result = service.estimate_css_from_history(db_session, user.id, now=now + timedelta(minutes=1))

    assert result.css == 0.93
