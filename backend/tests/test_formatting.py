"""Tests for pace, time and rounding helpers."""

import pytest

from triforce.services.formatting import (
    format_duration,
    format_pace,
    pace_per_100m,
    pace_to_min_km,
    parse_pace,
    round_half_up,
)


class TestRoundHalfUp:
    """Tests for round_half_up."""

    def test_halves_round_up(self):
        """Halves go up instead of to the nearest even number."""
        assert round_half_up(2.5) == 3
        assert round_half_up(121.5) == 122
        assert round_half_up(0.125, 2) == 0.13

    def test_negative_halves_round_toward_positive(self):
        assert round_half_up(-2.5) == -2

    def test_zero_digits_returns_int(self):
        assert isinstance(round_half_up(4.4), int)
        assert isinstance(round_half_up(4.44, 1), float)


class TestFormatPace:
    """Tests for format_pace and parse_pace."""

    def test_format_basic(self):
        assert format_pace(105) == "1:45"
        assert format_pace(65) == "1:05"

    def test_format_carries_rounded_minute(self):
        """59.6 seconds rounds to a full minute, not 0:60."""
        assert format_pace(59.6) == "1:00"

    def test_parse_basic(self):
        assert parse_pace("1:45") == 105
        assert parse_pace("4:05") == 245

    @pytest.mark.parametrize("value", ["abc", "1:2:3", "x:10", "", "105"])
    def test_parse_invalid_returns_zero(self, value):
        assert parse_pace(value) == 0

    @pytest.mark.parametrize("seconds", [61.2, 89.5, 104.9, 250.0, 357.14, 599.4])
    def test_round_trip_within_one_second(self, seconds):
        assert abs(parse_pace(format_pace(seconds)) - seconds) <= 1


class TestSpeedConversions:
    """Tests for speed to pace conversions."""

    def test_pace_to_min_km(self):
        # 1000 / 4.0 = 250 s
        assert pace_to_min_km(4.0) == "4:10"

    def test_pace_per_100m(self):
        assert pace_per_100m(1.0) == "1:40"
        # 100 / 0.952 = 105.04 s
        assert pace_per_100m(0.952) == "1:45"


class TestFormatDuration:
    """Tests for format_duration."""

    def test_under_an_hour(self):
        assert format_duration(1599.7) == "26:40"

    def test_hours(self):
        assert format_duration(3661) == "1:01:01"
        assert format_duration(4000) == "1:06:40"
