"""Pace, time and rounding helpers shared by the analytics services.

All display strings are built here so zone construction, CSS and race
prediction format times the same way.
"""

import math


def round_half_up(value: float, digits: int = 0):
    """
    Round with halves going up (toward positive infinity).

    Python's built-in ``round`` uses banker's rounding, which would move zone
    boundaries such as ``150 * 0.81 = 121.5`` down to 122 or up depending on
    parity. Every displayed or stored metric uses this instead.

    Args:
        value: Number to round
        digits: Decimal places to keep

    Returns:
        An int when ``digits`` is 0, otherwise a float
    """
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    if digits == 0:
        return int(rounded)
    return rounded


def _split_minutes(total_seconds: float) -> tuple[int, int]:
    minutes = math.floor(total_seconds / 60)
    seconds = round_half_up(total_seconds % 60)
    if seconds == 60:
        minutes += 1
        seconds = 0
    return minutes, seconds


def format_pace(total_seconds: float) -> str:
    """Format seconds as ``m:ss`` (e.g. 105 -> "1:45")."""
    minutes, seconds = _split_minutes(total_seconds)
    return f"{minutes}:{seconds:02d}"


def parse_pace(pace: str) -> int:
    """
    Parse an ``m:ss`` string into seconds.

    Returns 0 for anything that is not two integer parts separated by a colon.
    """
    parts = pace.split(":")
    if len(parts) != 2:
        return 0
    try:
        minutes = int(parts[0])
        seconds = int(parts[1])
    except ValueError:
        return 0
    return minutes * 60 + seconds


def pace_to_min_km(speed_ms: float) -> str:
    """Convert a speed in m/s to a running pace string in min/km."""
    return format_pace(1000 / speed_ms)


def pace_per_100m(speed_ms: float) -> str:
    """Convert a speed in m/s to a swim pace string per 100m."""
    return format_pace(100 / speed_ms)


def format_duration(total_seconds: float) -> str:
    """Format a duration as ``m:ss``, or ``h:mm:ss`` from one hour upward."""
    minutes, seconds = _split_minutes(total_seconds)
    if minutes >= 60:
        hours = minutes // 60
        return f"{hours}:{minutes % 60:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"
