"""Helpers for the "HH:MM" delivery times stored on orders."""
import re

from src.config.constants import MINUTES_PER_DAY
from src.shared.exceptions import MalformedInputError

_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_time_of_day(value) -> int:
    """
    Convert an "HH:MM" (24-hour) string into minutes since midnight.

    Raises:
        MalformedInputError: if the value is not a valid time of day.
    """
    if not isinstance(value, str):
        raise MalformedInputError(f"Delivery time must be an 'HH:MM' string, got {value!r}")

    match = _TIME_PATTERN.match(value)
    if not match:
        raise MalformedInputError(f"Delivery time '{value}' is not in HH:MM format")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise MalformedInputError(f"Delivery time '{value}' is out of range")

    return hours * 60 + minutes


def format_time_of_day(total_minutes: int) -> str:
    total_minutes %= MINUTES_PER_DAY
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def shift_time_of_day(value: str, delta_minutes: int) -> str:
    """Shift an "HH:MM" string by delta minutes, wrapping around midnight."""
    return format_time_of_day(parse_time_of_day(value) + delta_minutes)


def minutes_apart(first: int, second: int) -> int:
    # Same-day arithmetic; 23:30 and 00:10 are 1400 minutes apart
    return abs(first - second)
