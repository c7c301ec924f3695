"""
Minute-granularity wall-clock helpers.

Only time of day matters to the predictor.  Clock values are carried as
float minutes past midnight of a fixed reference date, so a chain that
starts in the evening can run past 24:00 and still format correctly.
"""

import math
from datetime import date, datetime, timedelta

from prediction.models import DayType

REFERENCE_DATE = datetime(2000, 1, 1)
MINUTES_PER_DAY = 24 * 60


def parse_clock(value: str) -> float:
    """
    Parse "HH:MM" or "HH:MM:SS" into minutes past midnight.

    Raises:
        ValueError: If the string is not a valid 24-hour clock time.
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected HH:MM or HH:MM:SS, got {value!r}")
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Expected HH:MM or HH:MM:SS, got {value!r}")
    h, m = int(parts[0]), int(parts[1])
    s = int(parts[2]) if len(parts) == 3 else 0
    if h > 23 or m > 59 or s > 59:
        raise ValueError(f"Clock time out of range: {value!r}")
    return h * 60 + m + s / 60


def minutes_between(start: str | None, end: str | None) -> float | None:
    """
    Signed minutes from start to end on the same day.

    Returns None when either side is missing or unparseable, so the caller
    can drop the sample instead of treating it as zero.
    """
    if not start or not end:
        return None
    try:
        return parse_clock(end) - parse_clock(start)
    except ValueError:
        return None


def time_of_day(minutes: float) -> float:
    """Fold a running clock value back into [0, 1440)."""
    return minutes % MINUTES_PER_DAY


def format_clock(minutes: float) -> str:
    """Format a running clock value as 24-hour HH:MM (seconds truncated)."""
    dt = REFERENCE_DATE + timedelta(seconds=round(minutes * 60))
    return dt.strftime("%H:%M")


def round_minutes(minutes: float) -> int:
    """Round half up, the way display values have always been rounded."""
    return int(math.floor(minutes + 0.5))


def resolve_day_type(target: date) -> DayType:
    """Map a calendar date onto the three schedule day types."""
    weekday = target.weekday()  # Monday == 0
    if weekday == 6:
        return DayType.SUNDAY_HOLIDAY
    if weekday == 5:
        return DayType.SATURDAY
    return DayType.WEEKDAY
