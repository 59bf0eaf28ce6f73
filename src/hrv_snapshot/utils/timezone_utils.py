"""
Timezone and datetime utilities.

Provides utilities for handling timezone-aware datetime operations and the
system clock used by the refresh cycle.
"""

from datetime import datetime, time

import pytz
from dateutil import parser


def make_timezone_aware(
    dt: datetime, timezone_str: str = "UTC", assume_local: bool = False
) -> datetime:
    """
    Make a datetime object timezone-aware.

    Args:
        dt: Datetime object (may be naive or aware).
        timezone_str: Timezone string (e.g., "America/Santiago").
        assume_local: If True and dt is naive, assume it's in timezone_str.

    Returns:
        Timezone-aware datetime object.
    """
    tz = pytz.timezone(timezone_str)

    if dt.tzinfo is None:
        if assume_local:
            return tz.localize(dt)
        else:
            return pytz.utc.localize(dt).astimezone(tz)
    else:
        return dt.astimezone(tz)


def parse_datetime(date_str: str, timezone_str: str = "UTC") -> datetime:
    """
    Parse a date string into a timezone-aware datetime.

    Strings carrying an offset (Apple Health exports use
    "2024-01-15 08:23:44 -0500") keep it; naive strings are assumed local.
    """
    dt = parser.parse(date_str)

    return make_timezone_aware(dt, timezone_str, assume_local=True)


def start_of_day(instant: datetime, timezone_str: str = "UTC") -> datetime:
    """
    Return local midnight of the calendar day containing instant.

    Args:
        instant: Timezone-aware datetime.
        timezone_str: Timezone defining the local calendar day.

    Returns:
        Timezone-aware datetime at 00:00 local time.
    """
    tz = pytz.timezone(timezone_str)
    local = make_timezone_aware(instant, timezone_str)
    return tz.localize(datetime.combine(local.date(), time.min))


class SystemClock:
    """Wall clock bound to a local timezone."""

    def __init__(self, timezone_str: str = "UTC") -> None:
        self.timezone_str = timezone_str
        self.tz = pytz.timezone(timezone_str)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def start_of_day(self, instant: datetime) -> datetime:
        return start_of_day(instant, self.timezone_str)
