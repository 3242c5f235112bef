# backend/studio_booking/core/time_utils.py
"""
Time helpers.

All instants are stored and compared in UTC. Local wall-clock values are
only derived when matching against weekly availability rules.
"""

from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

import pytz

from .config import settings

# Weekly rules store minutes 0-1439; a rule ending here stays open until midnight
LAST_MINUTE_OF_DAY = 1439


class LocalWindow(NamedTuple):
    """A booking window expressed in the studio's local wall-clock time."""

    weekday: int  # 0 = Sunday
    start_minute: int
    end_minute: int
    same_day: bool


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC value.

    Naive values are assumed to already be UTC (SQLite returns naive
    datetimes even for timezone-aware columns).
    """
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(timezone.utc)


def get_timezone(name: Optional[str]) -> pytz.BaseTzInfo:
    """Resolve a timezone name, falling back to the configured default."""
    try:
        return pytz.timezone(name or settings.default_timezone)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(settings.default_timezone)


def sunday_based_weekday(dt: datetime) -> int:
    """Return the weekday with 0 = Sunday ... 6 = Saturday."""
    return (dt.weekday() + 1) % 7


def minute_of_day(dt: datetime) -> int:
    return dt.hour * 60 + dt.minute


def local_window(start_at: datetime, end_at: datetime, tz_name: Optional[str]) -> LocalWindow:
    """
    Project a UTC window onto the local calendar of ``tz_name``.

    An end of exactly 00:00 on the following day closes the start day and
    maps to LAST_MINUTE_OF_DAY, the latest end a weekly rule can express.
    """
    tz = get_timezone(tz_name)
    local_start = to_utc(start_at).astimezone(tz)
    local_end = to_utc(end_at).astimezone(tz)

    end_minute = minute_of_day(local_end)
    end_date = local_end.date()
    if end_minute == 0 and local_end.second == 0 and local_end.microsecond == 0:
        if end_date == local_start.date() + timedelta(days=1):
            end_minute = LAST_MINUTE_OF_DAY
            end_date = local_start.date()

    return LocalWindow(
        weekday=sunday_based_weekday(local_start),
        start_minute=minute_of_day(local_start),
        end_minute=end_minute,
        same_day=local_start.date() == end_date,
    )

