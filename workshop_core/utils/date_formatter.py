"""
Date and time helpers for the workshop engine.

All persisted timestamps are timezone-aware UTC. Calendar-date windows
(metrics reporting) are interpreted in the configured workshop timezone.
"""

import math
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from workshop_core.config import config


def get_timezone() -> pytz.BaseTzInfo:
    """
    Get the configured workshop timezone.

    Examples:
        >>> get_timezone().zone
        'UTC'
    """
    return pytz.timezone(config.TIMEZONE)


def now_utc() -> datetime:
    """Current time as an aware UTC datetime. Default engine clock."""
    return datetime.now(pytz.utc)


def ensure_aware(dt: datetime) -> datetime:
    """
    Treat naive datetimes as UTC.

    Examples:
        >>> ensure_aware(datetime(2026, 1, 21, 14, 30)).tzinfo.zone
        'UTC'
    """
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt


def to_workshop_time(dt: datetime) -> datetime:
    """Convert a datetime to the workshop timezone."""
    return ensure_aware(dt).astimezone(get_timezone())


def window_bounds(date_from: date, date_to: date) -> tuple[datetime, datetime]:
    """
    Convert an inclusive calendar-date range into a half-open UTC interval.

    Args:
        date_from: First day of the window (inclusive)
        date_to: Last day of the window (inclusive)

    Returns:
        (start, end) where start <= t < end covers both whole days
    """
    tz = get_timezone()
    start = tz.localize(datetime.combine(date_from, time.min))
    end = tz.localize(datetime.combine(date_to + timedelta(days=1), time.min))
    return start.astimezone(pytz.utc), end.astimezone(pytz.utc)


def days_waiting(intake_at: datetime, now: datetime) -> int:
    """
    Whole days elapsed since intake, rounded up.

    A job taken in 1 hour ago has waited 1 day; one taken in exactly
    now has waited 0. Never negative.

    Examples:
        >>> days_waiting(datetime(2026, 1, 1, 8), datetime(2026, 1, 1, 9))
        1
        >>> days_waiting(datetime(2026, 1, 1, 8), datetime(2026, 1, 3, 8))
        2
    """
    elapsed = (ensure_aware(now) - ensure_aware(intake_at)).total_seconds()
    if elapsed <= 0:
        return 0
    return math.ceil(elapsed / 86400)


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours between two datetimes as a float."""
    return (ensure_aware(end) - ensure_aware(start)).total_seconds() / 3600


def format_date(value: Optional[datetime]) -> str:
    """
    Format a datetime as DD-MM-YYYY in the workshop timezone for messages.

    Examples:
        >>> format_date(datetime(2026, 1, 21, 14, 30))
        '21-01-2026'
        >>> format_date(None)
        'TBD'
    """
    if value is None:
        return "TBD"
    return to_workshop_time(value).strftime("%d-%m-%Y")
