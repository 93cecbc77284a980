"""
Unit tests for date helpers (waiting days, metrics windows, message dates).
"""
from datetime import date, datetime
from unittest.mock import patch

import pytz

from workshop_core.utils.date_formatter import (
    days_waiting,
    ensure_aware,
    format_date,
    hours_between,
    window_bounds
)


def test_days_waiting_rounds_up_partial_days():
    assert days_waiting(datetime(2026, 1, 1, 8), datetime(2026, 1, 1, 9)) == 1
    assert days_waiting(datetime(2026, 1, 1, 8), datetime(2026, 1, 2, 9)) == 2


def test_days_waiting_whole_days():
    assert days_waiting(datetime(2026, 1, 1, 8), datetime(2026, 1, 3, 8)) == 2


def test_days_waiting_never_negative():
    assert days_waiting(datetime(2026, 1, 2), datetime(2026, 1, 1)) == 0
    assert days_waiting(datetime(2026, 1, 1), datetime(2026, 1, 1)) == 0


def test_ensure_aware_treats_naive_as_utc():
    aware = ensure_aware(datetime(2026, 1, 21, 14, 30))
    assert aware.utcoffset().total_seconds() == 0


def test_window_bounds_utc():
    start, end = window_bounds(date(2026, 3, 1), date(2026, 3, 2))
    assert start == pytz.utc.localize(datetime(2026, 3, 1))
    assert end == pytz.utc.localize(datetime(2026, 3, 3))


def test_window_bounds_workshop_timezone():
    """Calendar dates are interpreted in the configured workshop timezone."""
    with patch("workshop_core.utils.date_formatter.config") as mock_config:
        mock_config.TIMEZONE = "America/Santiago"
        start, end = window_bounds(date(2026, 1, 10), date(2026, 1, 10))

    # Santiago is UTC-3 in January (summer time)
    assert start == pytz.utc.localize(datetime(2026, 1, 10, 3))
    assert end == pytz.utc.localize(datetime(2026, 1, 11, 3))


def test_hours_between():
    assert hours_between(datetime(2026, 1, 1, 8), datetime(2026, 1, 1, 18)) == 10.0


def test_format_date():
    assert format_date(datetime(2026, 1, 21, 14, 30)) == "21-01-2026"
    assert format_date(None) == "TBD"
