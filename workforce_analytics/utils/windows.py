# workforce_analytics/utils/windows.py

# Utilities for turning weekly schedule rows into working-hour windows.
# Parses time-of-day values in whatever shape the driver returns them
# (time, timedelta for MySQL TIME, or "HH:MM[:SS[.ffffff]]" text for SQLite).
# Counts weekdays in a date range without walking every day, so open-ended
# ranges starting at the epoch stay cheap.

from __future__ import annotations
from datetime import date, time, timedelta
from typing import List, Optional

# schedule tables number weekdays 0=Sunday..6=Saturday
SUNDAY_FIRST = 7


def schedule_weekday(day: date) -> int:
    return (day.weekday() + 1) % SUNDAY_FIRST


def seconds_of_day(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, time):
        return value.hour * 3600 + value.minute * 60 + value.second
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    text = str(value).strip()
    parts = text.split(":")
    if len(parts) < 2:
        return None
    try:
        hh, mm = int(parts[0]), int(parts[1])
        ss = int(float(parts[2])) if len(parts) > 2 and parts[2] else 0
    except ValueError:
        return None
    return hh * 3600 + mm * 60 + ss


def window_hours(start, end) -> Optional[float]:
    """Length of a same-day start..end window in hours; None when either bound is unreadable."""
    st = seconds_of_day(start)
    et = seconds_of_day(end)
    if st is None or et is None:
        return None
    return max(0, et - st) / 3600.0


def weekday_counts(start_day: date, end_day: date) -> List[int]:
    """Occurrences of each schedule weekday (0=Sun..6=Sat) in [start_day, end_day]."""
    counts = [0] * SUNDAY_FIRST
    if end_day < start_day:
        return counts
    total = (end_day - start_day).days + 1
    full_weeks, remainder = divmod(total, SUNDAY_FIRST)
    counts = [full_weeks] * SUNDAY_FIRST
    first = schedule_weekday(start_day)
    for offset in range(remainder):
        counts[(first + offset) % SUNDAY_FIRST] += 1
    return counts
