"""
Working-day arithmetic

A working day is any calendar day that is not a Saturday or Sunday.
Timestamps are epoch seconds; the weekday of each step is judged in the
given timezone (UTC by default).
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

SATURDAY = 5


def is_working_day(moment: datetime) -> bool:
    return moment.weekday() < SATURDAY


def add_working_days(start: float, days: int, tz: Optional[tzinfo] = None) -> float:
    """
    Walk forward one calendar day at a time from start, counting only
    weekdays, and return the instant at which `days` have been counted.

    The time of day of start is preserved. Starting on a Friday, one
    working day lands on the following Monday.
    """
    if days < 0:
        raise ValueError("days must be non-negative")

    current = datetime.fromtimestamp(start, tz or timezone.utc)
    counted = 0
    while counted < days:
        current += timedelta(days=1)
        if is_working_day(current):
            counted += 1
    return current.timestamp()


def count_working_days(start: float, end: float, tz: Optional[tzinfo] = None) -> int:
    """
    Number of working days in the half-open span (start, end] stepping by
    whole days from start.

    Inverse of add_working_days: count_working_days(t, add_working_days(t, n)) == n.
    """
    zone = tz or timezone.utc
    current = datetime.fromtimestamp(start, zone)
    stop = datetime.fromtimestamp(end, zone)
    counted = 0
    while True:
        current += timedelta(days=1)
        if current > stop:
            return counted
        if is_working_day(current):
            counted += 1


def to_iso(timestamp: Optional[float]) -> Optional[str]:
    """Epoch seconds -> ISO-8601 UTC string (None passes through)"""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, timezone.utc).isoformat().replace("+00:00", "Z")
