"""
Date helpers shared by the availability, reservation and calendar services.

All persisted datetimes are naive UTC (like datetime.utcnow()); anything
timezone-aware coming in from the API is converted before it touches the DB.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Union

DateLike = Union[date, datetime]

ONE_DAY = timedelta(days=1)


def to_naive_utc(value: DateLike) -> datetime:
    """Convert a date or datetime into the naive-UTC datetime used for storage."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.combine(value, time.min)


def to_day(value: DateLike) -> date:
    """Normalize to day granularity (time-of-day dropped)."""
    if isinstance(value, datetime):
        return to_naive_utc(value).date()
    return value


def start_of_day(value: DateLike) -> datetime:
    return datetime.combine(to_day(value), time.min)


def iter_days(start: date, end: date, inclusive: bool = True) -> Iterator[date]:
    """Yield each calendar day from start to end (end included unless inclusive=False)."""
    current = start
    while current < end or (inclusive and current == end):
        yield current
        if current == date.max:
            return
        current += ONE_DAY


def span_days(start: date, end: date) -> int:
    """Number of days in the inclusive window [start, end]."""
    return (end - start).days + 1


def month_bounds(year: int, month: int):
    """First and last day of a month."""
    first = date(year, month, 1)
    if month == 12:
        last = date(year, 12, 31)
    else:
        last = date(year, month + 1, 1) - ONE_DAY
    return first, last
