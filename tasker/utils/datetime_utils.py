"""DateTime utility functions for Tasker.

Due dates are end-of-day values in naive local time. Every datetime that
enters the domain models passes through to_local_naive() first.
"""

from datetime import date, datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta


def to_local_naive(dt: datetime) -> datetime:
    """
    Convert a datetime to naive local time.

    Aware datetimes (e.g. parsed from ISO strings ending in 'Z') are
    converted to the local timezone and stripped of tzinfo. Naive datetimes
    are assumed to already be local and returned unchanged.

    Args:
        dt: Datetime to normalize

    Returns:
        Naive datetime in local time
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def end_of_day(dt: datetime) -> datetime:
    """
    Force the time of day to 23:59:59.999.

    Examples:
        >>> end_of_day(datetime(2024, 3, 15, 8, 30))
        datetime.datetime(2024, 3, 15, 23, 59, 59, 999000)
    """
    return dt.replace(hour=23, minute=59, second=59, microsecond=999000)


def add_days(dt: datetime, days: int) -> datetime:
    return dt + timedelta(days=days)


def add_months(dt: datetime, months: int) -> datetime:
    """Add calendar months, clamping to the last day of the target month."""
    return dt + relativedelta(months=months)


def is_same_day(a: datetime, b: datetime) -> bool:
    """Check whether two datetimes fall on the same calendar day."""
    return (a.year, a.month, a.day) == (b.year, b.month, b.day)


def format_date(dt: Optional[datetime]) -> str:
    """
    Format a date for reports and previews.

    Returns:
        String like "3/15/2024", or an empty string when dt is None
    """
    if dt is None:
        return ""
    return f"{dt.month}/{dt.day}/{dt.year}"


def format_iso_date(dt: Optional[datetime]) -> str:
    """Format the calendar day of dt as YYYY-MM-DD, or '' when dt is None."""
    if dt is None:
        return ""
    return date(dt.year, dt.month, dt.day).isoformat()
