"""
Datetime utilities.

Provides timezone-aware datetime functions. Month boundaries are UTC.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def month_start(moment: datetime | None = None) -> datetime:
    """
    Get the first instant of the month containing moment.

    Args:
        moment: Reference time (default: now)

    Returns:
        First day of the month, 00:00 UTC
    """
    moment = moment or utc_now()
    return datetime(moment.year, moment.month, 1, tzinfo=UTC)


def month_key(moment: datetime | None = None) -> str:
    """
    Format a month as YYYY-MM.

    Naive datetimes (as returned by SQLite) are treated as UTC.
    """
    moment = moment or utc_now()
    return f"{moment.year:04d}-{moment.month:02d}"


def previous_month_key(moment: datetime | None = None) -> str:
    """Format the month before moment as YYYY-MM."""
    moment = moment or utc_now()
    if moment.month == 1:
        return f"{moment.year - 1:04d}-12"
    return f"{moment.year:04d}-{moment.month - 1:02d}"
