"""Centralized datetime utilities for consistent timezone handling.

All functions return naive UTC datetimes for database compatibility
(SQLAlchemy models store naive UTC).

Usage:
    from cragsync.core.datetime_utils import utc_now, get_cutoff, get_expiry

    # Current time
    now = utc_now()

    # Get cutoff for queries
    cutoff = get_cutoff(hours=24)
    jobs = select(JobExecution).where(JobExecution.started_at > cutoff)

    # Next scheduled sync
    next_sync_at = get_expiry(hours=24)
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Get current UTC time as naive datetime.

    Returns naive datetime for database compatibility.
    Replaces deprecated datetime.utcnow().
    """
    return datetime.now(UTC).replace(tzinfo=None)


def get_cutoff(hours: int = 0, days: int = 0) -> datetime:
    """Get cutoff datetime for filtering queries.

    Args:
        hours: Hours to subtract from now
        days: Days to subtract from now

    Returns:
        Naive UTC datetime representing the cutoff point
    """
    delta = timedelta(hours=hours, days=days)
    return utc_now() - delta


def get_expiry(minutes: int = 0, hours: int = 0, days: int = 0) -> datetime:
    """Get future datetime, e.g. the next time a location is due for sync.

    Args:
        minutes: Minutes to add to now
        hours: Hours to add to now
        days: Days to add to now

    Returns:
        Naive UTC datetime representing the expiry point
    """
    delta = timedelta(minutes=minutes, hours=hours, days=days)
    return utc_now() + delta


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Naive UTC datetime for database compatibility
    """
    if dt.tzinfo is None:
        # Already naive, assume it's UTC
        return dt
    # Convert to UTC and strip timezone
    return dt.astimezone(UTC).replace(tzinfo=None)


def parse_api_datetime(value: str | None) -> datetime | None:
    """Parse a timestamp from the Kaya API.

    Accepts RFC3339 timestamps ("2024-05-01T12:30:00Z") and falls back to
    plain dates ("2024-05-01"). Returns None for empty values.

    Raises:
        ValueError: If the value matches neither format
    """
    if not value:
        return None
    try:
        return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return datetime.strptime(value[:10], "%Y-%m-%d")
