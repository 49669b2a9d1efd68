"""Centralized datetime utilities for consistent timezone handling.

All functions return naive UTC datetimes for database compatibility
(SQLAlchemy models store naive UTC).

Usage:
    from focusroom.core.datetime_utils import utc_now, get_cutoff

    # Current time
    now = utc_now()

    # Get cutoff for queries
    cutoff = get_cutoff(days=7)
    items = query.filter(Item.created_at >= cutoff)
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Get current UTC time as naive datetime.

    Returns naive datetime for database compatibility.
    """
    return datetime.now(UTC).replace(tzinfo=None)


def is_expired(expires_at: datetime) -> bool:
    """Check if a timestamp has expired.

    Args:
        expires_at: Expiry timestamp (naive UTC)

    Returns:
        True if current time is past expires_at
    """
    return utc_now() > expires_at


def get_cutoff(hours: int = 0, days: int = 0, now: datetime | None = None) -> datetime:
    """Get cutoff datetime for filtering queries.

    Args:
        hours: Hours to subtract from now
        days: Days to subtract from now
        now: Reference time, defaults to the current UTC time

    Returns:
        Naive UTC datetime representing the cutoff point
    """
    delta = timedelta(hours=hours, days=days)
    return (now or utc_now()) - delta


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
    return dt.astimezone(UTC).replace(tzinfo=None)


def describe_elapsed(since: datetime, now: datetime | None = None) -> str:
    """Describe the time between ``since`` and ``now`` in words.

    Examples: "7 days", "about 1 month", "3 hours", "less than a minute".
    """
    seconds = max(((now or utc_now()) - since).total_seconds(), 0)
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "less than a minute"
    if hours < 1:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    if days < 1:
        return f"about {hours} hour{'s' if hours != 1 else ''}"
    if days < 30:
        return f"{days} day{'s' if days != 1 else ''}"
    months = days // 30
    return f"about {months} month{'s' if months != 1 else ''}"


def format_date(dt: datetime | None) -> str:
    """Format a timestamp as a short calendar date for reports (e.g. "Mar 4, 2026")."""
    if dt is None:
        return ""
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}"
