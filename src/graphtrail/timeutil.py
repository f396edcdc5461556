"""Timestamp formatting for history panel rows.

Supports:
- Compact: "just now", "5m ago", "3h ago", then the calendar date
- Long: "2 days ago", "3 weeks ago" (history listings)
"""

from datetime import datetime, timezone

from .constants import (
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
    SECONDS_PER_MONTH,
    SECONDS_PER_WEEK,
    SECONDS_PER_YEAR,
)


def _elapsed_seconds(dt: datetime, now: datetime | None) -> float:
    if now is None:
        now = datetime.now(timezone.utc)
    # Treat naive datetimes as UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - dt).total_seconds()


def format_entry_time(dt: datetime, now: datetime | None = None) -> str:
    """Format an entry timestamp the way the history panel shows it.

    Examples:
        >>> format_entry_time(now - timedelta(seconds=20), now)
        'just now'
        >>> format_entry_time(now - timedelta(minutes=5), now)
        '5m ago'
        >>> format_entry_time(datetime(2025, 1, 15, tzinfo=timezone.utc), now)
        '2025-01-15'
    """
    seconds = _elapsed_seconds(dt, now)

    if seconds < SECONDS_PER_MINUTE:
        return "just now"
    if seconds < SECONDS_PER_HOUR:
        return f"{int(seconds // SECONDS_PER_MINUTE)}m ago"
    if seconds < SECONDS_PER_DAY:
        return f"{int(seconds // SECONDS_PER_HOUR)}h ago"
    return dt.date().isoformat()


# Largest unit first; the first one that fits names the age
_AGE_UNITS = (
    (SECONDS_PER_YEAR, "year"),
    (SECONDS_PER_MONTH, "month"),
    (SECONDS_PER_WEEK, "week"),
    (SECONDS_PER_DAY, "day"),
    (SECONDS_PER_HOUR, "hour"),
    (SECONDS_PER_MINUTE, "minute"),
)


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """Long form of an entry's age for history listings, e.g. "3 hours ago".

    Entries younger than a minute read "just now", as in the panel. A
    timestamp slightly ahead of *now* (clock skew) reads "just now" too.
    """
    seconds = _elapsed_seconds(dt, now)
    if seconds < SECONDS_PER_MINUTE:
        return "just now"

    unit_seconds, unit = next(u for u in _AGE_UNITS if seconds >= u[0])
    count = int(seconds // unit_seconds)
    return f"{count} {unit}{'' if count == 1 else 's'} ago"
