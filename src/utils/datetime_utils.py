"""Datetime utilities for timezone-aware UTC timestamps.

Every timestamp written by the parcel core (tracking history, draft expiry,
notification queue time) goes through these helpers so the whole store uses
one clock and one timezone.

Usage:
    from src.utils.datetime_utils import utc_now

    timestamp = utc_now()

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def utc_in(hours: float) -> datetime:
    """Return the UTC time ``hours`` from now.

    Args:
        hours: Offset in hours (may be fractional or negative)

    Returns:
        Timezone-aware UTC datetime
    """
    return utc_now() + timedelta(hours=hours)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime read back from storage to aware UTC.

    SQLite drops tzinfo on round-trip, so naive values are treated as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
