"""UTC-everywhere time handling. Eliminates timezone bugs at the source."""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def from_unix_seconds(seconds: int | float) -> datetime:
    """
    Convert a Unix timestamp in seconds (Stripe's format) to a UTC datetime.

    Raises ValueError for negative timestamps.
    """
    if seconds < 0:
        raise ValueError(f"Invalid Unix timestamp: {seconds}")
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def unix_millis(dt: datetime) -> int:
    """
    Milliseconds since the Unix epoch.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )
    return int(dt.timestamp() * 1000)
