"""UTC time helpers.

Token claims, session expiry and audit rows are all compared in UTC.
Postgres returns TIMESTAMPTZ values in the connection's timezone
(Asia/Ho_Chi_Minh on the ward servers), so rows are normalised on read.
"""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Current time, timezone-aware, in UTC."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert an aware datetime to UTC.

    Raises ValueError for naive datetimes: their zone is unknown and
    guessing would shift session expiry by hours.
    """
    if dt.tzinfo is None:
        raise ValueError("Cannot convert naive datetime to UTC")
    return dt.astimezone(timezone.utc)
