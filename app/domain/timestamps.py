from datetime import datetime, timedelta, timezone
from typing import Optional

# Timestamps travel as ISO strings with millisecond precision; everything is
# normalized to that before it is stored or compared.
PRECISION = timedelta(milliseconds=1)


def normalize(value: Optional[datetime]) -> Optional[datetime]:
    """
    Returns the canonical form of a timestamp: UTC, truncated to milliseconds.
    Naive values (e.g. read back from SQLite) are taken to be UTC already.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


def utcnow() -> datetime:
    return normalize(datetime.now(timezone.utc))


def advance(previous: Optional[datetime]) -> datetime:
    """
    Returns a fresh modification stamp that is strictly after `previous`,
    even when the wall clock has not moved (or went backwards).
    """
    now = utcnow()
    previous = normalize(previous)
    if previous is not None and now <= previous:
        return previous + PRECISION
    return now


def same_instant(a: Optional[datetime], b: Optional[datetime]) -> bool:
    return normalize(a) == normalize(b)


def is_after(a: datetime, b: datetime) -> bool:
    return normalize(a) > normalize(b)
