"""
Time helpers.

All persisted timestamps are naive UTC so that comparisons behave the same
on PostgreSQL and SQLite.
"""

import uuid
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


def to_epoch(value: datetime) -> int:
    """Whole seconds since the epoch for a naive-UTC or aware datetime."""
    return int(as_naive_utc(value).replace(tzinfo=timezone.utc).timestamp())


def from_epoch(seconds: int | float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
