"""Time utilities."""
from datetime import UTC, datetime, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Return current UTC time with timezone awareness."""

    return datetime.now(tz=UTC)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local(value: datetime, tz_name: str) -> datetime:
    """Return the wall-clock time of ``value`` in ``tz_name``.

    Naive datetimes are assumed to already be local wall-clock time.
    """

    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(tz_name))


__all__ = ["utcnow", "as_utc", "to_local"]
