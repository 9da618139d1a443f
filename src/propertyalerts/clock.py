"""Time helpers shared by the stores and the scheduler."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

# Fixed-width format so stored timestamps compare correctly as text
DB_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Normalise a datetime to UTC, treating naive values as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_db(dt: datetime) -> str:
    return as_utc(dt).strftime(DB_TIME_FORMAT)


def from_db(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, DB_TIME_FORMAT).replace(tzinfo=timezone.utc)


def calendar_day(dt: datetime, tz_name: str) -> date:
    """Calendar day of `dt` as seen in the given timezone."""
    return as_utc(dt).astimezone(ZoneInfo(tz_name)).date()
