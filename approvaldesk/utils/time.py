"""Time utilities."""
from datetime import UTC, date, datetime, time, timezone


def utcnow() -> datetime:
    """Return current UTC time with timezone awareness."""

    return datetime.now(tz=UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive values (SQLite drops offsets) and convert aware ones."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_utc(value: str) -> datetime:
    """Parse an ISO 8601 string and normalize it to UTC."""

    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ensure_utc(dt)


def is_date_only(value: str) -> bool:
    """Return True for bare ``YYYY-MM-DD`` values."""

    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return len(value) == 10


def parse_period_bound(value: str, *, end: bool = False) -> datetime:
    """Parse a period boundary; a bare date covers the whole day."""

    if is_date_only(value):
        day = date.fromisoformat(value)
        moment = time.max if end else time.min
        return datetime.combine(day, moment, tzinfo=timezone.utc)
    return parse_iso_utc(value)


def format_report_timestamp(value: datetime) -> str:
    """Render a timestamp the way export reports show it."""

    return ensure_utc(value).strftime("%Y-%m-%d %H:%M:%S UTC")


__all__ = [
    "utcnow",
    "ensure_utc",
    "parse_iso_utc",
    "is_date_only",
    "parse_period_bound",
    "format_report_timestamp",
]
