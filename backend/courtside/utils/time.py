from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

UTC = timezone.utc


def utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(UTC).replace(tzinfo=None)


def utc_naive_to_zone(dt: datetime, tz: ZoneInfo | timezone = UTC) -> datetime:
    return dt.replace(tzinfo=UTC).astimezone(tz)


def zone(name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"unknown timezone {name!r}") from exc


def local_to_utc_naive(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Combine a venue-local date and time-of-day into a UTC-naive instant."""
    return to_utc_naive(datetime.combine(day, at, tzinfo=tz))


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return day.isoweekday() % 7
