from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def business_tz(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown time zone: {name}") from exc


def local_today(tz: ZoneInfo, now: datetime | None = None) -> date:
    """Business date of a UTC-naive instant (defaults to now)."""
    now = now or utcnow()
    return now.replace(tzinfo=timezone.utc).astimezone(tz).date()


def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """
    UTC-naive [start, end) bounds of a business day.

    Midnight is taken in the business zone, so a Manila day starts at
    16:00 UTC of the previous calendar day.
    """
    starts_at = datetime.combine(day, time.min, tzinfo=tz)
    ends_at = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return (
        starts_at.astimezone(timezone.utc).replace(tzinfo=None),
        ends_at.astimezone(timezone.utc).replace(tzinfo=None),
    )


def parse_day(value) -> Optional[date]:
    """Accept a date, a datetime (date part) or a YYYY-MM-DD string."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    return date.fromisoformat(s)
