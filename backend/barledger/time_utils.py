from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime (or bare date) and normalize to UTC-naive.

    - None / "" -> None
    - "YYYY-MM-DD" is midnight UTC of that day
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """Aware values are converted to UTC and stripped; naive values are already UTC."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_local(dt: datetime, tz: Optional[tzinfo]) -> datetime:
    """UTC-naive -> wall clock in tz (naive). tz=None leaves the value as is."""
    if tz is None:
        return dt
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz).replace(tzinfo=None)


def from_local(dt: datetime, tz: Optional[tzinfo]) -> datetime:
    """Wall clock in tz (naive) -> UTC-naive. tz=None leaves the value as is."""
    if tz is None:
        return dt
    return dt.replace(tzinfo=tz).astimezone(timezone.utc).replace(tzinfo=None)


def local_day_bounds(day: date, tz: Optional[tzinfo]) -> tuple[datetime, datetime]:
    """UTC-naive [first, last] instants of a calendar day in tz."""
    return from_local(start_of_day(day), tz), from_local(end_of_day(day), tz)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize to ISO-8601 with trailing 'Z'; naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def start_of_day(value: datetime | date) -> datetime:
    d = value.date() if isinstance(value, datetime) else value
    return datetime.combine(d, time.min)


def end_of_day(value: datetime | date) -> datetime:
    d = value.date() if isinstance(value, datetime) else value
    return datetime.combine(d, time.max)


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def days_in_month(value: datetime | date) -> int:
    return calendar.monthrange(value.year, value.month)[1]


def previous_period(start: datetime, end: datetime, tz: Optional[tzinfo] = None) -> tuple[datetime, datetime]:
    """The equal-length run of whole days (in tz) immediately before [start, end]."""
    local_start, local_end = to_local(start, tz), to_local(end, tz)
    days = (local_end.date() - local_start.date()).days + 1
    return (
        from_local(start_of_day(local_start - timedelta(days=days)), tz),
        from_local(end_of_day(local_end - timedelta(days=days)), tz),
    )


def parse_business_datetime(value: Optional[str], tz: Optional[tzinfo]) -> Optional[datetime]:
    """
    Like parse_iso_datetime, but a bare "YYYY-MM-DD" is midnight of that
    day in tz rather than in UTC.
    """
    if value is not None and len(value.strip()) == 10:
        return from_local(start_of_day(date.fromisoformat(value.strip())), tz)
    return parse_iso_datetime(value)
