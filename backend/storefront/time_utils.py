from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context


DEFAULT_STORE_TIMEZONE = "America/Argentina/Buenos_Aires"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" is read as midnight of that day
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_day(value: str) -> date:
    """Parse a strict YYYY-MM-DD day string."""
    return date.fromisoformat(value.strip())


def store_timezone() -> ZoneInfo:
    """Zone of the shop (STORE_TIMEZONE); calendar days and tickets use it."""
    name = current_app.config.get("STORE_TIMEZONE") if has_app_context() else None
    return ZoneInfo(name or DEFAULT_STORE_TIMEZONE)


def to_local(dt: datetime) -> datetime:
    """UTC-naive (or aware) datetime -> aware datetime in the shop zone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(store_timezone())


def local_today(now: Optional[datetime] = None) -> date:
    return to_local(now or utcnow()).date()


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """
    Inclusive bounds of a shop-local calendar day, as UTC-naive datetimes.

    Stored timestamps are UTC, so a local day maps to [local 00:00, next local
    00:00) shifted to UTC.
    """
    tz = store_timezone()
    start = datetime.combine(day, time.min, tzinfo=tz)
    next_start = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    start_utc = start.astimezone(timezone.utc).replace(tzinfo=None)
    end_utc = next_start.astimezone(timezone.utc).replace(tzinfo=None) - timedelta(microseconds=1)
    return start_utc, end_utc


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
