from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
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


def parse_iso_date(value) -> Optional[date]:
    """
    Accept a date, a datetime or an ISO-8601 string and return a plain date.

    Full datetimes are normalized to UTC before the date part is taken.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if len(s) == 10:
            return date.fromisoformat(s)
        dt = parse_iso_datetime(s)
        return dt.date() if dt else None
    raise ValueError("invalid date")


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


def iso_week(value: date) -> tuple[int, int]:
    """
    ISO-8601 (week_number, year) for a date.

    Weeks start on Monday and week 1 is the week holding the year's first
    Thursday, so the ISO year can differ from the calendar year around
    January 1st (2021-01-01 is week 53 of 2020).
    """
    if isinstance(value, datetime):
        value = value.date()
    iso_year, week_number, _ = value.isocalendar()
    return week_number, iso_year


def week_bounds(value: date) -> tuple[datetime, datetime]:
    """Monday 00:00 through Sunday 23:59:59.999999 of the ISO week holding value."""
    if isinstance(value, datetime):
        value = value.date()
    monday = value - timedelta(days=value.weekday())
    start = datetime(monday.year, monday.month, monday.day)
    end = start + timedelta(days=7) - timedelta(microseconds=1)
    return start, end
