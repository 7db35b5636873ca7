from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
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

    if dt.tzinfo is None:
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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


def parse_date(value) -> date:
    """Accept a date or a 'YYYY-MM-DD' string. Raises ValueError otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("date must be YYYY-MM-DD")
    return date.fromisoformat(value.strip())


def parse_clock_time(value) -> time:
    """
    Accept a time or an 'HH:MM' / 'HH:MM:SS' string.

    Wall-clock only: any tzinfo is rejected because appointment times
    are local to the business.
    """
    if isinstance(value, time):
        parsed = value
    elif isinstance(value, str):
        parsed = time.fromisoformat(value.strip())
    else:
        raise ValueError("time must be HH:MM")
    if parsed.tzinfo is not None:
        raise ValueError("time must not carry a timezone")
    return parsed.replace(microsecond=0)


def format_clock_time(value: Optional[time]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%H:%M")


def add_minutes(day: date, start: time, minutes: int) -> datetime:
    """
    Wall-clock addition. The result may land on the following day
    (23:30 + 60 minutes -> 00:30 next day).
    """
    return datetime.combine(day, start) + timedelta(minutes=minutes)


def parse_month(value: str) -> tuple[date, date]:
    """
    'YYYY-MM' -> (first day of month, first day of next month).
    Raises ValueError for anything else.
    """
    if not isinstance(value, str):
        raise ValueError("month must be YYYY-MM")
    parts = value.strip().split("-")
    if len(parts) != 2 or len(parts[0]) != 4 or len(parts[1]) != 2:
        raise ValueError("month must be YYYY-MM")
    year, month = int(parts[0]), int(parts[1])
    start = date(year, month, 1)
    if month == 12:
        end = date(year + 1, 1, 1)
    else:
        end = date(year, month + 1, 1)
    return start, end


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"
