from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional

from .errors import InvalidDateRange


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


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

    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise InvalidDateRange("Invalid datetime. Use ISO-8601", details={"value": value})

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

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


def to_iso_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None


def parse_date(value, field: str = "date") -> date:
    """Accept a date, a datetime or a strict YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise InvalidDateRange(f"Invalid {field}. Use YYYY-MM-DD", details={field: value})


def parse_salary_month(value) -> tuple[date, date]:
    """
    Resolve a salary month 'YYYY-MM' to its first and last calendar day.
    """
    if not isinstance(value, str) or len(value.strip()) != 7:
        raise InvalidDateRange("Invalid salary month format. Use YYYY-MM", details={"salary_month": value})
    try:
        year, month = (int(part) for part in value.strip().split("-"))
        first = date(year, month, 1)
    except ValueError:
        raise InvalidDateRange("Invalid salary month format. Use YYYY-MM", details={"salary_month": value})
    return first, month_end(first)


def parse_date_range(start, end) -> tuple[date, date]:
    start_d = parse_date(start, "start_date")
    end_d = parse_date(end, "end_date")
    if start_d > end_d:
        raise InvalidDateRange(
            "end_date cannot be before start_date",
            details={"start_date": start_d.isoformat(), "end_date": end_d.isoformat()},
        )
    return start_d, end_d


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def salary_month_of(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def iter_days(start: date, end: date) -> Iterator[date]:
    """Inclusive day iterator."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """[start 00:00, end+1 00:00) for filtering datetime columns by inclusive dates."""
    return (
        datetime.combine(start, datetime.min.time()),
        datetime.combine(end + timedelta(days=1), datetime.min.time()),
    )
