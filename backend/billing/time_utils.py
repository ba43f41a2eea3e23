from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def parse_iso_date(value) -> Optional[date]:
    """
    Parse a business date ("YYYY-MM-DD").

    - None / "" -> None
    - date / datetime instances pass through (datetime is truncated)
    - Raises ValueError on anything else
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def to_iso_date(d: Optional[date]) -> Optional[str]:
    if d is None:
        return None
    return d.isoformat()


def to_gst_date(d: Optional[date]) -> str:
    """GST portal date format: DD-MM-YYYY ('' for missing dates)."""
    if d is None:
        return ""
    return d.strftime("%d-%m-%Y")


def parse_return_period(period: str) -> tuple[date, date]:
    """
    Parse a GSTR-1 return period ("MMYYYY") into an inclusive date range.

    Raises ValueError for malformed periods.
    """
    s = (period or "").strip()
    if len(s) != 6 or not s.isdigit():
        raise ValueError("period must be in MMYYYY format")
    month = int(s[:2])
    year = int(s[2:])
    if not 1 <= month <= 12:
        raise ValueError("period month must be between 01 and 12")
    start = date(year, month, 1)
    if month == 12:
        end = date(year, 12, 31)
    else:
        end = date.fromordinal(date(year, month + 1, 1).toordinal() - 1)
    return start, end


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
