"""Timestamp and date utilities.

Duty windows are calendar dates; duty start/end instants are stored as
ISO 8601 strings and handled internally as timezone-aware UTC datetimes.
Clock times shown to invigilators are rendered in a configured display
timezone.
"""

from datetime import date, datetime, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Example:
        >>> now = utc_now()
        >>> now.tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC; aware ones are converted.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_iso_datetime(iso_string: Optional[str], strict: bool = False) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string to UTC datetime.

    Supports:
    - 2025-10-01T04:00:00Z
    - 2025-10-01T09:30:00+05:30
    - 2025-10-01 04:00:00 (space separator, as written by some databases)
    - 2025-10-01T04:00:00 (treated as UTC)

    Args:
        iso_string: ISO 8601 formatted datetime string
        strict: Raise instead of returning None for unparseable input

    Returns:
        Timezone-aware datetime in UTC, or None for empty input (and for
        unparseable input unless strict)

    Raises:
        ValueError: In strict mode, if the string is not ISO 8601
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        if strict:
            raise
        return None


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse a calendar date.

    Args:
        value: "YYYY-MM-DD" string, full ISO 8601 timestamp, date or datetime

    Returns:
        The date, or None for empty input

    Raises:
        ValueError: If a string is not a valid ISO date or timestamp
        TypeError: For any other type
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise TypeError(f"Expected a date or ISO date string, got {type(value).__name__}")

    cleaned = value.strip()
    if not cleaned:
        return None
    if len(cleaned) == 10:
        return date.fromisoformat(cleaned)

    # A full timestamp keeps the calendar date it was written with
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    return datetime.fromisoformat(cleaned).date()


def format_timestamp(dt: datetime, include_microseconds: bool = False) -> str:
    """Format a datetime as ISO 8601 string in UTC.

    Example:
        >>> format_timestamp(datetime(2025, 10, 1, 4, 0, 0, tzinfo=timezone.utc))
        '2025-10-01T04:00:00Z'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return ""

    if include_microseconds:
        return dt_utc.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%SZ")


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """Resolve an IANA timezone name.

    Args:
        name: Timezone name such as "Asia/Kolkata"; None or "UTC" gives UTC

    Returns:
        tzinfo instance

    Raises:
        ValueError: If the name is unknown
    """
    if not name or name.upper() == "UTC":
        return timezone.utc

    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: '{name}'") from e


def format_clock_time(dt: Optional[datetime], tz: tzinfo = timezone.utc) -> str:
    """Render an instant as a 12-hour clock time in the given timezone.

    Args:
        dt: Instant to render (naive values are treated as UTC)
        tz: Display timezone

    Returns:
        Clock time like "9:30:00 AM", or "" when dt is None

    Example:
        >>> format_clock_time(datetime(2025, 10, 1, 4, 0, tzinfo=timezone.utc))
        '4:00:00 AM'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return ""

    local = dt_utc.astimezone(tz)
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d}:{local.second:02d} {meridiem}"
