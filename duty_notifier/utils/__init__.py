"""Utility functions for dates, timestamps and clock-time rendering."""

from .timestamps import (
    ensure_utc,
    format_clock_time,
    format_timestamp,
    parse_date,
    parse_iso_datetime,
    resolve_timezone,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "parse_date",
    "format_timestamp",
    "resolve_timezone",
    "format_clock_time",
]
