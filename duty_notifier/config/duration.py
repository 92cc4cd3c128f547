"""Duration parsing for schedule settings.

Accepts short human-readable forms ("15m", "1h30m", "2d") and ISO-8601
durations ("PT15M", "P1D").
"""

import re

_ISO_PATTERN = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)
_HUMAN_PATTERN = re.compile(r"(\d+)([smhd])")
_HUMAN_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""

    pass


def parse_duration(duration_str: str) -> int:
    """
    Parse a duration string to seconds.

    Args:
        duration_str: Duration such as "15m", "1h30m", "PT1H" or "P1D"

    Returns:
        Duration in seconds

    Raises:
        DurationParseError: If the string is empty, malformed or zero

    Examples:
        >>> parse_duration("1h30m")
        5400
        >>> parse_duration("PT15M")
        900
    """
    cleaned = re.sub(r"\s+", "", duration_str or "")
    if not cleaned:
        raise DurationParseError("Duration string cannot be empty")

    if cleaned.upper().startswith("P"):
        total = _parse_iso8601(cleaned.upper())
    else:
        total = _parse_human(cleaned.lower())

    if total == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")
    return total


def _parse_iso8601(value: str) -> int:
    match = _ISO_PATTERN.match(value)
    if not match or value in ("P", "PT"):
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{value}'. "
            "Expected format like 'P1D', 'PT1H30M' or 'PT15M'"
        )
    parts = match.groupdict()
    return (
        int(parts["days"] or 0) * 86400
        + int(parts["hours"] or 0) * 3600
        + int(parts["minutes"] or 0) * 60
        + int(float(parts["seconds"] or 0))
    )


def _parse_human(value: str) -> int:
    matches = _HUMAN_PATTERN.findall(value)
    if not matches or "".join(num + unit for num, unit in matches) != value:
        raise DurationParseError(
            f"Invalid duration format: '{value}'. "
            "Use digits with units s, m, h or d, e.g. '15m', '1h' or '1h30m'"
        )
    return sum(int(num) * _HUMAN_UNITS[unit] for num, unit in matches)


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int = 300,
    max_seconds: int = 86400,
    label: str = "Schedule interval",
) -> None:
    """
    Validate that a duration lies within [min_seconds, max_seconds].

    Raises:
        DurationParseError: If duration is outside the valid range
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {describe_seconds(duration_seconds)}. "
            f"Minimum is {describe_seconds(min_seconds)}."
        )
    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {describe_seconds(duration_seconds)}. "
            f"Maximum is {describe_seconds(max_seconds)}."
        )


def describe_seconds(seconds: int) -> str:
    """Describe a duration with its largest whole unit ("15 minutes", "1 day")."""
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"
