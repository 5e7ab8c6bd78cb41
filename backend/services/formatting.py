"""Hour, number and date helpers shared by the report modules."""

import math
import re
from datetime import datetime, timezone
from typing import Optional

_HOURS_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*h")
_MINUTES_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*m")
_TIME_COMPONENT = re.compile(r"T\d")


def format_hours(decimal_hours) -> str:
    """Format decimal hours as "3h 15m", or "-" for zero."""
    if not decimal_hours:
        return "-"
    total_minutes = math.floor(decimal_hours * 60)
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m"


def format_difference(difference: float) -> str:
    if difference == 0:
        return "-"
    return format_hours(abs(difference))


def format_number(value) -> str:
    """Render 5.0 as "5" and 2.5 as "2.5"."""
    number = to_number(value)
    if number == int(number):
        return str(int(number))
    return f"{number:g}"


def to_number(value) -> float:
    """Coerce user or API input to a float, 0 when it is not numeric."""
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_hours_text(value) -> float:
    """Parse "2h 30m" style text into decimal hours.

    Plain numbers are taken as hours. Anything unparseable is 0.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return to_number(value)

    text = str(value or "").strip()
    hours_match = _HOURS_PATTERN.search(text)
    minutes_match = _MINUTES_PATTERN.search(text)
    if not hours_match and not minutes_match:
        return to_number(text)

    hours = float(hours_match.group(1)) if hours_match else 0.0
    minutes = float(minutes_match.group(1)) if minutes_match else 0.0
    return hours + minutes / 60


def has_time_component(date_str: Optional[str]) -> bool:
    return bool(date_str) and bool(_TIME_COMPONENT.search(date_str))


def parse_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse a Jira date string into an aware datetime.

    Values without an offset are read as UTC.
    """
    if not date_str:
        return None

    # Jira formats: "2024-10-31T12:11:56.289-0400", "2024-01-14T00:00:00.000Z"
    formats = [
        "%Y-%m-%dT%H:%M:%S.%f%z",
        "%Y-%m-%dT%H:%M:%S%z",
        "%Y-%m-%dT%H:%M%z",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%dT%H:%M",
        "%Y-%m-%d"
    ]

    for fmt in formats:
        try:
            parsed = datetime.strptime(date_str.strip(), fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    return None


def format_date(date_str: Optional[str]) -> str:
    """Return the yyyy-mm-dd (UTC) part of a Jira timestamp."""
    parsed = parse_date(date_str)
    if parsed is None:
        return (date_str or "")[:10]
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d")
