"""Display formatting for notification bodies and report figures."""

import re
from datetime import date, datetime, time
from typing import Optional, Union

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


def render_template(template: Optional[str], variables: dict) -> str:
    """Replace ``{{name}}`` placeholders. Unknown placeholders are left untouched."""
    if not template:
        return ""

    def _substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in variables:
            return match.group(0)
        value = variables[key]
        return "" if value is None else str(value)

    return VARIABLE_PATTERN.sub(_substitute, template)


def format_display_date(value: Union[date, str, None], default: str = "Date TBD") -> str:
    """Monday, January 6, 2025"""
    if not value:
        return default
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    return f"{value.strftime('%A, %B')} {value.day}, {value.year}"


def format_display_time(value: Union[time, str, None], default: str = "Time TBD") -> str:
    """2:30 PM"""
    if not value:
        return default
    if isinstance(value, str):
        try:
            value = time.fromisoformat(value)
        except ValueError:
            return value
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def format_label(value: Optional[str]) -> str:
    """sole_proprietorship -> Sole Proprietorship"""
    if not value:
        return ""
    return " ".join(part.capitalize() for part in value.split("_"))


def percent_change(current: float, previous: float) -> float:
    if previous > 0:
        return ((current - previous) / previous) * 100
    return 0


def isoformat(value: Union[date, datetime, time, None]) -> Optional[str]:
    return value.isoformat() if value is not None else None
