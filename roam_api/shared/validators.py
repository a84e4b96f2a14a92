"""Shared validation utilities"""

import re
from datetime import date
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def format_phone_e164(phone: Optional[str]) -> Optional[str]:
    """
    Best-effort E.164 formatting for outbound SMS.

    US shaped numbers get +1; anything else keeps its digits and gets a leading "+".
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if phone.startswith("+"):
        return phone
    return f"+{digits}"


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email.strip()))


def validate_time_of_day(value: Optional[str]) -> bool:
    """True for 24h "HH:MM" strings."""
    return bool(value) and bool(TIME_PATTERN.match(value))


def calculate_age(date_of_birth: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age
