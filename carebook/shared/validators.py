"""Shared validation utilities"""

import re
from datetime import time
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_PATTERN = re.compile(r"^\d{10}$")
HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")

    return email


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate a contact phone number.

    The booking form accepts exactly ten digits, nothing else.

    Raises:
        ValueError: If the value is not exactly 10 digits
    """
    if phone is None:
        return phone

    phone = phone.strip()
    if not PHONE_PATTERN.match(phone):
        raise ValueError("Phone number must be exactly 10 digits")

    return phone


def parse_hhmm(value: str) -> time:
    """Parse a 24h 'HH:MM' string into a time"""
    if not isinstance(value, str):
        raise ValueError("Time must be a string in HH:MM format")
    match = HHMM_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time '{value}'. Expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def validate_hhmm(value: Optional[str]) -> Optional[str]:
    """Normalize a 24h 'HH:MM' string"""
    if value is None:
        return value
    return parse_hhmm(value).strftime("%H:%M")
