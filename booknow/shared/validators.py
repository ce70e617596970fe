"""Shared validation utilities"""

import re
from datetime import date, datetime, time
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_PATTERN = re.compile(r"^\d{4}-\d{2}$")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Stripped email address, or None if input is empty

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")
    return email


def parse_date(value: str) -> Optional[date]:
    """Parse a strict YYYY-MM-DD date. Returns None when invalid."""
    if not value or not DATE_PATTERN.match(value):
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_month(value: str) -> Optional[date]:
    """Parse YYYY-MM into the first day of that month"""
    if not value or not MONTH_PATTERN.match(value):
        return None
    try:
        return datetime.strptime(value, "%Y-%m").date()
    except ValueError:
        return None


def parse_time(value: str) -> Optional[time]:
    """Parse HH:MM or HH:MM:SS. Returns None when invalid."""
    if not value:
        return None

    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            parsed = datetime.strptime(value, fmt).time()
        except ValueError:
            continue
        # strptime accepts single digit hours, require the canonical width
        if parsed.strftime(fmt) == value:
            return parsed
    return None


def validate_date(value: str) -> bool:
    return parse_date(value) is not None


def validate_time(value: str) -> bool:
    return parse_time(value) is not None


def normalize_time(value: str) -> Optional[str]:
    """Normalize a valid time string to HH:MM:SS"""
    parsed = parse_time(value)
    return parsed.strftime("%H:%M:%S") if parsed else None
