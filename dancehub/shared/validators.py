"""Shared validation utilities"""

import re
from datetime import date
from typing import Optional

IBAN_PATTERN = re.compile(r"^[A-Z]{2}\d{2}[A-Z0-9]+$", re.ASCII)
ROUTING_NUMBER_WEIGHTS = (3, 7, 1, 3, 7, 1, 3, 7, 1)
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-\(\)]+$", re.ASCII)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
WEBSITE_PATTERN = re.compile(r"^(https?://)?([\da-z.-]+)\.([a-z.]{2,6})([/\w .-]*)/?$", re.ASCII)
SSN_LAST_4_PATTERN = re.compile(r"^\d{4}$", re.ASCII)
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$", re.ASCII)
TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")
DIGITS_PATTERN = re.compile(r"[0-9]+")

POSTAL_CODE_PATTERNS = {
    "US": (re.compile(r"^\d{5}(-\d{4})?$", re.ASCII), "Invalid US ZIP code format (e.g., 12345 or 12345-6789)"),
    "CA": (
        re.compile(r"^[A-Za-z]\d[A-Za-z][ -]?\d[A-Za-z]\d$", re.ASCII),
        "Invalid Canadian postal code format (e.g., K1A 0A6)",
    ),
    "GB": (
        re.compile(r"^[A-Z]{1,2}\d[A-Z\d]? ?\d[A-Z]{2}$", re.IGNORECASE | re.ASCII),
        "Invalid UK postal code format (e.g., SW1A 1AA)",
    ),
}


def normalize_iban(iban: str) -> str:
    """Strip all whitespace and uppercase"""
    return re.sub(r"\s+", "", iban or "").upper()


def is_valid_iban(iban: Optional[str]) -> bool:
    """
    Shape check only: country code, two check digits, alphanumeric BBAN, 15-34 chars.
    The mod-97 checksum is deliberately not enforced.
    """
    if not iban:
        return False
    normalized = normalize_iban(iban)
    if len(normalized) < 15 or len(normalized) > 34:
        return False
    return bool(IBAN_PATTERN.match(normalized))


def is_digits(value: Optional[str]) -> bool:
    """ASCII digits only, unlike str.isdigit"""
    return bool(value) and DIGITS_PATTERN.fullmatch(value) is not None


def is_valid_routing_number(routing_number: Optional[str]) -> bool:
    """ABA routing number: 9 digits with the 3-7-1 weighted checksum"""
    if not routing_number or len(routing_number) != 9 or not is_digits(routing_number):
        return False
    total = sum(int(digit) * weight for digit, weight in zip(routing_number, ROUTING_NUMBER_WEIGHTS))
    return total % 10 == 0


def postal_code_error(postal_code: str, country: Optional[str]) -> Optional[str]:
    """
    Check a postal code against the format of its country.

    Returns:
        None when valid, otherwise the user-facing error message
    """
    rule = POSTAL_CODE_PATTERNS.get((country or "").upper())
    if rule:
        pattern, message = rule
        if not pattern.match(postal_code):
            return message
        return None

    if len(postal_code) < 3 or len(postal_code) > 10:
        return "Postal code must be between 3 and 10 characters"
    return None


def is_valid_phone(phone: Optional[str]) -> bool:
    return bool(phone) and bool(PHONE_PATTERN.match(phone))


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def is_valid_website(url: Optional[str]) -> bool:
    return bool(url) and bool(WEBSITE_PATTERN.match(url))


def is_valid_ssn_last_4(value: Optional[str]) -> bool:
    return bool(value) and bool(SSN_LAST_4_PATTERN.match(value))


def calculate_age(day: int, month: int, year: int, today: date) -> int:
    """
    Age in whole years on `today`.

    Raises:
        ValueError: If day/month/year is not a calendar date
    """
    birth_date = date(year, month, day)
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def validate_date_string(value: str) -> str:
    """
    Validate a YYYY-MM-DD calendar date.

    Raises:
        ValueError: If the format or the date itself is invalid
    """
    if not value or not DATE_PATTERN.match(value):
        raise ValueError("Invalid date format. Use YYYY-MM-DD")
    date.fromisoformat(value)
    return value


def validate_time_string(value: str) -> str:
    """
    Validate an HH:MM time and zero-pad it so string comparison orders times.

    Raises:
        ValueError: If the format is invalid
    """
    match = TIME_PATTERN.match(value or "")
    if not match:
        raise ValueError("Invalid time format. Use HH:MM format")
    return f"{int(match.group(1)):02d}:{match.group(2)}"
