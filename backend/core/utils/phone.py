"""
Phone number utilities for Israeli phone numbers.
"""

import re

ISRAELI_MOBILE_PREFIXES = ("050", "051", "052", "053", "054", "055", "056", "057", "058", "059")

_NON_DIGITS = re.compile(r"[^\d+]")
_NORMALIZED_MOBILE = re.compile(r"^\+972\d{9}$")


def normalize_phone_number(phone: str) -> str:
    """
    Normalize a phone number to international format (+972...).

    Handles the usual Israeli formats:
        0501234567     -> +972501234567
        050-123-4567   -> +972501234567
        972501234567   -> +972501234567
        +972501234567  -> +972501234567
    """
    cleaned = _NON_DIGITS.sub("", phone or "")

    if cleaned.startswith("+972"):
        return cleaned
    if cleaned.startswith("972"):
        return "+" + cleaned
    if cleaned.startswith("0"):
        return "+972" + cleaned[1:]
    if re.fullmatch(r"\d{9}", cleaned):
        return "+972" + cleaned
    return cleaned if cleaned.startswith("+") else "+" + cleaned


def is_valid_israeli_mobile(phone: str) -> bool:
    """Check that a number is an Israeli mobile number (prefixes 050-059)."""
    normalized = normalize_phone_number(phone)
    if not _NORMALIZED_MOBILE.match(normalized):
        return False
    return "0" + normalized[4:6] in ISRAELI_MOBILE_PREFIXES


def to_local_format(phone: str) -> str:
    """+972501234567 -> 0501234567"""
    normalized = normalize_phone_number(phone)
    if not normalized.startswith("+972"):
        return phone
    return "0" + normalized[4:]


def mask_phone(phone: str) -> str:
    """
    Mask a phone number for logs and admin listings.

    +972501234567 -> 050-***-4567
    """
    local = to_local_format(phone)
    if len(local) == 10:
        return f"{local[:3]}-***-{local[6:]}"
    if len(local) > 6:
        return local[:3] + "***" + local[-4:]
    return "***"
