"""
Tests for phone number utilities.
"""

import pytest

from core.utils.phone import (
    is_valid_israeli_mobile,
    mask_phone,
    normalize_phone_number,
    to_local_format,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("0501234567", "+972501234567"),
        ("050-123-4567", "+972501234567"),
        ("972501234567", "+972501234567"),
        ("+972501234567", "+972501234567"),
        ("501234567", "+972501234567"),
        ("+1 (212) 555-0100", "+12125550100"),
    ],
)
def test_normalize_phone_number(raw, expected):
    assert normalize_phone_number(raw) == expected


@pytest.mark.parametrize(
    "phone,valid",
    [
        ("0501234567", True),
        ("054-999-8877", True),
        ("+972591234567", True),
        ("0312345678", False),
        ("05012345", False),
        ("+12125550100", False),
        ("", False),
    ],
)
def test_is_valid_israeli_mobile(phone, valid):
    assert is_valid_israeli_mobile(phone) is valid


def test_to_local_format():
    assert to_local_format("+972501234567") == "0501234567"


def test_mask_phone_hides_middle_digits():
    assert mask_phone("+972501234567") == "050-***-4567"
