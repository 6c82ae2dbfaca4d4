"""Canonical field validators shared by every request model.

Each function either returns the normalised value or raises ``ValueError``
with a user-facing message, which pydantic surfaces as a validation error.
"""

from __future__ import annotations

import re

PHONE_RE = re.compile(r"^\+?[0-9]{8,15}$")
CODE_RE = re.compile(r"^[0-9]{6}$")
# Indian GSTIN: state code, PAN, entity number, 'Z', checksum
GST_RE = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
UPI_RE = re.compile(r"^[a-zA-Z0-9.\-_]{2,256}@[a-zA-Z]{2,64}$")

_PHONE_SEPARATORS = re.compile(r"[\s\-.()]")

MIN_PASSWORD_LENGTH = 6
MAX_SECRET_BYTES = 1024


def normalize_phone(value: str) -> str:
    """Strip formatting characters and check the result is 8–15 digits.

    ``"+91 98765-43210"`` → ``"+919876543210"``.
    """
    phone = _PHONE_SEPARATORS.sub("", value or "")
    if not PHONE_RE.match(phone):
        raise ValueError(
            'Phone number must be between 8 and 15 digits, optionally starting with "+"'
        )
    return phone


def validate_code(value: str) -> str:
    code = (value or "").strip()
    if not CODE_RE.match(code):
        raise ValueError("OTP must be exactly 6 digits")
    return code


def validate_full_name(value: str) -> str:
    name = (value or "").strip()
    if len(name) < 3:
        raise ValueError("Full name must be at least 3 characters long")
    return name


def validate_shop_address(value: str) -> str:
    address = (value or "").strip()
    if len(address) < 5:
        raise ValueError("Shop address must be at least 5 characters long")
    return address


def validate_tax_id(value: str) -> str:
    """GST number; compared case-insensitively and stored upper-case."""
    gst = (value or "").strip().upper()
    if not GST_RE.match(gst):
        raise ValueError("Invalid GST number format")
    return gst


def validate_payout_id(value: str) -> str:
    """UPI handle, e.g. ``shop.owner@okbank``."""
    upi = (value or "").strip()
    if not UPI_RE.match(upi):
        raise ValueError("Invalid UPI ID format")
    return upi


def validate_password(value: str) -> str:
    if not value or len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if len(value.encode("utf-8")) > MAX_SECRET_BYTES:
        raise ValueError("Password is too long")
    return value
