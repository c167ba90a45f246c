"""
Phone normalization for leads.

Stored phones are digits only. Duplicate detection compares the last 8 digits
(the "phone key"), so "+55 11 98231-509" and "11982315 09" collide while
country/area code formatting differences do not matter.
"""
import re
from typing import Optional

_NON_DIGITS = re.compile(r"\D")

PHONE_KEY_LENGTH = 8


def digits_only(phone: Optional[str]) -> str:
    """Strip everything that is not a digit. None becomes ''."""
    if not phone:
        return ""
    return _NON_DIGITS.sub("", phone)


def phone_key(phone: Optional[str], length: int = PHONE_KEY_LENGTH) -> Optional[str]:
    """
    Dedup key for a phone: the last `length` digits.

    Shorter numbers use all their digits. Returns None when there are no digits.
    """
    digits = digits_only(phone)
    if not digits:
        return None
    return digits[-length:]


def mask_phone(phone: Optional[str]) -> str:
    """Mask a phone for logging (first 4 digits + ***)."""
    digits = digits_only(phone)
    if not digits:
        return "unknown"
    return digits[:4] + "***"
