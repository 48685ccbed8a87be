"""
Phone number normalization for WhatsApp messaging.

Customers type Algerian or Mauritanian mobile numbers in whatever shape they
like ("0551 23 45 67", "+213 551234567", "00222 22 34 56 78"). Every stored
phone and every WhatsApp destination uses one canonical form: the country
code followed by the subscriber number, digits only.

Algerian rules are tried before Mauritanian ones. Only the single matching
prefix is stripped (00213, then 213, then a lone leading 0).
"""
import re

from fastapi import Query

from domain.constants import ALGERIA_CODE, MAURITANIA_CODE
from domain.errors import InvalidPhoneError

_NON_DIGITS = re.compile(r"\D")
# Mobile ranges start with 5, 6 or 7. The short (8-digit) plan is still
# accepted alongside the current 9-digit one.
_ALGERIAN_SUBSCRIBER = re.compile(r"^[567]\d{7,8}$")
_MAURITANIAN_SUBSCRIBER = re.compile(r"^[234]\d{7}$")

_ALGERIAN_PREFIXES = ("00" + ALGERIA_CODE, ALGERIA_CODE, "0")
_MAURITANIAN_PREFIXES = ("00" + MAURITANIA_CODE, MAURITANIA_CODE)


def _strip_prefix(digits: str, prefixes: tuple[str, ...]) -> str | None:
    for prefix in prefixes:
        if digits.startswith(prefix):
            return digits[len(prefix):]
    return None


def normalize_phone(raw: str | None) -> str:
    """
    Normalize a user-entered phone number to its canonical form.

    Args:
        raw: Phone number as typed (spaces, dashes, "+" are ignored)

    Returns:
        "213" + subscriber or "222" + subscriber, digits only

    Raises:
        InvalidPhoneError if the number is not a valid Algerian or
        Mauritanian mobile number
    """
    digits = _NON_DIGITS.sub("", raw or "")

    subscriber = _strip_prefix(digits, _ALGERIAN_PREFIXES)
    if subscriber is not None and _ALGERIAN_SUBSCRIBER.match(subscriber):
        return ALGERIA_CODE + subscriber

    subscriber = _strip_prefix(digits, _MAURITANIAN_PREFIXES)
    if subscriber is not None and _MAURITANIAN_SUBSCRIBER.match(subscriber):
        return MAURITANIA_CODE + subscriber

    raise InvalidPhoneError(raw)


def is_valid_phone(raw: str | None) -> bool:
    """True iff normalize_phone() accepts the input."""
    try:
        normalize_phone(raw)
    except InvalidPhoneError:
        return False
    return True


def format_phone_for_display(raw: str) -> str:
    """
    Best-effort human formatting; never raises.

    Algerian numbers use the local form ("0551 23 45 67"), Mauritanian
    numbers keep their country code ("+222 22 34 56 78") so the result
    always normalizes back to the same canonical phone. Input that does not
    normalize is returned unchanged.
    """
    try:
        normalized = normalize_phone(raw)
    except InvalidPhoneError:
        return raw

    if normalized.startswith(ALGERIA_CODE):
        d = normalized[len(ALGERIA_CODE):]
        head = len(d) - 6
        return f"0{d[:head]} {d[head:head + 2]} {d[head + 2:head + 4]} {d[head + 4:]}"

    d = normalized[len(MAURITANIA_CODE):]
    return f"+{MAURITANIA_CODE} {d[0:2]} {d[2:4]} {d[4:6]} {d[6:8]}"


def mask_phone(phone: str) -> str:
    """Log-safe rendering: only the last four digits."""
    return f"***{phone[-4:]}" if phone else "***"


def validated_phone_query(phone: str = Query(..., description="Customer phone number")) -> str:
    """FastAPI dependency for validating phone query parameters."""
    return normalize_phone(phone)
