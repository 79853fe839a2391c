"""
Input Validation Module

Pure predicates over the shape of user ids, PINs, account ids and raw
amount strings. Nothing here touches account state.
"""

import re
from decimal import Decimal
from typing import Optional

from .money import to_amount


USER_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]{3,20}$")
PIN_PATTERN = re.compile(r"^[0-9]{4}$")
ACCOUNT_ID_PATTERN = re.compile(r"^[A-Z0-9]{5,20}$")
REPEATED_DIGITS_PATTERN = re.compile(r"^([0-9])\1{3}$")
UNSAFE_CHARACTERS = re.compile(r"[^a-zA-Z0-9._@-]")


def is_valid_user_id(user_id: Optional[str]) -> bool:
    """Alphanumeric, 3-20 characters"""
    if not isinstance(user_id, str) or not user_id.strip():
        return False
    return USER_ID_PATTERN.fullmatch(user_id) is not None


def is_valid_pin(pin: Optional[str]) -> bool:
    """Exactly 4 digits"""
    if not isinstance(pin, str):
        return False
    return PIN_PATTERN.fullmatch(pin) is not None


def is_valid_account_id(account_id: Optional[str]) -> bool:
    """Upper-case alphanumeric, 5-20 characters"""
    if not isinstance(account_id, str) or not account_id.strip():
        return False
    return ACCOUNT_ID_PATTERN.fullmatch(account_id) is not None


def is_valid_amount_string(text: Optional[str]) -> bool:
    """True if the text is a positive, finite amount in whole cents"""
    if not isinstance(text, str) or not text.strip():
        return False
    try:
        return to_amount(text) > 0
    except ValueError:
        return False


def is_weak_pin(pin: Optional[str]) -> bool:
    """
    Check if a PIN is weak

    Weak PINs are four repeated digits (1111) or a consecutive run in either
    direction (1234, 4321). Anything that is not four digits counts as weak.
    """
    if not is_valid_pin(pin):
        return True

    if REPEATED_DIGITS_PATTERN.fullmatch(pin):
        return True

    steps = [int(pin[i + 1]) - int(pin[i]) for i in range(3)]
    return all(step == 1 for step in steps) or all(step == -1 for step in steps)


def parse_amount(text: str) -> Decimal:
    """
    Parse raw amount text into a Decimal

    Raises:
        ValueError: If the text is not a positive amount
    """
    if not is_valid_amount_string(text):
        raise ValueError(f"Invalid amount: {text!r}")
    return to_amount(text)


def sanitize_input(text: Optional[str]) -> str:
    """Strip whitespace and anything outside a conservative character set"""
    if not isinstance(text, str):
        return ""
    return UNSAFE_CHARACTERS.sub("", text.strip())


def mask_account_id(account_id: Optional[str]) -> str:
    """Show only the last 4 characters"""
    if not isinstance(account_id, str) or len(account_id) < 4:
        return "****"
    return "*" * (len(account_id) - 4) + account_id[-4:]


def mask_pin(pin: Optional[str]) -> str:
    return "****"
