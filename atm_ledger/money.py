"""
Monetary Amount Module

Single-currency amounts with two-place Decimal precision. NEVER uses float
for monetary values, and never rounds: a value with sub-cent digits is
rejected, not quantized.
"""

from decimal import Decimal, InvalidOperation
from typing import Union


PRECISION = 2
CENT = Decimal('0.01')
ZERO = Decimal('0.00')

AmountLike = Union[Decimal, int, str]


def to_decimal(value: AmountLike) -> Decimal:
    """
    Parse a value into an exact, finite Decimal

    Floats are converted through their string form so binary noise
    (0.1 + 0.2) shows up as extra digits instead of being hidden.

    Raises:
        ValueError: If the value is missing, unparsable or not finite
    """
    if value is None:
        raise ValueError("Amount is required")
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")

    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {value!r}")

    if not value.is_finite():
        raise ValueError(f"Amount must be finite: {value}")

    return value


def is_whole_cents(value: Decimal) -> bool:
    """True if the value has no digits beyond the second decimal place"""
    return value == value.quantize(CENT)


def to_amount(value: AmountLike) -> Decimal:
    """
    Convert a value to a two-place Decimal amount

    100, "100.5" and Decimal("100.500") all become 2-place amounts;
    "100.004" is an error.

    Raises:
        ValueError: If the value is not a finite number of whole cents
    """
    value = to_decimal(value)
    if not is_whole_cents(value):
        raise ValueError(f"Amount has more than {PRECISION} decimal places: {value}")
    return value.quantize(CENT)


def format_amount(amount: Decimal) -> str:
    """Format for messages, e.g. 1,234.50"""
    return f"{amount:,.{PRECISION}f}"
