"""
Money helpers.

Every amount inside the core is an integer count of minor units (cents,
paise). Decimal only appears at the edges, when converting user input or
formatting for display.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Union

from .errors import InvalidAmountError

MINOR_UNITS_PER_MAJOR = 100


def is_valid_minor_units(value: Any) -> bool:
    # bool is an int subclass; True is not an amount
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def require_positive_amount(value: Any, label: str = "Amount") -> int:
    if not is_valid_minor_units(value) or value < 1:
        raise InvalidAmountError(f"{label} must be a positive integer (minor units)")
    return value


def to_minor_units(major: Union[Decimal, str, int]) -> int:
    try:
        amount = Decimal(str(major))
    except InvalidOperation:
        raise InvalidAmountError(f"Not a valid amount: {major!r}")
    if not amount.is_finite():
        raise InvalidAmountError(f"Not a valid amount: {major!r}")
    if amount < 0:
        raise InvalidAmountError("Amount must be non-negative")
    return int((amount * MINOR_UNITS_PER_MAJOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_minor_units(minor: int) -> str:
    """Display-only rendering, e.g. 10025 -> "100.25". Never feed back into math."""
    if isinstance(minor, bool) or not isinstance(minor, int):
        raise InvalidAmountError("format_minor_units: input must be an integer")
    sign = "-" if minor < 0 else ""
    whole, cents = divmod(abs(minor), MINOR_UNITS_PER_MAJOR)
    return f"{sign}{whole}.{cents:02d}"
