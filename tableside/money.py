"""
Money helpers.

Prices travel as Decimal end to end. Rounding to cents happens only when a
value leaves the core (display or serialization) via ``to_cents``.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a price-like value to Decimal without binary float drift.

    Floats are converted through their shortest repr, so ``12.99`` becomes
    ``Decimal("12.99")`` rather than ``Decimal(12.99)``.

    Raises:
        ValueError: If the value is not numeric
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a price: {value!r}")
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, TypeError):
        raise ValueError(f"Not a price: {value!r}")


def to_cents(amount: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_price(amount: Optional[Any], currency: str = "MAD") -> str:
    """Format an amount for display, e.g. ``1,234.50 MAD``."""
    if amount is None:
        return f"0.00 {currency}"
    try:
        value = to_decimal(amount)
    except ValueError:
        return f"0.00 {currency}"
    if not value.is_finite():
        return f"0.00 {currency}"
    return f"{to_cents(value):,.2f} {currency}"
