"""Decimal helpers for monetary amounts.

Amounts are persisted as floats (Protean ``Float`` fields) but every
calculation goes through ``Decimal`` and is quantized to cents.
"""

from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Convert a stored amount (float, int, str or None) to a Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def as_amount(amount: Decimal) -> float:
    """Quantize and convert back to the float used by persisted fields."""
    return float(quantize(amount))


def percentage_of(amount, percentage) -> Decimal:
    """Apply an integer percentage (5 means 5%) to an amount."""
    fraction = to_decimal(percentage) / Decimal(100)
    return quantize(to_decimal(amount) * fraction)
