"""Currency arithmetic helpers.

Amounts are persisted as floats with two decimals but every computation goes
through Decimal with half-up rounding so totals and fee splits reconcile to
the cent.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value if value is not None else 0))


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def as_money(value) -> float:
    """Round any numeric value to a two-decimal float."""
    return float(quantize(value))


def money_sum(values: Iterable) -> float:
    total = sum((to_decimal(v) for v in values), Decimal("0"))
    return as_money(total)


def line_subtotal(unit_price, quantity: int) -> float:
    return as_money(to_decimal(unit_price) * int(quantity))


def percentage_of(amount, rate) -> float:
    """Apply a fractional rate (0.05 == 5%) to an amount, rounded to the cent."""
    return as_money(to_decimal(amount) * to_decimal(rate))


def amounts_equal(left, right) -> bool:
    if left is None or right is None:
        return False
    return quantize(left) == quantize(right)


def to_minor_units(amount) -> int:
    """Convert a major-unit amount (dollars) into minor units (cents)."""
    return int(quantize(amount) * 100)


def from_minor_units(value) -> float:
    return as_money(to_decimal(value) / 100)
