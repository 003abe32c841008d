# Overview: Decimal quantity and integer-cent helpers used by models and services.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0")
QUANTITY_PLACES = Decimal("0.001")


def to_decimal(value) -> Decimal:
    """Coerce ints, strings and floats into a Decimal (floats via str)."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidOperation("booleans are not quantities")
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_quantity(value) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def round_cents(value) -> int:
    """Round a Decimal amount of cents to a whole cent, half away from zero."""
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def line_total_cents(quantity, unit_price_cents: int) -> int:
    return round_cents(to_decimal(quantity) * unit_price_cents)


def quantity_to_json(value):
    """Whole quantities serialize as ints, fractional ones as floats."""
    if value is None:
        return None
    d = to_decimal(value)
    if d == d.to_integral_value():
        return int(d)
    return float(d)
