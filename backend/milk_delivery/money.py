# backend/milk_delivery/money.py
"""
Money helpers.

Amounts are stored as Numeric(10, 2) and handled as Decimal everywhere in
the backend. They only become floats at the JSON boundary.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest value a Numeric(10, 2) column can hold
MAX_AMOUNT = Decimal("99999999.99")


def to_decimal(value) -> Decimal:
    """Normalize a DB or Python number to a two-place Decimal (None -> 0.00)."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_money(value) -> float:
    """JSON rendering of an amount."""
    return float(to_decimal(value))
