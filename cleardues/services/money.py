"""
MONEY HELPERS
=============

All amounts are handled as Decimal with two decimal places.
Differences up to MONEY_TOLERANCE (one minor unit) are rounding noise.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

CENT = Decimal('0.01')
MONEY_TOLERANCE = Decimal('0.01')
ZERO = Decimal('0')


def to_decimal(value):
    """Convert int/float/str/Decimal to an exact Decimal (floats go through str)."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to an amount")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Cannot convert {value!r} to an amount")
    raise ValueError(f"Cannot convert {value!r} to an amount")


def round_money(value):
    """Round half-up to two decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def amounts_close(a, b, tolerance=MONEY_TOLERANCE):
    return abs(to_decimal(a) - to_decimal(b)) <= tolerance
