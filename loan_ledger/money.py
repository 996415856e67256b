"""
Decimal helpers for monetary figures.

Amounts are carried at full Decimal precision through a computation and
rounded to cents only when stored or returned.
"""

from decimal import Decimal, ROUND_HALF_UP, getcontext
from typing import Union

# High precision for intermediate financial calculations
getcontext().prec = 28

CENT = Decimal('0.01')
ZERO = Decimal('0')
ONE = Decimal('1')
HUNDRED = Decimal('100')

Numeric = Union[Decimal, int, float, str]


def to_decimal(value: Numeric) -> Decimal:
    """Convert a numeric value to Decimal without binary float artifacts"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean is not a monetary value")
    return Decimal(str(value))


def round_money(value: Numeric) -> Decimal:
    """Round to 2 decimal places, half up"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Numeric) -> str:
    """Format for display and serialization (always two decimals)"""
    return f"{round_money(value):.2f}"
