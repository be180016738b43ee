"""
Decimal money helpers.

Amounts are carried as Decimal at full precision through every calculation
and rounded to cents only when persisted or serialized.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated, Any

from pydantic import PlainSerializer

CENTS = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a number or numeric string to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    approximation.

    Raises:
        ValueError: If value is None, a bool, or not numeric
    """
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to Decimal")
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (ArithmeticError, TypeError):
        raise ValueError(f"Cannot convert {value!r} to Decimal")


def to_money(value: Any) -> Decimal:
    """Round to two decimal places, half up."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def sum_money(values) -> Decimal:
    """Sum an iterable of amounts without rounding."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total


# Decimal inside the app, JSON number with two decimals on the wire.
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(to_money(v)), return_type=float, when_used="json"),
]

# Non-money decimals (quantities, percentages): JSON number, no rounding.
DecimalNumber = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]
