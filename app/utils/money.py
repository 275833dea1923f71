"""Money helpers shared by pricing and order code."""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

CENT = Decimal('0.01')
ZERO = Decimal('0.00')
HUNDRED = Decimal('100')

Number = Union[int, float, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal going through str() so floats keep their printed value."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f'Invalid amount: {value!r}')


def to_money(value: Number) -> Decimal:
    """Round to cents, half-up (1.005 -> 1.01)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def apply_percentage_off(amount: Number, percentage: Number) -> Decimal:
    """Price after taking `percentage` percent off `amount`, rounded to cents."""
    factor = (HUNDRED - to_decimal(percentage)) / HUNDRED
    return to_money(to_decimal(amount) * factor)


def percentage_of(amount: Number, percentage: Number) -> Decimal:
    """`percentage` percent of `amount`, rounded to cents."""
    return to_money(to_decimal(amount) * to_decimal(percentage) / HUNDRED)
