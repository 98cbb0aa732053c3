"""Fixed-point money helpers. Binary floats never enter a money path."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Coerce a str/int/Decimal (or None) into a Decimal.

    Floats go through ``str`` so 33.335 stays 33.335 instead of its binary
    approximation.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def to_money(value: Any) -> Decimal:
    """Round to exactly 2 decimal places, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[Any]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return to_money(total)


def format_money(value: Any) -> str:
    return str(to_money(value))
