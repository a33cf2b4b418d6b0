# Overview: Decimal helpers for money columns.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value, default: Decimal = ZERO) -> Decimal:
    """
    Coerce DB aggregates and JSON numbers to Decimal.

    SQLite returns SUM() over NUMERIC as float; going through str() keeps
    the printed value instead of the binary approximation.
    """
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidOperation("boolean is not a number")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return default


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value) -> str | None:
    if value is None:
        return None
    return str(quantize_money(to_decimal(value)))
