# Overview: Decimal helpers for monetary amounts.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value, field: str = "value") -> Decimal:
    """
    Coerce ints, floats, numeric strings and Decimals to Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return ZERO
        try:
            return Decimal(stripped)
        except InvalidOperation:
            raise ValueError(f"{field} must be a number")
    raise ValueError(f"{field} must be a number")


def quantize_money(value: Decimal) -> Decimal:
    """Round half-up to 2 decimal places (the Numeric(15, 2) column scale)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_to_json(value):
    """Render a Decimal as an int when it is whole, otherwise as a float."""
    if value is None:
        return None
    value = to_decimal(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)
