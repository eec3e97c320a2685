from __future__ import annotations

from decimal import Decimal
from typing import Any

from .money import ZERO, to_decimal


# Upper bound for any single monetary input (Numeric(15, 2) holds 13 integer digits)
MAX_AMOUNT = Decimal("9999999999999.99")

DISCOUNT_AMOUNT = "amount"
DISCOUNT_PERCENT = "percent"
DISCOUNT_TYPES = {DISCOUNT_AMOUNT, DISCOUNT_PERCENT}


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level: the referenced document or product does not exist."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate document code)."""


def coerce_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """
    Strict integer coercion.

    Rejects bools, floats with a fractional part, decimals in strings and
    scientific notation.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        result = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return result


def coerce_money(value: Any, field: str, *, default: Decimal = ZERO) -> Decimal:
    """Non-negative monetary amount; None means the default."""
    if value is None:
        return default
    try:
        amount = to_decimal(value, field)
    except ValueError as e:
        raise ValidationError(str(e))
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return amount


def coerce_optional_id(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, field, minimum=1)


def coerce_discount_type(value: Any) -> str:
    if value is None or value == "":
        return DISCOUNT_AMOUNT
    if value not in DISCOUNT_TYPES:
        raise ValidationError(
            f"discount_type must be one of: {', '.join(sorted(DISCOUNT_TYPES))}"
        )
    return value


def coerce_note(value: Any) -> str | None:
    if value is None:
        return None
    note = str(value).strip()
    return note or None


def validate_line_items(raw_items: Any) -> list[dict]:
    """
    Normalize the items array of a document payload.

    Each item needs product_id, quantity (>= 1) and unit_price (>= 0);
    discount is optional and defaults to 0.
    """
    if raw_items is None or raw_items == []:
        raise ValidationError("Document must have at least one item")
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    items = []
    for position, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{position}] must be an object")
        if raw.get("product_id") in (None, ""):
            raise ValidationError(f"items[{position}].product_id is required")
        if raw.get("quantity") is None:
            raise ValidationError(f"items[{position}].quantity is required")
        if raw.get("unit_price") is None:
            raise ValidationError(f"items[{position}].unit_price is required")

        items.append({
            "product_id": coerce_int(raw["product_id"], f"items[{position}].product_id", minimum=1),
            "quantity": coerce_int(raw["quantity"], f"items[{position}].quantity", minimum=1),
            "unit_price": coerce_money(raw["unit_price"], f"items[{position}].unit_price"),
            "discount": coerce_money(raw.get("discount"), f"items[{position}].discount"),
        })
    return items
