"""
Purchase Service - purchase receipts on top of the posting engine.

Total formula: items_total - discount + other_fee. Every line becomes an IN
ledger row whose unit_cost is the line's unit price, which is what feeds the
weighted average cost.
"""

from __future__ import annotations

from ..money import quantize_money
from ..validation import (
    DISCOUNT_PERCENT,
    ValidationError,
    coerce_discount_type,
    coerce_money,
    coerce_note,
    coerce_optional_id,
    validate_line_items,
)
from . import posting_service
from .posting_service import (
    PURCHASE_KIND,
    DocumentLineRequest,
    DocumentRequest,
    compute_discount_amount,
    compute_items_total,
)


def build_purchase_request(payload: dict) -> DocumentRequest:
    """
    Validate a purchase payload and compute its total.

    Body: {supplier_id?, items: [{product_id, quantity, unit_price, discount?}],
           discount_type?, discount_value?, other_fee?, note?}
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    lines = [DocumentLineRequest(**item) for item in validate_line_items(payload.get("items"))]

    discount_type = coerce_discount_type(payload.get("discount_type"))
    discount_value = coerce_money(payload.get("discount_value"), "discount_value")
    if discount_type == DISCOUNT_PERCENT and discount_value > 100:
        raise ValidationError("discount_value cannot exceed 100 for percent discounts")
    other_fee = coerce_money(payload.get("other_fee"), "other_fee")

    items_total = compute_items_total(lines)
    discount_amount = compute_discount_amount(items_total, discount_type, discount_value)
    total = quantize_money(items_total - discount_amount + other_fee)
    if total < 0:
        raise ValidationError("Discount cannot exceed the items total")

    return DocumentRequest(
        items=lines,
        total_amount=total,
        party_id=coerce_optional_id(payload.get("supplier_id", payload.get("party_id")), "supplier_id"),
        discount_type=discount_type,
        discount_value=discount_value,
        other_fee=other_fee,
        note=coerce_note(payload.get("note")),
    )


def create_purchase(payload: dict):
    return posting_service.create_document(PURCHASE_KIND, build_purchase_request(payload))


def update_purchase(receipt_id: int, payload: dict):
    """An unknown receipt is reported (404) before the payload is validated (400)."""
    posting_service.get_document(PURCHASE_KIND, receipt_id)
    return posting_service.update_document(PURCHASE_KIND, receipt_id, build_purchase_request(payload))


def delete_purchase(receipt_id: int) -> dict:
    return posting_service.delete_document(PURCHASE_KIND, receipt_id)


def get_purchase(receipt_id: int):
    return posting_service.get_document(PURCHASE_KIND, receipt_id)


def list_purchases(**filters):
    return posting_service.list_documents(PURCHASE_KIND, **filters)


def generate_purchase_code() -> str:
    return posting_service.preview_code(PURCHASE_KIND)
