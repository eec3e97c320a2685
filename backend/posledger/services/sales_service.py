"""
Sales Service - sales invoices on top of the posting engine.

WHY: Sales invoices and purchase receipts post through the same engine; this
module owns what is specific to sales: the payload shape (customer, payment
method, paid amount) and the total formula  items_total - discount.
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
    SALE_KIND,
    DocumentLineRequest,
    DocumentRequest,
    compute_discount_amount,
    compute_items_total,
)


PAYMENT_METHODS = {"cash", "card", "transfer", "mixed"}


def build_sale_request(payload: dict) -> DocumentRequest:
    """
    Validate a sale payload and compute its total.

    Body: {customer_id?, items: [{product_id, quantity, unit_price, discount?}],
           discount_type?, discount_value?, payment_method?, paid_amount?, note?}
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    lines = [DocumentLineRequest(**item) for item in validate_line_items(payload.get("items"))]

    discount_type = coerce_discount_type(payload.get("discount_type"))
    discount_value = coerce_money(payload.get("discount_value"), "discount_value")
    if discount_type == DISCOUNT_PERCENT and discount_value > 100:
        raise ValidationError("discount_value cannot exceed 100 for percent discounts")

    items_total = compute_items_total(lines)
    total = quantize_money(items_total - compute_discount_amount(items_total, discount_type, discount_value))
    if total < 0:
        raise ValidationError("Discount cannot exceed the items total")

    payment_method = payload.get("payment_method") or "cash"
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(sorted(PAYMENT_METHODS))}")

    paid_amount = coerce_money(payload.get("paid_amount"), "paid_amount", default=None)

    return DocumentRequest(
        items=lines,
        total_amount=total,
        party_id=coerce_optional_id(payload.get("customer_id", payload.get("party_id")), "customer_id"),
        discount_type=discount_type,
        discount_value=discount_value,
        payment_method=payment_method,
        paid_amount=paid_amount if paid_amount is not None else total,
        note=coerce_note(payload.get("note")),
    )


def create_sale(payload: dict):
    return posting_service.create_document(SALE_KIND, build_sale_request(payload))


def update_sale(invoice_id: int, payload: dict):
    """An unknown invoice is reported (404) before the payload is validated (400)."""
    posting_service.get_document(SALE_KIND, invoice_id)
    return posting_service.update_document(SALE_KIND, invoice_id, build_sale_request(payload))


def delete_sale(invoice_id: int) -> dict:
    return posting_service.delete_document(SALE_KIND, invoice_id)


def get_sale(invoice_id: int):
    return posting_service.get_document(SALE_KIND, invoice_id)


def list_sales(**filters):
    return posting_service.list_documents(SALE_KIND, **filters)


def generate_sale_code() -> str:
    return posting_service.preview_code(SALE_KIND)
