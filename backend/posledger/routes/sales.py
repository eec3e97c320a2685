# Overview: Flask API routes for sales invoices; parses input and returns JSON responses.

# backend/posledger/routes/sales.py
"""
Sales Invoice Routes

Every write goes through the posting engine, so a sales invoice, its items and
its OUT ledger rows are created, replaced or deleted together.

Status codes:
- 400: invalid payload (empty items, unknown product/customer, bad numbers,
       insufficient stock)
- 404: invoice not found
- 409: document code could not be allocated after one retry
- 500: database rejected the posting (transaction rolled back)
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import invoice_service, sales_service
from ..validation import ConflictError, NotFoundError, ValidationError
from posledger.time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales_route():
    """
    List sales invoices, newest first.

    Query parameters:
    - customer_id: Filter by customer
    - from_date / to_date: created_at bounds (ISO-8601)
    - limit: Maximum results (default: 100, max 500)
    - offset: Pagination offset (default: 0)

    Returns:
        {items: SalesInvoice[], count: int, limit: int, offset: int}
    """
    customer_id = request.args.get("customer_id", type=int)
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)

    from_date = None
    to_date = None
    if request.args.get("from_date"):
        from_date = parse_iso_datetime(request.args["from_date"])
        if from_date is None:
            return jsonify({"error": "Invalid from_date format"}), 400
    if request.args.get("to_date"):
        to_date = parse_iso_datetime(request.args["to_date"])
        if to_date is None:
            return jsonify({"error": "Invalid to_date format"}), 400

    # Clamp limit
    limit = max(1, min(limit, 500))
    offset = max(0, offset)

    docs, total = sales_service.list_sales(
        party_id=customer_id,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [d.to_dict() for d in docs],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@sales_bp.get("/generate/code")
def generate_code_route():
    """Preview the next invoice code. Nothing is reserved."""
    return jsonify({"code": sales_service.generate_sale_code()})


@sales_bp.get("/<int:invoice_id>")
def get_sale_route(invoice_id: int):
    try:
        invoice = sales_service.get_sale(invoice_id)
        return jsonify(invoice.to_dict(include_items=True))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.post("")
def create_sale_route():
    """
    Post a new sales invoice.

    Request body:
    {
        "customer_id": 1,              // optional
        "items": [{"product_id": 1, "quantity": 2, "unit_price": 50000, "discount": 0}],
        "discount_type": "amount",     // amount | percent
        "discount_value": 0,
        "payment_method": "cash",      // cash | card | transfer | mixed
        "paid_amount": 100000,         // optional, defaults to the total
        "note": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        invoice = sales_service.create_sale(data)
        return jsonify(invoice.to_dict(include_items=True)), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception as e:
        current_app.logger.exception("Failed to create sales invoice")
        return jsonify({"error": str(e)}), 500


@sales_bp.put("/<int:invoice_id>")
def update_sale_route(invoice_id: int):
    """Replace an invoice's header, items and ledger rows. Body as for POST."""
    data = request.get_json(silent=True) or {}
    try:
        invoice = sales_service.update_sale(invoice_id, data)
        return jsonify(invoice.to_dict(include_items=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        current_app.logger.exception("Failed to update sales invoice %s", invoice_id)
        return jsonify({"error": str(e)}), 500


@sales_bp.delete("/<int:invoice_id>")
def delete_sale_route(invoice_id: int):
    try:
        summary = sales_service.delete_sale(invoice_id)
        return jsonify({"message": "Sales invoice deleted", **summary})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        current_app.logger.exception("Failed to delete sales invoice %s", invoice_id)
        return jsonify({"error": str(e)}), 500


@sales_bp.post("/calculate")
def calculate_route():
    """
    Totals for a draft invoice (cart). Nothing is persisted.

    Request body: a draft with items [{product_id, quantity, sale_price,
    discount, cost_price}], discount, discount_type, extra_fee, vat_enabled,
    vat_amount, customer_payment.

    Returns:
        {items: SaleItem[], totals: InvoiceTotals, item_count: int, discount_text: str}
    """
    data = request.get_json(silent=True) or {}
    try:
        draft = invoice_service.draft_from_dict(data)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    totals = invoice_service.calculate(draft)
    return jsonify({
        "items": [item.to_dict() for item in draft.items],
        "totals": totals.to_dict(),
        "item_count": invoice_service.total_item_count(draft),
        "discount_text": invoice_service.format_discount_text(draft.discount, draft.discount_type),
    })
