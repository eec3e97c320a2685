# Overview: Flask API routes for purchase receipts; parses input and returns JSON responses.

# backend/posledger/routes/purchases.py
"""
Purchase Receipt Routes

A purchase receipt brings goods in from a supplier: each item becomes an IN
ledger row carrying its unit price as unit cost, which feeds the product's
average cost. Error mapping matches the sales routes.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import purchase_service
from ..validation import ConflictError, NotFoundError, ValidationError
from posledger.time_utils import parse_iso_datetime


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
def list_purchases_route():
    """
    List purchase receipts, newest first.

    Query parameters: supplier_id, from_date, to_date, limit, offset.
    """
    supplier_id = request.args.get("supplier_id", type=int)
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

    limit = max(1, min(limit, 500))
    offset = max(0, offset)

    docs, total = purchase_service.list_purchases(
        party_id=supplier_id,
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


@purchases_bp.get("/generate/code")
def generate_code_route():
    return jsonify({"code": purchase_service.generate_purchase_code()})


@purchases_bp.get("/<int:receipt_id>")
def get_purchase_route(receipt_id: int):
    try:
        receipt = purchase_service.get_purchase(receipt_id)
        return jsonify(receipt.to_dict(include_items=True))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@purchases_bp.post("")
def create_purchase_route():
    """
    Post a new purchase receipt.

    Request body:
    {
        "supplier_id": 1,              // optional
        "items": [{"product_id": 1, "quantity": 10, "unit_price": 25000, "discount": 0}],
        "discount_type": "amount",     // amount | percent
        "discount_value": 0,
        "other_fee": 0,
        "note": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        receipt = purchase_service.create_purchase(data)
        return jsonify(receipt.to_dict(include_items=True)), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception as e:
        current_app.logger.exception("Failed to create purchase receipt")
        return jsonify({"error": str(e)}), 500


@purchases_bp.put("/<int:receipt_id>")
def update_purchase_route(receipt_id: int):
    data = request.get_json(silent=True) or {}
    try:
        receipt = purchase_service.update_purchase(receipt_id, data)
        return jsonify(receipt.to_dict(include_items=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        current_app.logger.exception("Failed to update purchase receipt %s", receipt_id)
        return jsonify({"error": str(e)}), 500


@purchases_bp.delete("/<int:receipt_id>")
def delete_purchase_route(receipt_id: int):
    try:
        summary = purchase_service.delete_purchase(receipt_id)
        return jsonify({"message": "Purchase receipt deleted", **summary})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        current_app.logger.exception("Failed to delete purchase receipt %s", receipt_id)
        return jsonify({"error": str(e)}), 500
