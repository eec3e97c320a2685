# Overview: Flask API routes for products and their ledger-derived stock; read-only.

# backend/posledger/routes/products.py
"""
Product routes.

Stock and average cost are never stored on the product; every response here
is projected from the inventory ledger at request time.
"""
from flask import Blueprint, jsonify, request

from ..services import inventory_service
from ..validation import NotFoundError

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products with derived stock.

    Query params:
    - q: str (optional) - matches name or code (substring) or barcode (exact)
    - status: active | inactive (optional)
    - limit / offset: pagination (default 100 / 0, limit max 500)
    """
    limit = max(1, min(request.args.get("limit", 100, type=int), 500))
    offset = max(0, request.args.get("offset", 0, type=int))

    items, total = inventory_service.list_products(
        search=request.args.get("q"),
        status=request.args.get("status"),
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": items, "count": total, "limit": limit, "offset": offset})


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        return jsonify(inventory_service.get_product(product_id))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.get("/<int:product_id>/transactions")
def product_transactions(product_id: int):
    """
    Stock card: ledger rows newest first.

    Each row carries ending_stock (the balance right after it), document_code
    and partner_name of the owning sale or purchase.
    """
    try:
        return jsonify(inventory_service.get_stock_card(product_id))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.get("/<int:product_id>/inventory")
def product_inventory(product_id: int):
    try:
        return jsonify(inventory_service.get_inventory_summary(product_id))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
