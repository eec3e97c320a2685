# Overview: Read-side projections of the stock ledger (current stock, average cost, stock card).

# backend/posledger/services/inventory_service.py

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Customer,
    InventoryTransaction,
    Product,
    PurchaseReceipt,
    SalesInvoice,
    Supplier,
)
from ..models.inventory import REFERENCE_PURCHASE, REFERENCE_SALE, TRANSACTION_IN
from ..money import ZERO, money_to_json, quantize_money, to_decimal
from ..validation import NotFoundError
from . import ledger_service
"""
Inventory Projections (authoritative)

- Quantity on hand is SUM(quantity) over every InventoryTransaction of the product.
  Nothing is cached; every read recomputes from the ledger.
- The projector never clamps. A negative result means the ledger is inconsistent
  with business rules; it is returned as-is and logged, not hidden.
- Average cost is the perpetual weighted average over IN rows with a unit cost:
    sum(unit_cost * |qty|) / sum(|qty|)   (half-up to 2 places, 0 when no rows)
  OUT rows never move it.
"""


def _ensure_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _warn_if_negative(product_id: int, stock: int) -> None:
    if stock < 0:
        current_app.logger.warning(
            "Ledger for product %s sums to negative stock (%s)", product_id, stock
        )


def get_current_stock(product_id: int) -> int:
    """Sum of signed ledger quantities for a product."""
    stock = db.session.query(
        func.coalesce(func.sum(InventoryTransaction.quantity), 0)
    ).filter(
        InventoryTransaction.product_id == product_id,
    ).scalar()
    stock = int(stock or 0)
    _warn_if_negative(product_id, stock)
    return stock


def get_stock_levels(product_ids: list[int]) -> dict[int, int]:
    """Current stock for several products in one query; products with no rows map to 0."""
    if not product_ids:
        return {}

    rows = db.session.query(
        InventoryTransaction.product_id,
        func.coalesce(func.sum(InventoryTransaction.quantity), 0),
    ).filter(
        InventoryTransaction.product_id.in_(product_ids),
    ).group_by(
        InventoryTransaction.product_id,
    ).all()

    levels = {product_id: 0 for product_id in product_ids}
    for product_id, stock in rows:
        levels[product_id] = int(stock or 0)
        _warn_if_negative(product_id, levels[product_id])
    return levels


def _average_from_sums(units, cost) -> Decimal:
    total_units = int(units or 0)
    if total_units <= 0:
        return quantize_money(ZERO)
    return quantize_money(to_decimal(cost or 0) / Decimal(total_units))


def _cost_sums_query(*columns):
    return db.session.query(
        *columns,
        func.coalesce(func.sum(func.abs(InventoryTransaction.quantity)), 0).label("units"),
        func.coalesce(
            func.sum(InventoryTransaction.unit_cost * func.abs(InventoryTransaction.quantity)),
            0,
        ).label("cost"),
    ).filter(
        InventoryTransaction.transaction_type == TRANSACTION_IN,
        InventoryTransaction.unit_cost.isnot(None),
    )


def get_average_cost(product_id: int) -> Decimal:
    """
    Weighted average unit cost over IN rows that carry a unit cost.

    Sales (OUT, NULL unit_cost) are excluded by construction.
    """
    row = _cost_sums_query().filter(
        InventoryTransaction.product_id == product_id,
    ).one()
    return _average_from_sums(row.units, row.cost)


def get_average_costs(product_ids: list[int]) -> dict[int, Decimal]:
    """Average cost for several products in one grouped query; no purchases map to 0."""
    if not product_ids:
        return {}

    rows = _cost_sums_query(InventoryTransaction.product_id).filter(
        InventoryTransaction.product_id.in_(product_ids),
    ).group_by(
        InventoryTransaction.product_id,
    ).all()

    costs = {product_id: quantize_money(ZERO) for product_id in product_ids}
    for row in rows:
        costs[row.product_id] = _average_from_sums(row.units, row.cost)
    return costs


def get_last_purchase_cost(product_id: int) -> Decimal | None:
    """Unit cost of the most recent IN row that has one."""
    tx = db.session.query(InventoryTransaction).filter(
        InventoryTransaction.product_id == product_id,
        InventoryTransaction.transaction_type == TRANSACTION_IN,
        InventoryTransaction.unit_cost.isnot(None),
    ).order_by(
        InventoryTransaction.created_at.desc(),
        InventoryTransaction.id.desc(),
    ).first()
    return to_decimal(tx.unit_cost) if tx else None


def get_inventory_summary(product_id: int) -> dict:
    product = _ensure_product(product_id)

    qty = get_current_stock(product_id)
    avg = get_average_cost(product_id)
    last = get_last_purchase_cost(product_id)

    return {
        "product_id": product.id,
        "product_code": product.code,
        "stock_qty": qty,
        "average_cost": money_to_json(avg),
        "last_purchase_cost": money_to_json(last),
        "inventory_value": money_to_json(quantize_money(avg * qty)),
    }


def product_with_stock(product: Product) -> dict:
    """Product dict decorated with its derived stock and average cost."""
    data = product.to_dict()
    data["stock_qty"] = get_current_stock(product.id)
    data["average_cost"] = money_to_json(get_average_cost(product.id))
    return data


def list_products(*, search: str | None = None, status: str | None = None,
                  limit: int = 100, offset: int = 0) -> tuple[list[dict], int]:
    """Products ordered by name, each with stock_qty and average_cost derived from the ledger."""
    query = db.session.query(Product)
    if status:
        query = query.filter(Product.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            (Product.name.ilike(pattern)) | (Product.code.ilike(pattern)) | (Product.barcode == search.strip())
        )

    total = query.count()
    products = query.order_by(Product.name.asc(), Product.id.asc()).offset(offset).limit(limit).all()

    product_ids = [p.id for p in products]
    levels = get_stock_levels(product_ids)
    costs = get_average_costs(product_ids)
    items = []
    for product in products:
        data = product.to_dict()
        data["stock_qty"] = levels.get(product.id, 0)
        data["average_cost"] = money_to_json(costs[product.id])
        items.append(data)
    return items, total


def get_product(product_id: int) -> dict:
    return product_with_stock(_ensure_product(product_id))


def _resolve_references(entries: list[InventoryTransaction]) -> dict[tuple[str, int], dict]:
    """Map (reference_type, reference_id) to the owning document's code and partner name."""
    sale_ids = {e.reference_id for e in entries if e.reference_type == REFERENCE_SALE}
    purchase_ids = {e.reference_id for e in entries if e.reference_type == REFERENCE_PURCHASE}

    resolved: dict[tuple[str, int], dict] = {}

    if sale_ids:
        rows = db.session.query(SalesInvoice.id, SalesInvoice.code, Customer.name).outerjoin(
            Customer, Customer.id == SalesInvoice.customer_id
        ).filter(SalesInvoice.id.in_(sale_ids)).all()
        for doc_id, code, partner in rows:
            resolved[(REFERENCE_SALE, doc_id)] = {"document_code": code, "partner_name": partner}

    if purchase_ids:
        rows = db.session.query(PurchaseReceipt.id, PurchaseReceipt.code, Supplier.name).outerjoin(
            Supplier, Supplier.id == PurchaseReceipt.supplier_id
        ).filter(PurchaseReceipt.id.in_(purchase_ids)).all()
        for doc_id, code, partner in rows:
            resolved[(REFERENCE_PURCHASE, doc_id)] = {"document_code": code, "partner_name": partner}

    return resolved


def get_stock_card(product_id: int) -> list[dict]:
    """
    Ledger for a product, newest first, each row carrying ending_stock.

    ending_stock is the running balance after that row, computed by replaying
    the ledger oldest-to-newest and reversing the result for display.
    """
    _ensure_product(product_id)

    entries = ledger_service.list_by_product(product_id)
    references = _resolve_references(entries)

    running = 0
    card = []
    for entry in entries:
        running += entry.quantity
        row = entry.to_dict()
        ref = references.get((entry.reference_type, entry.reference_id), {})
        row["document_code"] = ref.get("document_code")
        row["partner_name"] = ref.get("partner_name")
        row["ending_stock"] = running
        card.append(row)

    card.reverse()
    return card
