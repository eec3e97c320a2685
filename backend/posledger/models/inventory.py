from __future__ import annotations

from ..extensions import db
from ..money import money_to_json
from posledger.time_utils import to_utc_z, utcnow

TRANSACTION_IN = "IN"
TRANSACTION_OUT = "OUT"

REFERENCE_PURCHASE = "PURCHASE"
REFERENCE_SALE = "SALE"

MONEY = db.Numeric(15, 2)


class Product(db.Model):
    """
    Product master data.

    STOCK DESIGN DECISION:
    There is no quantity or average-cost column here. Both are projections of
    InventoryTransaction rows (see services/inventory_service.py). cost_price is
    the nominal reference cost entered by the operator, not the running average.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_products_code"),
        db.Index("ix_products_status_name", "status", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(128), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="unit")

    # active | inactive
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    cost_price = db.Column(MONEY, nullable=False, default=0)
    sale_price_default = db.Column(MONEY, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "barcode": self.barcode,
            "name": self.name,
            "unit": self.unit,
            "status": self.status,
            "cost_price": money_to_json(self.cost_price),
            "sale_price_default": money_to_json(self.sale_price_default),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """Purchase counterparty. Maintained elsewhere; read here for validation and display."""
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_suppliers_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "phone": self.phone,
            "status": self.status,
        }


class InventoryTransaction(db.Model):
    """
    Immutable stock movement.

    The sign of quantity is authoritative (+ IN, - OUT); transaction_type is a
    redundant label kept for readability of raw rows. Rows are only ever
    inserted or deleted by reference (reference_type, reference_id) as part of
    a document posting; they are never updated.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_invtx_product_created", "product_id", "created_at"),
        db.Index("ix_invtx_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # IN | OUT
    transaction_type = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    # Populated for IN rows that come from a purchase; NULL for sales
    unit_cost = db.Column(MONEY, nullable=True)

    # PURCHASE | SALE
    reference_type = db.Column(db.String(16), nullable=False)
    reference_id = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product")

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction id={self.id} product_id={self.product_id} "
            f"qty={self.quantity} ref={self.reference_type}:{self.reference_id}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "unit_cost": money_to_json(self.unit_cost),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "created_at": to_utc_z(self.created_at),
        }


# =============================================================================
# PURCHASE RECEIPT (goods received from a supplier)
# =============================================================================

class PurchaseReceipt(db.Model):
    """
    Purchase receipt header.

    A receipt, its items and its IN ledger rows are written and removed as one
    unit by services/posting_service.py. code is unique (e.g. "PN20250007").
    """
    __tablename__ = "purchase_receipts"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_purchase_receipts_code"),
        db.Index("ix_purchase_receipts_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    total_amount = db.Column(MONEY, nullable=False, default=0)
    # amount | percent
    discount_type = db.Column(db.String(16), nullable=False, default="amount")
    discount_value = db.Column(MONEY, nullable=False, default=0)
    other_fee = db.Column(MONEY, nullable=False, default=0)

    note = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="completed")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    supplier = db.relationship("Supplier")

    def __repr__(self) -> str:
        return f"<PurchaseReceipt id={self.id} code={self.code!r}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "code": self.code,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "total_amount": money_to_json(self.total_amount),
            "discount_type": self.discount_type,
            "discount_value": money_to_json(self.discount_value),
            "other_fee": money_to_json(self.other_fee),
            "note": self.note,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseReceiptItem(db.Model):
    __tablename__ = "purchase_receipt_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_receipt_id = db.Column(
        db.Integer, db.ForeignKey("purchase_receipts.id"), nullable=False, index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(MONEY, nullable=False)
    discount = db.Column(MONEY, nullable=False, default=0)
    # quantity * unit_price - discount
    total_amount = db.Column(MONEY, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    document = db.relationship(
        "PurchaseReceipt",
        backref=db.backref("items", lazy=True, order_by="PurchaseReceiptItem.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_receipt_id": self.purchase_receipt_id,
            "product_id": self.product_id,
            "product_code": self.product.code if self.product else None,
            "product_name": self.product.name if self.product else None,
            "product_unit": self.product.unit if self.product else None,
            "quantity": self.quantity,
            "unit_price": money_to_json(self.unit_price),
            "discount": money_to_json(self.discount),
            "total_amount": money_to_json(self.total_amount),
            "created_at": to_utc_z(self.created_at),
        }
