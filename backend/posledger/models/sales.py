from __future__ import annotations

from ..extensions import db
from ..money import money_to_json
from .inventory import MONEY
from posledger.time_utils import to_utc_z, utcnow


class SalesInvoice(db.Model):
    """
    Sales invoice header.

    Posted in one transaction together with its items and OUT ledger rows.
    Editing replaces the whole subtree; deleting removes it. code is unique
    (e.g. "HD20250007").
    """
    __tablename__ = "sales_invoices"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_sales_invoices_code"),
        db.Index("ix_sales_invoices_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    total_amount = db.Column(MONEY, nullable=False, default=0)
    # amount | percent
    discount_type = db.Column(db.String(16), nullable=False, default="amount")
    discount_value = db.Column(MONEY, nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=False, default="cash")
    paid_amount = db.Column(MONEY, nullable=False, default=0)

    note = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="completed")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer = db.relationship("Customer")

    def __repr__(self) -> str:
        return f"<SalesInvoice id={self.id} code={self.code!r}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "code": self.code,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "total_amount": money_to_json(self.total_amount),
            "discount_type": self.discount_type,
            "discount_value": money_to_json(self.discount_value),
            "payment_method": self.payment_method,
            "paid_amount": money_to_json(self.paid_amount),
            "note": self.note,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SalesInvoiceItem(db.Model):
    __tablename__ = "sales_invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sales_invoice_id = db.Column(
        db.Integer, db.ForeignKey("sales_invoices.id"), nullable=False, index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(MONEY, nullable=False)
    discount = db.Column(MONEY, nullable=False, default=0)
    # quantity * unit_price - discount
    total_amount = db.Column(MONEY, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    document = db.relationship(
        "SalesInvoice",
        backref=db.backref("items", lazy=True, order_by="SalesInvoiceItem.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sales_invoice_id": self.sales_invoice_id,
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
