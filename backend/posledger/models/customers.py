from __future__ import annotations

from ..extensions import db
from posledger.time_utils import utcnow


class Customer(db.Model):
    """Sales counterparty. Maintained elsewhere; read here for validation and display."""
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_customers_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "phone": self.phone,
            "status": self.status,
        }
