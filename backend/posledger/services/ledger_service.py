# Overview: Service-layer operations for the stock ledger; append/remove only.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import InventoryTransaction
from ..models.inventory import TRANSACTION_IN, TRANSACTION_OUT
"""
Stock Ledger Invariants (authoritative)

- InventoryTransaction rows are the only source of truth for quantity on hand.
- quantity is signed: positive for IN, negative for OUT. transaction_type is
  derived from the sign when a row is built and never disagrees with it.
- Rows are never updated. They are removed only by (reference_type, reference_id),
  when the owning document is reposted or deleted.
- Nothing here commits. Every append/remove rides on the caller's transaction,
  which is owned by the posting engine.
"""


def build_entry(
    *,
    product_id: int,
    quantity: int,
    reference_type: str,
    reference_id: int,
    unit_cost: Decimal | None = None,
    created_at: datetime | None = None,
) -> InventoryTransaction:
    """Build (but do not add) a ledger row; a zero quantity is not a movement."""
    if quantity == 0:
        raise ValueError("ledger quantity cannot be zero")

    entry = InventoryTransaction(
        product_id=product_id,
        transaction_type=TRANSACTION_IN if quantity > 0 else TRANSACTION_OUT,
        quantity=quantity,
        unit_cost=unit_cost,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    if created_at is not None:
        entry.created_at = created_at
    return entry


def append_entries(entries: list[InventoryTransaction]) -> list[InventoryTransaction]:
    """
    Append ledger rows inside the active transaction.

    Flushes so ids are assigned without committing.
    """
    for entry in entries:
        db.session.add(entry)
    db.session.flush()
    return entries


def remove_by_reference(reference_type: str, reference_id: int) -> int:
    """Delete every ledger row owned by one document. Returns the number removed."""
    removed = (
        db.session.query(InventoryTransaction)
        .filter(
            InventoryTransaction.reference_type == reference_type,
            InventoryTransaction.reference_id == reference_id,
        )
        .delete(synchronize_session="fetch")
    )
    db.session.flush()
    return removed


def list_by_reference(reference_type: str, reference_id: int) -> list[InventoryTransaction]:
    return (
        db.session.query(InventoryTransaction)
        .filter_by(reference_type=reference_type, reference_id=reference_id)
        .order_by(InventoryTransaction.id.asc())
        .all()
    )


def list_by_product(product_id: int) -> list[InventoryTransaction]:
    """Ledger for one product, oldest first (created_at, then id)."""
    return (
        db.session.query(InventoryTransaction)
        .filter(InventoryTransaction.product_id == product_id)
        .order_by(
            InventoryTransaction.created_at.asc(),
            InventoryTransaction.id.asc(),
        )
        .all()
    )
