# Overview: Document posting engine; writes a document, its items and its ledger rows as one unit.

"""
Document Posting Engine

WHY: A sales invoice or purchase receipt is only meaningful together with its
line items and the stock movements they cause. This module is the single
place that opens, commits and rolls back the transaction around those writes,
so a half-posted document is never observable.

STATE MACHINE (one transaction per transition):
- create:  allocate code -> insert header (status=completed) -> insert items
           -> insert one ledger row per item
- update:  remove ledger rows by reference -> delete items -> update header
           -> reinsert items and ledger rows exactly as create does
           (full replace, no diffing)
- delete:  remove ledger rows by reference -> delete items -> delete header
           (hard delete, no tombstone)

Preconditions (checked before the first write): at least one item, every
product exists, the party exists when given, and for update/delete the
document exists.

Amounts: the caller computes total_amount (see compute_items_total and
compute_discount_amount); the engine stores it as supplied.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import (
    Customer,
    Product,
    PurchaseReceipt,
    PurchaseReceiptItem,
    SalesInvoice,
    SalesInvoiceItem,
    Supplier,
)
from ..models.inventory import REFERENCE_PURCHASE, REFERENCE_SALE
from ..money import ZERO, quantize_money
from ..validation import DISCOUNT_AMOUNT, DISCOUNT_PERCENT, NotFoundError, ValidationError
from posledger.time_utils import utcnow
from . import document_service, inventory_service, ledger_service
from .concurrency import is_unique_violation, lock_for_update, run_with_retry


STATUS_COMPLETED = "completed"

# One retry after a code collision: regenerate the code and post again
CODE_CONFLICT_ATTEMPTS = 2


class PostingFailedError(Exception):
    """
    Raised when the database rejects a posting. The transaction has been
    rolled back; the message is the driver's own.
    """
    pass


@dataclass(frozen=True)
class DocumentKind:
    """Everything that differs between posting a sale and posting a purchase."""
    name: str
    label: str
    model: type
    item_model: type
    item_fk: str
    party_field: str
    party_model: type
    reference_type: str
    # +1 puts stock in (purchase), -1 takes it out (sale)
    direction: int
    records_unit_cost: bool
    prefix_config_key: str
    extra_fields: tuple[str, ...]

    def code_prefix(self, year: int | None = None) -> str:
        return document_service.series_prefix(current_app.config[self.prefix_config_key], year)


SALE_KIND = DocumentKind(
    name="sale",
    label="Sales invoice",
    model=SalesInvoice,
    item_model=SalesInvoiceItem,
    item_fk="sales_invoice_id",
    party_field="customer_id",
    party_model=Customer,
    reference_type=REFERENCE_SALE,
    direction=-1,
    records_unit_cost=False,
    prefix_config_key="SALES_CODE_PREFIX",
    extra_fields=("payment_method", "paid_amount"),
)

PURCHASE_KIND = DocumentKind(
    name="purchase",
    label="Purchase receipt",
    model=PurchaseReceipt,
    item_model=PurchaseReceiptItem,
    item_fk="purchase_receipt_id",
    party_field="supplier_id",
    party_model=Supplier,
    reference_type=REFERENCE_PURCHASE,
    direction=1,
    records_unit_cost=True,
    prefix_config_key="PURCHASE_CODE_PREFIX",
    extra_fields=("other_fee",),
)


@dataclass
class DocumentLineRequest:
    product_id: int
    quantity: int
    unit_price: Decimal
    discount: Decimal = ZERO

    @property
    def total_amount(self) -> Decimal:
        return quantize_money(self.quantity * self.unit_price - self.discount)


@dataclass
class DocumentRequest:
    """What a caller asks the engine to persist. total_amount is stored as given."""
    items: list[DocumentLineRequest]
    total_amount: Decimal
    party_id: int | None = None
    discount_type: str = DISCOUNT_AMOUNT
    discount_value: Decimal = ZERO
    note: str | None = None
    # purchase only
    other_fee: Decimal = ZERO
    # sale only
    payment_method: str = "cash"
    paid_amount: Decimal | None = None


# =============================================================================
# Amount helpers (used by callers before posting)
# =============================================================================

def compute_items_total(lines: list[DocumentLineRequest]) -> Decimal:
    """Sum of quantity * unit_price - discount over all lines."""
    return sum((line.quantity * line.unit_price - line.discount for line in lines), ZERO)


def compute_discount_amount(items_total: Decimal, discount_type: str, discount_value: Decimal) -> Decimal:
    if discount_type == DISCOUNT_PERCENT:
        return items_total * discount_value / Decimal(100)
    return discount_value


# =============================================================================
# Transaction plumbing
# =============================================================================

def _transactional(op: Callable):
    """Run op, commit on success, roll back on any failure and re-raise."""
    try:
        result = op()
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise


def _driver_message(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


# =============================================================================
# Steps
# =============================================================================

def _validate_request(kind: DocumentKind, request: DocumentRequest) -> None:
    if not request.items:
        raise ValidationError("Document must have at least one item")

    product_ids = {line.product_id for line in request.items}
    found = {
        pid for (pid,) in db.session.query(Product.id).filter(Product.id.in_(product_ids)).all()
    }
    missing = sorted(product_ids - found)
    if missing:
        raise ValidationError(f"Product {missing[0]} not found")

    if request.party_id is not None and db.session.get(kind.party_model, request.party_id) is None:
        raise ValidationError(f"{kind.party_field} {request.party_id} not found")


def _check_stock(kind: DocumentKind, request: DocumentRequest) -> None:
    """
    Sales may not take a product's derived stock below zero.

    Runs after the document's own previous ledger rows are removed, so an
    edit is checked against stock as if the old version never existed.
    """
    if kind.direction > 0 or current_app.config.get("ALLOW_NEGATIVE_STOCK"):
        return

    requested: dict[int, int] = defaultdict(int)
    for line in request.items:
        requested[line.product_id] += line.quantity

    levels = inventory_service.get_stock_levels(list(requested))
    for product_id, qty in requested.items():
        available = levels.get(product_id, 0)
        if available < qty:
            raise ValidationError(
                f"Insufficient stock for product {product_id}: requested {qty}, available {available}"
            )


def _apply_header(kind: DocumentKind, document, request: DocumentRequest) -> None:
    setattr(document, kind.party_field, request.party_id)
    document.total_amount = request.total_amount
    document.discount_type = request.discount_type
    document.discount_value = request.discount_value
    document.note = request.note

    if "other_fee" in kind.extra_fields:
        document.other_fee = request.other_fee
    if "payment_method" in kind.extra_fields:
        document.payment_method = request.payment_method or "cash"
    if "paid_amount" in kind.extra_fields:
        document.paid_amount = (
            request.paid_amount if request.paid_amount is not None else request.total_amount
        )


def _write_lines(kind: DocumentKind, document, request: DocumentRequest) -> None:
    """Insert items, then one ledger row per item, all stamped with the document's time."""
    items = []
    for line in request.items:
        item = kind.item_model(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            discount=line.discount,
            total_amount=line.total_amount,
            created_at=document.created_at,
        )
        setattr(item, kind.item_fk, document.id)
        items.append(item)
    db.session.add_all(items)
    db.session.flush()

    entries = [
        ledger_service.build_entry(
            product_id=line.product_id,
            quantity=kind.direction * abs(line.quantity),
            unit_cost=line.unit_price if kind.records_unit_cost else None,
            reference_type=kind.reference_type,
            reference_id=document.id,
            created_at=document.created_at,
        )
        for line in request.items
    ]
    ledger_service.append_entries(entries)


def _delete_items(kind: DocumentKind, document) -> int:
    removed = (
        db.session.query(kind.item_model)
        .filter(getattr(kind.item_model, kind.item_fk) == document.id)
        .delete(synchronize_session="fetch")
    )
    db.session.flush()
    db.session.expire(document, ["items"])
    return removed


def _locked_document(kind: DocumentKind, document_id: int):
    document = lock_for_update(db.session.query(kind.model).filter_by(id=document_id)).first()
    if document is None:
        raise NotFoundError(f"{kind.label} not found")
    return document


def _insert_document(kind: DocumentKind, request: DocumentRequest):
    _validate_request(kind, request)
    _check_stock(kind, request)

    now = utcnow()
    document = kind.model(
        code=document_service.next_document_code(kind.model, kind.code_prefix()),
        status=STATUS_COMPLETED,
        created_at=now,
        updated_at=now,
    )
    _apply_header(kind, document, request)
    db.session.add(document)
    db.session.flush()

    _write_lines(kind, document, request)
    return document


def _replace_document(kind: DocumentKind, document_id: int, request: DocumentRequest):
    document = _locked_document(kind, document_id)
    _validate_request(kind, request)

    ledger_service.remove_by_reference(kind.reference_type, document.id)
    _delete_items(kind, document)

    _check_stock(kind, request)

    _apply_header(kind, document, request)
    document.updated_at = utcnow()
    db.session.flush()

    _write_lines(kind, document, request)
    return document


def _remove_document(kind: DocumentKind, document_id: int) -> dict:
    document = _locked_document(kind, document_id)
    summary = {"id": document.id, "code": document.code}

    summary["ledger_rows_removed"] = ledger_service.remove_by_reference(kind.reference_type, document.id)
    summary["items_removed"] = _delete_items(kind, document)
    db.session.delete(document)
    db.session.flush()
    return summary


# =============================================================================
# Public API
# =============================================================================

def create_document(kind: DocumentKind, request: DocumentRequest):
    """
    Post a new document.

    A unique-constraint collision on code (a concurrent posting took the same
    number) is retried once with a freshly scanned code.
    """
    for attempt in range(CODE_CONFLICT_ATTEMPTS):
        try:
            document = run_with_retry(
                lambda: _transactional(lambda: _insert_document(kind, request))
            )
        except IntegrityError as exc:
            if not is_unique_violation(exc, "code"):
                raise PostingFailedError(_driver_message(exc)) from exc
            if attempt >= CODE_CONFLICT_ATTEMPTS - 1:
                raise document_service.DocumentCodeConflictError(
                    f"Could not allocate a unique {kind.label.lower()} code"
                ) from exc
            current_app.logger.warning(
                "%s code collision, regenerating (attempt %d)", kind.label, attempt + 1
            )
            continue
        except SQLAlchemyError as exc:
            raise PostingFailedError(_driver_message(exc)) from exc

        current_app.logger.info(
            "Posted %s %s (id=%s, %d lines)", kind.name, document.code, document.id, len(request.items)
        )
        return document


def update_document(kind: DocumentKind, document_id: int, request: DocumentRequest):
    """Replace a posted document's header, items and ledger rows in one transaction."""
    try:
        document = run_with_retry(
            lambda: _transactional(lambda: _replace_document(kind, document_id, request))
        )
    except SQLAlchemyError as exc:
        raise PostingFailedError(_driver_message(exc)) from exc

    current_app.logger.info(
        "Reposted %s %s (id=%s, %d lines)", kind.name, document.code, document.id, len(request.items)
    )
    return document


def delete_document(kind: DocumentKind, document_id: int) -> dict:
    """Remove a document, its items and its ledger rows in one transaction."""
    try:
        summary = run_with_retry(
            lambda: _transactional(lambda: _remove_document(kind, document_id))
        )
    except SQLAlchemyError as exc:
        raise PostingFailedError(_driver_message(exc)) from exc

    current_app.logger.info(
        "Deleted %s %s (id=%s, %d ledger rows)",
        kind.name, summary["code"], summary["id"], summary["ledger_rows_removed"],
    )
    return summary


def get_document(kind: DocumentKind, document_id: int):
    document = db.session.get(kind.model, document_id)
    if document is None:
        raise NotFoundError(f"{kind.label} not found")
    return document


def list_documents(
    kind: DocumentKind,
    *,
    party_id: int | None = None,
    from_date=None,
    to_date=None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list, int]:
    """Documents of one kind, newest first, with the unpaged total."""
    query = db.session.query(kind.model)
    if party_id is not None:
        query = query.filter(getattr(kind.model, kind.party_field) == party_id)
    if from_date is not None:
        query = query.filter(kind.model.created_at >= from_date)
    if to_date is not None:
        query = query.filter(kind.model.created_at <= to_date)

    total = query.count()
    docs = query.order_by(
        kind.model.created_at.desc(),
        kind.model.id.desc(),
    ).offset(offset).limit(limit).all()
    return docs, total


def preview_code(kind: DocumentKind) -> str:
    return document_service.peek_next_code(kind.model, kind.code_prefix())
