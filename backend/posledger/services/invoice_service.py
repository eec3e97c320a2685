# Overview: In-memory draft invoice (cart) and its pure totals calculation.

"""
Invoice Calculation Engine

A DraftInvoice is the cart an operator edits before anything is posted. It is
never persisted and shares no base class with SalesInvoice; the only bridge
between the two is to_sale_request().

calculate() is a pure function of one draft: no I/O, no shared state, so any
number of drafts (tabs) can be recalculated independently.

Totals:
- line.total_price = quantity * sale_price - discount
- line.profit      = line.total_price - quantity * cost_price
- subtotal         = sum(line.total_price)
- discount_amount  = subtotal * discount / 100  (percent)  |  discount  (amount)
- total_vat        = vat_amount if vat_enabled else 0  (VAT is entered as an amount)
- final_amount     = max(0, subtotal - discount_amount + extra_fee + total_vat)
- change           = max(0, customer_payment - final_amount)
- quick_amounts    = exact, ceil to 50k, ceil to 100k, ceil to 100k + 100k
                     (deduplicated, >= final_amount, ascending, at most 4)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_CEILING

from ..money import ZERO, money_to_json, quantize_money, to_decimal
from ..validation import (
    DISCOUNT_AMOUNT,
    DISCOUNT_PERCENT,
    DISCOUNT_TYPES,
    ValidationError,
    coerce_int,
    coerce_money,
)
from .posting_service import DocumentLineRequest, DocumentRequest


QUICK_AMOUNT_STEPS = (Decimal(50000), Decimal(100000))
MAX_QUICK_AMOUNTS = 4

EDITABLE_ITEM_FIELDS = {"quantity", "sale_price", "discount", "note"}


class CapacityError(ValueError):
    """A cart line would exceed the stock available when the product was picked."""

    def __init__(self, message: str, *, product_id=None, max_qty: int | None = None):
        super().__init__(message)
        self.product_id = product_id
        self.max_qty = max_qty


@dataclass(frozen=True)
class ProductSnapshot:
    """What the cart needs to know about a product at the moment it is picked."""
    id: int
    code: str
    name: str
    stock_qty: int
    sale_price: Decimal
    cost_price: Decimal

    @classmethod
    def from_dict(cls, data: dict) -> "ProductSnapshot":
        # Prefer the ledger-derived average cost; fall back to the nominal cost
        cost = data.get("average_cost")
        if cost in (None, 0):
            cost = data.get("cost_price")
        return cls(
            id=data["id"],
            code=data.get("code") or "",
            name=data.get("name") or "",
            stock_qty=int(data.get("stock_qty") or 0),
            sale_price=to_decimal(data.get("sale_price", data.get("sale_price_default"))),
            cost_price=to_decimal(cost),
        )


@dataclass
class SaleItem:
    product_id: int
    product_code: str
    product_name: str
    quantity: int
    sale_price: Decimal
    discount: Decimal
    total_price: Decimal
    cost_price: Decimal
    profit: Decimal
    max_qty: int
    note: str = ""

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "sale_price": money_to_json(self.sale_price),
            "discount": money_to_json(self.discount),
            "total_price": money_to_json(self.total_price),
            "cost_price": money_to_json(self.cost_price),
            "profit": money_to_json(self.profit),
            "max_qty": self.max_qty,
            "note": self.note,
        }


@dataclass
class DraftInvoice:
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    name: str = "Invoice 1"
    customer_id: int | None = None
    items: list[SaleItem] = field(default_factory=list)
    discount: Decimal = ZERO
    discount_type: str = DISCOUNT_AMOUNT
    extra_fee: Decimal = ZERO
    vat_enabled: bool = False
    vat_amount: Decimal = ZERO
    payment_method: str = "cash"
    customer_payment: Decimal = ZERO
    note: str = ""


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    discount_amount: Decimal
    total_vat: Decimal
    final_amount: Decimal
    change: Decimal
    total_profit: Decimal
    quick_amounts: tuple[Decimal, ...]

    def to_dict(self) -> dict:
        return {
            "subtotal": money_to_json(self.subtotal),
            "discount_amount": money_to_json(self.discount_amount),
            "total_vat": money_to_json(self.total_vat),
            "final_amount": money_to_json(self.final_amount),
            "change": money_to_json(self.change),
            "total_profit": money_to_json(self.total_profit),
            "quick_amounts": [money_to_json(a) for a in self.quick_amounts],
        }


# =============================================================================
# Calculation
# =============================================================================

def _line_totals(quantity: int, sale_price: Decimal, discount: Decimal, cost_price: Decimal):
    total_price = quantity * sale_price - discount
    profit = total_price - quantity * cost_price
    return total_price, profit


def _ceil_to(value: Decimal, step: Decimal) -> Decimal:
    return (value / step).to_integral_value(rounding=ROUND_CEILING) * step


def quick_amounts(final_amount: Decimal) -> tuple[Decimal, ...]:
    """Round payment suggestions at or above final_amount, exact amount first."""
    rounded_100k = _ceil_to(final_amount, QUICK_AMOUNT_STEPS[1])
    candidates = [
        final_amount,
        _ceil_to(final_amount, QUICK_AMOUNT_STEPS[0]),
        rounded_100k,
        rounded_100k + QUICK_AMOUNT_STEPS[1],
    ]
    unique = sorted({quantize_money(c) for c in candidates if c >= final_amount})
    return tuple(unique[:MAX_QUICK_AMOUNTS])


def calculate(draft: DraftInvoice) -> InvoiceTotals:
    subtotal = sum((item.total_price for item in draft.items), ZERO)

    if draft.discount_type == DISCOUNT_PERCENT:
        discount_amount = subtotal * draft.discount / Decimal(100)
    else:
        discount_amount = draft.discount

    total_vat = draft.vat_amount if draft.vat_enabled else ZERO

    final_amount = max(ZERO, subtotal - discount_amount + draft.extra_fee + total_vat)
    change = max(ZERO, draft.customer_payment - final_amount)
    total_profit = sum((item.profit for item in draft.items), ZERO)

    return InvoiceTotals(
        subtotal=quantize_money(subtotal),
        discount_amount=quantize_money(discount_amount),
        total_vat=quantize_money(total_vat),
        final_amount=quantize_money(final_amount),
        change=quantize_money(change),
        total_profit=quantize_money(total_profit),
        quick_amounts=quick_amounts(quantize_money(final_amount)),
    )


# =============================================================================
# Cart edits
# =============================================================================

def add_product(draft: DraftInvoice, product: ProductSnapshot) -> SaleItem:
    """
    Put one unit of product in the cart.

    An existing line is incremented; otherwise a new line is appended at
    quantity 1. The draft is left untouched when CapacityError is raised.
    """
    for index, existing in enumerate(draft.items):
        if existing.product_id != product.id:
            continue

        new_quantity = existing.quantity + 1
        if new_quantity > existing.max_qty:
            raise CapacityError(
                f"Insufficient stock: only {existing.max_qty} available",
                product_id=product.id,
                max_qty=existing.max_qty,
            )

        total_price, profit = _line_totals(
            new_quantity, existing.sale_price, existing.discount, existing.cost_price
        )
        updated = replace(existing, quantity=new_quantity, total_price=total_price, profit=profit)
        draft.items[index] = updated
        return updated

    if product.stock_qty <= 0:
        raise CapacityError(
            f'Product "{product.name}" is out of stock',
            product_id=product.id,
            max_qty=product.stock_qty,
        )

    item = SaleItem(
        product_id=product.id,
        product_code=product.code,
        product_name=product.name,
        quantity=1,
        sale_price=product.sale_price,
        discount=ZERO,
        total_price=product.sale_price,
        cost_price=product.cost_price,
        profit=product.sale_price - product.cost_price,
        max_qty=product.stock_qty,
    )
    draft.items.append(item)
    return item


def _item_at(draft: DraftInvoice, index: int) -> SaleItem:
    if index < 0 or index >= len(draft.items):
        raise ValidationError(f"No cart line at position {index}")
    return draft.items[index]


def update_item(draft: DraftInvoice, index: int, field_name: str, value) -> SaleItem:
    """
    Change one field of a cart line.

    total_price and profit are recomputed only for quantity, sale_price and
    discount. A quantity above max_qty raises CapacityError and leaves the
    line as it was.
    """
    if field_name not in EDITABLE_ITEM_FIELDS:
        raise ValidationError(f"Cart field not editable: {field_name}")

    item = _item_at(draft, index)

    if field_name == "note":
        updated = replace(item, note=str(value or ""))
        draft.items[index] = updated
        return updated

    quantity, sale_price, discount = item.quantity, item.sale_price, item.discount
    if field_name == "quantity":
        quantity = coerce_int(value, "quantity", minimum=1)
        if quantity > item.max_qty:
            raise CapacityError(
                f"Insufficient stock: only {item.max_qty} available",
                product_id=item.product_id,
                max_qty=item.max_qty,
            )
    elif field_name == "sale_price":
        sale_price = coerce_money(value, field_name)
    else:
        discount = coerce_money(value, field_name)

    total_price, profit = _line_totals(quantity, sale_price, discount, item.cost_price)
    updated = replace(
        item,
        quantity=quantity,
        sale_price=sale_price,
        discount=discount,
        total_price=total_price,
        profit=profit,
    )
    draft.items[index] = updated
    return updated


def remove_item(draft: DraftInvoice, index: int) -> SaleItem:
    _item_at(draft, index)
    return draft.items.pop(index)


def clear_items(draft: DraftInvoice) -> None:
    draft.items.clear()


def total_item_count(draft: DraftInvoice) -> int:
    return sum(item.quantity for item in draft.items)


def format_discount_text(discount, discount_type: str) -> str:
    """10 / percent -> "10%"; 50000 / amount -> "50,000"."""
    if discount_type == DISCOUNT_PERCENT:
        return f"{money_to_json(to_decimal(discount))}%"
    return f"{to_decimal(discount):,.0f}"


# =============================================================================
# Tabs (several independent drafts in one session)
# =============================================================================

def new_draft(index: int) -> DraftInvoice:
    return DraftInvoice(name=f"Invoice {index}")


class InvoiceTabs:
    """Open drafts of one operator session. At least one tab always exists."""

    def __init__(self):
        first = new_draft(1)
        self.tabs: list[DraftInvoice] = [first]
        self.active_id = first.id

    @property
    def active(self) -> DraftInvoice:
        for tab in self.tabs:
            if tab.id == self.active_id:
                return tab
        return self.tabs[0]

    def add_tab(self) -> DraftInvoice:
        tab = new_draft(len(self.tabs) + 1)
        self.tabs.append(tab)
        self.active_id = tab.id
        return tab

    def activate(self, tab_id: str) -> DraftInvoice:
        if not any(tab.id == tab_id for tab in self.tabs):
            raise ValidationError(f"Unknown tab {tab_id}")
        self.active_id = tab_id
        return self.active

    def close_tab(self, tab_id: str) -> None:
        """Closing the last tab replaces it with a fresh empty one."""
        if len(self.tabs) == 1:
            fresh = new_draft(1)
            self.tabs = [fresh]
            self.active_id = fresh.id
            return

        self.tabs = [tab for tab in self.tabs if tab.id != tab_id]
        if self.active_id == tab_id:
            self.active_id = self.tabs[0].id

    def reset_active(self) -> DraftInvoice:
        """Clear cart and payment fields but keep the tab's identity and name."""
        tab = self.active
        tab.customer_id = None
        tab.items = []
        tab.discount = ZERO
        tab.extra_fee = ZERO
        tab.vat_enabled = False
        tab.vat_amount = ZERO
        tab.customer_payment = ZERO
        tab.note = ""
        return tab


# =============================================================================
# Draft <-> payload conversions
# =============================================================================

def draft_from_dict(data: dict) -> DraftInvoice:
    """
    Rebuild a draft from a client payload (e.g. POST /api/sales/calculate).

    Line totals are always recomputed; client-supplied total_price/profit are ignored.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    discount_type = data.get("discount_type") or DISCOUNT_AMOUNT
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(
            f"discount_type must be one of: {', '.join(sorted(DISCOUNT_TYPES))}"
        )

    try:
        items = []
        for raw in data.get("items") or []:
            quantity = coerce_int(raw.get("quantity"), "quantity", minimum=1)
            sale_price = coerce_money(raw.get("sale_price"), "sale_price")
            discount = coerce_money(raw.get("discount"), "discount")
            cost_price = coerce_money(raw.get("cost_price"), "cost_price")
            max_qty = raw.get("max_qty")
            total_price, profit = _line_totals(quantity, sale_price, discount, cost_price)
            items.append(SaleItem(
                product_id=raw.get("product_id"),
                product_code=raw.get("product_code") or "",
                product_name=raw.get("product_name") or "",
                quantity=quantity,
                sale_price=sale_price,
                discount=discount,
                total_price=total_price,
                cost_price=cost_price,
                profit=profit,
                max_qty=quantity if max_qty is None else coerce_int(max_qty, "max_qty", minimum=0),
                note=raw.get("note") or "",
            ))

        return DraftInvoice(
            customer_id=data.get("customer_id"),
            items=items,
            discount=coerce_money(data.get("discount"), "discount"),
            discount_type=discount_type,
            extra_fee=coerce_money(data.get("extra_fee"), "extra_fee"),
            vat_enabled=bool(data.get("vat_enabled")),
            vat_amount=coerce_money(data.get("vat_amount"), "vat_amount"),
            payment_method=data.get("payment_method") or "cash",
            customer_payment=coerce_money(data.get("customer_payment"), "customer_payment"),
            note=data.get("note") or "",
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise ValidationError(str(e))


def to_sale_request(draft: DraftInvoice) -> DocumentRequest:
    """
    The one conversion from a cart to a sales posting request.

    total_amount is the final amount the operator saw; UI-only fields
    (max_qty, cost_price, profit) do not cross over.
    """
    if not draft.items:
        raise ValidationError("Document must have at least one item")

    totals = calculate(draft)
    paid = draft.customer_payment if draft.customer_payment > 0 else totals.final_amount

    return DocumentRequest(
        items=[
            DocumentLineRequest(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.sale_price,
                discount=item.discount,
            )
            for item in draft.items
        ],
        total_amount=totals.final_amount,
        party_id=draft.customer_id,
        discount_type=draft.discount_type,
        discount_value=draft.discount,
        payment_method=draft.payment_method,
        paid_amount=paid,
        note=draft.note or None,
    )
