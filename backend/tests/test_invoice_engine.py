# Overview: Pytest coverage for the in-memory draft invoice (cart) and its totals.

"""
Invoice Calculation Tests

Pure functions over DraftInvoice; no database involved.
"""

from decimal import Decimal

import pytest

from posledger.services import invoice_service
from posledger.services.invoice_service import (
    CapacityError,
    DraftInvoice,
    InvoiceTabs,
    ProductSnapshot,
)
from posledger.validation import ValidationError


def _snapshot(pid=1, price=50000, cost=30000, stock=10, name="Notebook"):
    return ProductSnapshot(
        id=pid,
        code=f"SP{pid:04d}",
        name=name,
        stock_qty=stock,
        sale_price=Decimal(price),
        cost_price=Decimal(cost),
    )


def _draft_with_subtotal(amount):
    draft = DraftInvoice()
    invoice_service.add_product(draft, _snapshot(price=amount, cost=0))
    return draft


class TestCalculate:

    def test_subtotal_and_profit(self):
        """2 x (50 000 / cost 30 000) + 1 x (150 000 / cost 100 000)."""
        draft = DraftInvoice()
        cheap = _snapshot(pid=1, price=50000, cost=30000)
        dear = _snapshot(pid=2, price=150000, cost=100000, name="Desk lamp")
        invoice_service.add_product(draft, cheap)
        invoice_service.add_product(draft, cheap)
        invoice_service.add_product(draft, dear)

        totals = invoice_service.calculate(draft)

        assert totals.subtotal == Decimal("250000")
        assert totals.total_profit == Decimal("90000")
        assert totals.final_amount == Decimal("250000")
        assert invoice_service.total_item_count(draft) == 3

    def test_percent_and_amount_discount(self):
        draft = _draft_with_subtotal(100000)

        draft.discount_type = "percent"
        draft.discount = Decimal(10)
        assert invoice_service.calculate(draft).discount_amount == Decimal("10000")

        draft.discount_type = "amount"
        draft.discount = Decimal(15000)
        totals = invoice_service.calculate(draft)
        assert totals.discount_amount == Decimal("15000")
        assert totals.final_amount == Decimal("85000")

    def test_extra_fee_and_vat(self):
        draft = _draft_with_subtotal(100000)
        draft.extra_fee = Decimal(20000)
        draft.vat_amount = Decimal(8000)

        assert invoice_service.calculate(draft).total_vat == Decimal("0")
        assert invoice_service.calculate(draft).final_amount == Decimal("120000")

        draft.vat_enabled = True
        totals = invoice_service.calculate(draft)
        assert totals.total_vat == Decimal("8000")
        assert totals.final_amount == Decimal("128000")

    @pytest.mark.parametrize("payment, change", [
        (150000, 50000),
        (100000, 0),
        (50000, 0),
    ])
    def test_change_is_never_negative(self, payment, change):
        draft = _draft_with_subtotal(100000)
        draft.customer_payment = Decimal(payment)

        assert invoice_service.calculate(draft).change == Decimal(change)

    def test_final_amount_clamped_at_zero(self):
        draft = _draft_with_subtotal(100000)
        draft.discount = Decimal(250000)

        totals = invoice_service.calculate(draft)
        assert totals.final_amount == Decimal("0")
        assert totals.discount_amount == Decimal("250000")

    def test_empty_draft(self):
        totals = invoice_service.calculate(DraftInvoice())
        assert totals.subtotal == Decimal("0")
        assert totals.final_amount == Decimal("0")
        assert totals.quick_amounts == (Decimal("0"), Decimal("100000"))

    @pytest.mark.parametrize("final, expected", [
        (123000, [123000, 150000, 200000, 300000]),
        (100000, [100000, 200000]),
        (150000, [150000, 200000, 300000]),
        (30000, [30000, 50000, 100000, 200000]),
    ])
    def test_quick_amounts(self, final, expected):
        assert list(invoice_service.quick_amounts(Decimal(final))) == [Decimal(v) for v in expected]

    def test_totals_to_dict(self):
        draft = _draft_with_subtotal(123000)
        data = invoice_service.calculate(draft).to_dict()
        assert data["subtotal"] == 123000
        assert data["quick_amounts"] == [123000, 150000, 200000, 300000]


class TestCartEdits:

    def test_add_increments_existing_line(self):
        draft = DraftInvoice()
        product = _snapshot(stock=3)
        invoice_service.add_product(draft, product)
        item = invoice_service.add_product(draft, product)

        assert len(draft.items) == 1
        assert item.quantity == 2
        assert item.total_price == Decimal("100000")
        assert item.profit == Decimal("40000")

    def test_add_out_of_stock(self):
        draft = DraftInvoice()
        with pytest.raises(CapacityError):
            invoice_service.add_product(draft, _snapshot(stock=0))
        assert draft.items == []

    def test_add_past_capacity_leaves_draft_unchanged(self):
        draft = DraftInvoice()
        product = _snapshot(stock=2)
        invoice_service.add_product(draft, product)
        invoice_service.add_product(draft, product)

        with pytest.raises(CapacityError) as exc_info:
            invoice_service.add_product(draft, product)

        assert exc_info.value.max_qty == 2
        assert draft.items[0].quantity == 2

    def test_update_quantity_price_and_discount(self):
        draft = DraftInvoice()
        invoice_service.add_product(draft, _snapshot(stock=10))

        invoice_service.update_item(draft, 0, "quantity", 4)
        invoice_service.update_item(draft, 0, "sale_price", 45000)
        item = invoice_service.update_item(draft, 0, "discount", 10000)

        assert item.quantity == 4
        assert item.total_price == Decimal("170000")
        assert item.profit == Decimal("50000")

    def test_update_note_does_not_touch_totals(self):
        draft = DraftInvoice()
        invoice_service.add_product(draft, _snapshot())
        before = draft.items[0]

        item = invoice_service.update_item(draft, 0, "note", "gift wrap")

        assert item.note == "gift wrap"
        assert (item.total_price, item.profit) == (before.total_price, before.profit)

    def test_update_quantity_past_capacity(self):
        draft = DraftInvoice()
        invoice_service.add_product(draft, _snapshot(stock=5))

        with pytest.raises(CapacityError):
            invoice_service.update_item(draft, 0, "quantity", 6)
        with pytest.raises(ValidationError):
            invoice_service.update_item(draft, 0, "quantity", 0)

        assert draft.items[0].quantity == 1

    def test_update_quantity_must_be_whole(self):
        draft = DraftInvoice()
        invoice_service.add_product(draft, _snapshot(stock=5))
        invoice_service.update_item(draft, 0, "quantity", 3)

        for bad in (2.7, "abc", True):
            with pytest.raises(ValidationError):
                invoice_service.update_item(draft, 0, "quantity", bad)

        assert draft.items[0].quantity == 3
        assert draft.items[0].total_price == Decimal("150000")

    def test_update_rejects_non_finite_price(self):
        draft = DraftInvoice()
        invoice_service.add_product(draft, _snapshot())

        with pytest.raises(ValidationError):
            invoice_service.update_item(draft, 0, "sale_price", "NaN")
        with pytest.raises(ValidationError):
            invoice_service.update_item(draft, 0, "discount", "Infinity")

        assert draft.items[0].sale_price == Decimal("50000")

    def test_update_unknown_field_or_index(self):
        draft = DraftInvoice()
        invoice_service.add_product(draft, _snapshot())
        with pytest.raises(ValidationError):
            invoice_service.update_item(draft, 0, "max_qty", 99)
        with pytest.raises(ValidationError):
            invoice_service.update_item(draft, 3, "quantity", 1)

    def test_remove_and_clear(self):
        draft = DraftInvoice()
        invoice_service.add_product(draft, _snapshot(pid=1))
        invoice_service.add_product(draft, _snapshot(pid=2))

        removed = invoice_service.remove_item(draft, 0)
        assert removed.product_id == 1
        assert [i.product_id for i in draft.items] == [2]

        invoice_service.clear_items(draft)
        assert draft.items == []

    def test_format_discount_text(self):
        assert invoice_service.format_discount_text(10, "percent") == "10%"
        assert invoice_service.format_discount_text(12.5, "percent") == "12.5%"
        assert invoice_service.format_discount_text(50000, "amount") == "50,000"

    def test_snapshot_prefers_average_cost(self):
        snap = ProductSnapshot.from_dict({
            "id": 1, "code": "SP0001", "name": "Notebook", "stock_qty": 4,
            "sale_price_default": 50000, "cost_price": 30000, "average_cost": 27500,
        })
        assert snap.cost_price == Decimal("27500")
        assert snap.sale_price == Decimal("50000")

        fallback = ProductSnapshot.from_dict({
            "id": 1, "sale_price_default": 50000, "cost_price": 30000, "average_cost": 0,
        })
        assert fallback.cost_price == Decimal("30000")


class TestTabs:

    def test_tabs_are_independent(self):
        tabs = InvoiceTabs()
        first = tabs.active
        invoice_service.add_product(first, _snapshot())

        second = tabs.add_tab()
        assert tabs.active is second
        assert second.name == "Invoice 2"
        assert second.items == []
        assert len(first.items) == 1

        tabs.activate(first.id)
        assert tabs.active is first

    def test_closing_active_tab_moves_to_first(self):
        tabs = InvoiceTabs()
        first = tabs.active
        second = tabs.add_tab()

        tabs.close_tab(second.id)

        assert [t.id for t in tabs.tabs] == [first.id]
        assert tabs.active is first

    def test_closing_last_tab_resets_it(self):
        tabs = InvoiceTabs()
        invoice_service.add_product(tabs.active, _snapshot())
        old_id = tabs.active.id

        tabs.close_tab(old_id)

        assert len(tabs.tabs) == 1
        assert tabs.active.id != old_id
        assert tabs.active.items == []

    def test_reset_active_keeps_identity(self):
        tabs = InvoiceTabs()
        tab = tabs.active
        invoice_service.add_product(tab, _snapshot())
        tab.customer_payment = Decimal(100000)

        tabs.reset_active()

        assert tabs.active is tab
        assert tab.items == []
        assert tab.customer_payment == Decimal("0")

    def test_activate_unknown_tab(self):
        with pytest.raises(ValidationError):
            InvoiceTabs().activate("nope")


class TestConversions:

    def test_to_sale_request_drops_ui_fields(self):
        draft = DraftInvoice(customer_id=7, payment_method="card")
        invoice_service.add_product(draft, _snapshot(pid=1))
        invoice_service.add_product(draft, _snapshot(pid=1))
        draft.discount = Decimal(10000)

        request = invoice_service.to_sale_request(draft)

        assert request.party_id == 7
        assert request.total_amount == Decimal("90000")
        assert request.paid_amount == Decimal("90000")
        assert request.payment_method == "card"
        line = request.items[0]
        assert (line.product_id, line.quantity, line.unit_price) == (1, 2, Decimal("50000"))
        assert not hasattr(line, "max_qty")
        assert not hasattr(line, "cost_price")

    def test_to_sale_request_uses_customer_payment(self):
        draft = _draft_with_subtotal(100000)
        draft.customer_payment = Decimal(200000)
        assert invoice_service.to_sale_request(draft).paid_amount == Decimal("200000")

    def test_to_sale_request_requires_items(self):
        with pytest.raises(ValidationError):
            invoice_service.to_sale_request(DraftInvoice())

    def test_draft_from_dict_recomputes_lines(self):
        draft = invoice_service.draft_from_dict({
            "items": [{
                "product_id": 1, "quantity": 2, "sale_price": 50000, "cost_price": 30000,
                "total_price": 1, "profit": 1,
            }],
            "discount": 10,
            "discount_type": "percent",
        })
        assert draft.items[0].total_price == Decimal("100000")
        assert draft.items[0].profit == Decimal("40000")
        assert invoice_service.calculate(draft).final_amount == Decimal("90000")

    def test_draft_from_dict_rejects_bad_discount_type(self):
        with pytest.raises(ValidationError):
            invoice_service.draft_from_dict({"discount_type": "bogus"})

    @pytest.mark.parametrize("payload", [
        {"discount": "NaN"},
        {"discount": float("nan")},
        {"vat_amount": "Infinity"},
        {"extra_fee": "-5"},
        {"customer_payment": "1e999999"},
        {"items": [{"product_id": 1, "quantity": 1, "sale_price": "NaN"}]},
        {"items": [{"product_id": 1, "quantity": 1.5, "sale_price": 100}]},
        {"items": [{"product_id": 1, "quantity": 1, "sale_price": 100, "max_qty": "many"}]},
    ])
    def test_draft_from_dict_rejects_bad_amounts(self, payload):
        with pytest.raises(ValidationError):
            invoice_service.draft_from_dict(payload)
