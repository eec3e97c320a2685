# Overview: Pytest coverage for the stock ledger and its stock/cost projections.

"""
Ledger Projection Tests

Stock and average cost are never stored; these tests post documents and
check what the projector derives from the ledger rows alone.
"""

import logging
from decimal import Decimal

import pytest

from posledger.models import InventoryTransaction, Product
from posledger.models.inventory import REFERENCE_PURCHASE, REFERENCE_SALE, TRANSACTION_IN, TRANSACTION_OUT
from posledger.services import inventory_service, ledger_service
from posledger.validation import NotFoundError


class TestLedgerStore:
    """Append / remove by reference."""

    def test_build_entry_derives_type_from_sign(self, db_session, product_a):
        inbound = ledger_service.build_entry(
            product_id=product_a.id, quantity=5, reference_type=REFERENCE_PURCHASE, reference_id=1,
        )
        outbound = ledger_service.build_entry(
            product_id=product_a.id, quantity=-2, reference_type=REFERENCE_SALE, reference_id=1,
        )
        assert inbound.transaction_type == TRANSACTION_IN
        assert outbound.transaction_type == TRANSACTION_OUT

    def test_build_entry_rejects_zero(self, db_session, product_a):
        with pytest.raises(ValueError):
            ledger_service.build_entry(
                product_id=product_a.id, quantity=0, reference_type=REFERENCE_SALE, reference_id=1,
            )

    def test_remove_by_reference_only_touches_that_document(self, db_session, product_a):
        ledger_service.append_entries([
            ledger_service.build_entry(
                product_id=product_a.id, quantity=3, reference_type=REFERENCE_PURCHASE, reference_id=1,
            ),
            ledger_service.build_entry(
                product_id=product_a.id, quantity=4, reference_type=REFERENCE_PURCHASE, reference_id=2,
            ),
            ledger_service.build_entry(
                product_id=product_a.id, quantity=-1, reference_type=REFERENCE_SALE, reference_id=1,
            ),
        ])
        db_session.commit()

        removed = ledger_service.remove_by_reference(REFERENCE_PURCHASE, 1)
        db_session.commit()

        assert removed == 1
        remaining = ledger_service.list_by_product(product_a.id)
        assert [(e.reference_type, e.reference_id) for e in remaining] == [
            (REFERENCE_PURCHASE, 2),
            (REFERENCE_SALE, 1),
        ]


class TestStockProjection:
    """currentStock(p) = sum of ledger quantities."""

    def test_no_rows_means_zero(self, db_session, product_a):
        assert inventory_service.get_current_stock(product_a.id) == 0
        assert inventory_service.get_average_cost(product_a.id) == Decimal("0")

    def test_purchase_then_sale(self, db_session, product_a, post_purchase, post_sale):
        """Purchase 10 @ 25 000 then sell 4: stock 6, average cost stays 25 000."""
        post_purchase([(product_a.id, 10, 25000)])

        assert inventory_service.get_current_stock(product_a.id) == 10
        assert inventory_service.get_average_cost(product_a.id) == Decimal("25000.00")

        post_sale([(product_a.id, 4, 50000)])

        assert inventory_service.get_current_stock(product_a.id) == 6
        assert inventory_service.get_average_cost(product_a.id) == Decimal("25000.00")

    def test_stock_equals_ledger_sum(self, db_session, product_a, product_b, post_purchase, post_sale):
        post_purchase([(product_a.id, 7, 20000), (product_b.id, 3, 90000)])
        post_purchase([(product_a.id, 5, 26000)])
        post_sale([(product_a.id, 2, 50000), (product_b.id, 1, 150000)])

        for product in (product_a, product_b):
            ledger_sum = sum(e.quantity for e in ledger_service.list_by_product(product.id))
            assert inventory_service.get_current_stock(product.id) == ledger_sum

        levels = inventory_service.get_stock_levels([product_a.id, product_b.id])
        assert levels == {product_a.id: 10, product_b.id: 2}

    def test_weighted_average_over_purchases(self, db_session, product_a, post_purchase, post_sale):
        """(10 * 20 000 + 30 * 24 000) / 40 = 23 000; sales do not move it."""
        post_purchase([(product_a.id, 10, 20000)])
        post_sale([(product_a.id, 5, 50000)])
        post_purchase([(product_a.id, 30, 24000)])

        assert inventory_service.get_average_cost(product_a.id) == Decimal("23000.00")
        assert inventory_service.get_last_purchase_cost(product_a.id) == Decimal("24000")

    def test_average_rounds_half_up(self, db_session, product_a, post_purchase):
        post_purchase([(product_a.id, 199, 1)])
        post_purchase([(product_a.id, 1, 2)])
        # 201 / 200 = 1.005
        assert inventory_service.get_average_cost(product_a.id) == Decimal("1.01")

    def test_negative_stock_is_not_clamped(self, db_session, product_a):
        """Inconsistent ledgers are reported as-is."""
        ledger_service.append_entries([
            ledger_service.build_entry(
                product_id=product_a.id, quantity=-3, reference_type=REFERENCE_SALE, reference_id=99,
            ),
        ])
        db_session.commit()

        assert inventory_service.get_current_stock(product_a.id) == -3

    def test_negative_stock_is_logged_on_batch_reads(self, db_session, product_a, product_b, caplog):
        ledger_service.append_entries([
            ledger_service.build_entry(
                product_id=product_a.id, quantity=-3, reference_type=REFERENCE_SALE, reference_id=99,
            ),
        ])
        db_session.commit()

        with caplog.at_level(logging.WARNING):
            levels = inventory_service.get_stock_levels([product_a.id, product_b.id])

        assert levels == {product_a.id: -3, product_b.id: 0}
        assert "negative stock" in caplog.text
        assert f"product {product_a.id} " in caplog.text
        assert f"product {product_b.id} " not in caplog.text

    def test_batch_average_costs_match_single_reads(self, db_session, product_a, product_b, post_purchase, post_sale):
        post_purchase([(product_a.id, 10, 20000)])
        post_sale([(product_a.id, 5, 50000)])
        post_purchase([(product_a.id, 30, 24000)])
        product_c = Product(code="SP0003", name="Stapler", unit="pcs", status="active")
        db_session.add(product_c)
        db_session.commit()
        post_purchase([(product_c.id, 199, 1)])
        post_purchase([(product_c.id, 1, 2)])

        ids = [product_a.id, product_b.id, product_c.id]
        costs = inventory_service.get_average_costs(ids)

        assert costs == {pid: inventory_service.get_average_cost(pid) for pid in ids}
        assert costs == {
            product_a.id: Decimal("23000.00"),
            product_b.id: Decimal("0.00"),
            product_c.id: Decimal("1.01"),
        }
        assert inventory_service.get_average_costs([]) == {}

    def test_summary(self, db_session, product_a, post_purchase):
        post_purchase([(product_a.id, 4, 25000)])

        summary = inventory_service.get_inventory_summary(product_a.id)
        assert summary["stock_qty"] == 4
        assert summary["average_cost"] == 25000
        assert summary["last_purchase_cost"] == 25000
        assert summary["inventory_value"] == 100000

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.get_inventory_summary(424242)
        with pytest.raises(NotFoundError):
            inventory_service.get_stock_card(424242)


class TestStockCard:
    """Newest first, each row with the balance right after it."""

    def test_running_balance(self, db_session, product_a, supplier, customer, post_purchase, post_sale):
        receipt = post_purchase([(product_a.id, 10, 25000)], supplier_id=supplier.id)
        invoice = post_sale([(product_a.id, 4, 50000)], customer_id=customer.id)
        post_sale([(product_a.id, 1, 50000)])

        card = inventory_service.get_stock_card(product_a.id)

        assert [row["quantity"] for row in card] == [-1, -4, 10]
        assert [row["ending_stock"] for row in card] == [5, 6, 10]
        assert card[0]["ending_stock"] == inventory_service.get_current_stock(product_a.id)

        assert card[1]["document_code"] == invoice.code
        assert card[1]["partner_name"] == "Nguyen Van A"
        assert card[2]["document_code"] == receipt.code
        assert card[2]["partner_name"] == "Acme Wholesale"
        assert card[0]["partner_name"] is None

    def test_sale_rows_carry_no_unit_cost(self, db_session, product_a, post_purchase, post_sale):
        post_purchase([(product_a.id, 2, 25000)])
        invoice = post_sale([(product_a.id, 1, 50000)])

        rows = ledger_service.list_by_reference(REFERENCE_SALE, invoice.id)
        assert len(rows) == 1
        assert rows[0].unit_cost is None
        assert rows[0].quantity == -1

    def test_ledger_rows_share_document_timestamp(self, db_session, product_a, product_b, post_purchase):
        receipt = post_purchase([(product_a.id, 2, 25000), (product_b.id, 1, 90000)])

        rows = db_session.query(InventoryTransaction).filter_by(reference_id=receipt.id).all()
        assert len(rows) == 2
        assert {row.created_at for row in rows} == {receipt.created_at}
