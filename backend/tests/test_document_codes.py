# Overview: Pytest coverage for document code allocation and collision handling.

"""
Document Code Tests

Codes are prefix + year + zero-padded counter (HD20250001). Allocation scans
the existing series; a collision at insert time is retried once with a new
code, and a second collision surfaces as DocumentCodeConflictError.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from posledger.extensions import db
from posledger.models import PurchaseReceipt, SalesInvoice
from posledger.services import document_service, posting_service
from posledger.services.document_service import DocumentCodeConflictError
from posledger.time_utils import current_year


def _insert_invoice(session, code):
    invoice = SalesInvoice(code=code, total_amount=0, paid_amount=0)
    session.add(invoice)
    session.commit()
    return invoice


class TestCodeFormat:

    def test_series_prefix_uses_year(self, db_session):
        assert document_service.series_prefix("HD", 2025) == "HD2025"
        assert document_service.series_prefix("PN") == f"PN{current_year()}"

    def test_empty_series_starts_at_one(self, db_session):
        assert document_service.next_document_code(SalesInvoice, "HD2025") == "HD20250001"

    def test_increments_greatest_code(self, db_session):
        _insert_invoice(db_session, "HD20250007")
        _insert_invoice(db_session, "HD20250003")

        assert document_service.next_document_code(SalesInvoice, "HD2025") == "HD20250008"

    def test_other_years_do_not_count(self, db_session):
        _insert_invoice(db_session, "HD20240042")

        assert document_service.next_document_code(SalesInvoice, "HD2025") == "HD20250001"

    def test_counter_grows_past_pad_width(self, db_session):
        _insert_invoice(db_session, "HD20259999")
        assert document_service.next_document_code(SalesInvoice, "HD2025") == "HD202510000"

        _insert_invoice(db_session, "HD202510000")
        assert document_service.next_document_code(SalesInvoice, "HD2025") == "HD202510001"

    def test_custom_pad(self, db_session):
        assert document_service.next_document_code(SalesInvoice, "HD2025", pad=6) == "HD2025000001"

    def test_series_are_per_document_type(self, db_session, product_a, post_purchase, post_sale):
        year = current_year()
        receipt = post_purchase([(product_a.id, 5, 25000)])
        invoice = post_sale([(product_a.id, 1, 50000)])

        assert receipt.code == f"PN{year}0001"
        assert invoice.code == f"HD{year}0001"

    def test_preview_reserves_nothing(self, db_session, product_a, post_purchase):
        year = current_year()
        assert posting_service.preview_code(posting_service.PURCHASE_KIND) == f"PN{year}0001"
        assert posting_service.preview_code(posting_service.PURCHASE_KIND) == f"PN{year}0001"

        receipt = post_purchase([(product_a.id, 5, 25000)])
        assert receipt.code == f"PN{year}0001"
        assert posting_service.preview_code(posting_service.PURCHASE_KIND) == f"PN{year}0002"


class TestCodeCollisions:
    """Two postings racing for the same number must not both commit it."""

    def test_code_column_is_unique(self, db_session):
        _insert_invoice(db_session, "HD20250001")

        db_session.add(SalesInvoice(code="HD20250001", total_amount=0, paid_amount=0))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_collision_is_retried_with_fresh_code(self, db_session, product_a, post_purchase, monkeypatch):
        """The first allocation returns a taken code, as if a concurrent posting won the race."""
        year = current_year()
        first = post_purchase([(product_a.id, 5, 25000)])
        taken = first.code
        assert taken == f"PN{year}0001"

        real_next = document_service.next_document_code
        calls = []

        def stale_then_real(model, prefix, **kwargs):
            calls.append(prefix)
            if len(calls) == 1:
                return taken
            return real_next(model, prefix, **kwargs)

        monkeypatch.setattr(document_service, "next_document_code", stale_then_real)

        second = post_purchase([(product_a.id, 2, 26000)])

        assert len(calls) == 2
        assert second.code == f"PN{year}0002"
        assert db_session.query(PurchaseReceipt).count() == 2

    def test_second_collision_raises_conflict(self, db_session, product_a, post_purchase, monkeypatch):
        first = post_purchase([(product_a.id, 5, 25000)])
        taken = first.code

        monkeypatch.setattr(
            document_service, "next_document_code", lambda model, prefix, **kwargs: taken
        )

        with pytest.raises(DocumentCodeConflictError):
            post_purchase([(product_a.id, 2, 26000)])

        db.session.rollback()
        assert db_session.query(PurchaseReceipt).count() == 1
