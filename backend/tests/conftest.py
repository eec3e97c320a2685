"""
Pytest fixtures for posledger backend tests.

Provides an in-memory application, a per-test clean database, master data
(products, customers, suppliers) and small helpers for posting documents.
"""

from decimal import Decimal

import pytest
from posledger import create_app
from posledger.extensions import db
from posledger.models import Customer, Product, Supplier
from posledger.services import purchase_service, sales_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ALLOW_NEGATIVE_STOCK': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_product(session, code, name, cost, price):
    product = Product(
        code=code,
        name=name,
        unit="pcs",
        status="active",
        cost_price=Decimal(cost),
        sale_price_default=Decimal(price),
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session):
    """Cheap product: cost 30 000, price 50 000."""
    return _make_product(db_session, "SP0001", "Notebook", 30000, 50000)


@pytest.fixture(scope='function')
def product_b(db_session):
    """Expensive product: cost 100 000, price 150 000."""
    return _make_product(db_session, "SP0002", "Desk lamp", 100000, 150000)


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(code="KH0001", name="Nguyen Van A", phone="0900000001")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def supplier(db_session):
    s = Supplier(code="NCC0001", name="Acme Wholesale", phone="0900000002")
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture(scope='function')
def post_purchase(db_session):
    """Factory: post a purchase receipt of lines [(product_id, qty, unit_price), ...]."""
    def _post(lines, **extra):
        payload = {
            "items": [
                {"product_id": pid, "quantity": qty, "unit_price": price}
                for pid, qty, price in lines
            ],
            **extra,
        }
        return purchase_service.create_purchase(payload)
    return _post


@pytest.fixture(scope='function')
def post_sale(db_session):
    """Factory: post a sales invoice of lines [(product_id, qty, unit_price), ...]."""
    def _post(lines, **extra):
        payload = {
            "items": [
                {"product_id": pid, "quantity": qty, "unit_price": price}
                for pid, qty, price in lines
            ],
            **extra,
        }
        return sales_service.create_sale(payload)
    return _post
