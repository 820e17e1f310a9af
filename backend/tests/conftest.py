"""
Pytest fixtures for storefront backend tests.

Provides an in-memory database, a temporary receipts directory, the test
client and small factories for catalog rows.
"""

from decimal import Decimal

import pytest
from storefront import create_app
from storefront.extensions import db
from storefront.models import Product, Category


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RECEIPTS_DIR': str(tmp_path_factory.mktemp('facturas')),
        'CORS_ORIGINS': {'http://localhost:5173'},
        'STORE_TIMEZONE': 'UTC',
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


@pytest.fixture(scope='function')
def make_line(db_session):
    def _make(name="Bebidas", markup_percent="0"):
        line = Category(name=name, markup_percent=Decimal(markup_percent))
        db_session.add(line)
        db_session.commit()
        return line
    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(code="A1", *, stock=10, sell=5000, purchase=None, name=None, line=None):
        product = Product(
            code=code,
            name=name or f"Product {code}",
            sell_price_cents=sell,
            purchase_price_cents=purchase,
            margin_cents=(sell - purchase) if sell is not None and purchase is not None else None,
            category_id=line.id if line is not None else None,
            stock=stock,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


def cart_item(code="A1", unit=5000, quantity=2, name=None):
    """Parsed cart line as the services expect it."""
    return {"code": code, "name": name, "unit_price_cents": unit, "quantity": Decimal(quantity)}


def stock_of(code: str) -> int:
    db.session.expire_all()
    return db.session.query(Product).filter_by(code=code).one().stock
