"""
Pytest fixtures for TenPeso backend tests.

Provides test database setup, product factories, and test client.
"""

import pytest

from tenpeso import create_app
from tenpeso.extensions import db
from tenpeso.models import Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ADMIN_API_TOKEN': None,
        'BUSINESS_TIMEZONE': 'Asia/Manila',
        'REVENUE_INCLUDES_DELIVERY_FEE': False,
        'ALLOW_UNRECEIVED_FALLBACK': True,
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
def make_product(db_session):
    """Factory for catalog products (stock starts at zero)."""
    def _make(name="Pancit Canton", price_cents=200, cost_cents=80, category="Noodles", is_active=True):
        product = Product(
            name=name,
            category=category,
            price_cents=price_cents,
            cost_cents=cost_cents,
            stock_qty=0,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product_a(make_product):
    return make_product(name="Product A", price_cents=200, cost_cents=90)


@pytest.fixture(scope='function')
def product_b(make_product):
    return make_product(name="Product B", price_cents=150, cost_cents=60, category="Drinks")


def pickup_fields(**overrides) -> dict:
    """Checkout fields for a cash pickup order."""
    fields = {
        'customer_name': 'Juan Dela Cruz',
        'contact': '09171234567',
        'fulfillment': 'pickup',
        'pickup_location': 'boys_411',
        'payment_method': 'cod',
    }
    fields.update(overrides)
    return fields


def admin_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
