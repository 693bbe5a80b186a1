"""
Pytest fixtures for marketplace backend tests.

Provides an in-memory database, a test client, and small factories for
vendors, products and orders.
"""

import pytest

from marketplace import create_app
from marketplace.extensions import db
from marketplace.models import Order, OrderItem, Product, Vendor


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'AUTO_RECORD_SALES': True,
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
def cli_runner(app):
    return app.test_cli_runner()


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
def make_vendor(db_session):
    """Factory: make_vendor(business_name="Acme", auto_stock_deduction=False, ...)."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "name": f"Vendor {counter['n']}",
            "business_name": f"Vendor Business {counter['n']}",
            "email": f"vendor{counter['n']}@example.test",
        }
        fields.update(overrides)
        vendor = Vendor(**fields)
        db_session.add(vendor)
        db_session.commit()
        return vendor

    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(vendor, price_cents=1000, stock=10, ...)."""
    counter = {"n": 0}

    def _make(vendor=None, **overrides):
        counter["n"] += 1
        fields = {
            "vendor_id": vendor.id if vendor is not None else overrides.pop("vendor_id"),
            "sku": f"SKU-{counter['n']:04d}",
            "name": f"Product {counter['n']}",
            "price_cents": 1000,
            "stock": 10,
        }
        fields.update(overrides)
        product = Product(**fields)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_order(db_session):
    """
    Factory: make_order([(product, quantity), ...], user_id=7, ...).

    Each line snapshots the product's current price unless a third tuple
    element gives the unit price. A bare product id (int) stands for a
    product that no longer exists.
    """
    def _make(lines, **overrides):
        fields = {
            "customer_name": "Jane Customer",
            "customer_email": "jane@example.test",
            "payment_method": "razorpay",
        }
        fields.update(overrides)
        order = Order(**fields)
        db_session.add(order)
        db_session.flush()

        items_price = 0
        for line in lines:
            product, quantity = line[0], line[1]
            if isinstance(product, int):
                product_id, name, price = product, "Deleted product", 500
            else:
                product_id, name, price = product.id, product.name, product.price_cents
            if len(line) > 2:
                price = line[2]
            db_session.add(OrderItem(
                order_id=order.id,
                product_id=product_id,
                product_name=name,
                quantity=quantity,
                price_cents=price,
            ))
            items_price += price * quantity

        order.items_price_cents = items_price
        order.total_price_cents = items_price
        db_session.commit()
        return order

    return _make
