"""
Concurrent sales recording against a file-backed SQLite database.

Each worker runs in its own app context, so it gets its own session and
connection and competes for the write lock like separate requests would.
"""

import threading

import pytest

from marketplace import create_app
from marketplace.extensions import db
from marketplace.models import (
    Order,
    OrderItem,
    Product,
    SalesReconciliation,
    StockMovement,
    Vendor,
    VendorSale,
)
from marketplace.services.concurrency import begin_immediate
from marketplace.services.sales_recorder_service import AlreadyRecordedError, record_sales_for_order


class TestBeginImmediate:

    def test_opens_transaction_on_sqlite(self, db_session):
        db_session.commit()
        assert not db_session().in_transaction()

        begin_immediate()

        assert db_session().in_transaction()
        db_session.rollback()

    def test_noop_inside_transaction(self, db_session, make_vendor):
        vendor = make_vendor()
        assert vendor.id is not None
        assert db_session().in_transaction()

        begin_immediate()

        assert db_session().in_transaction()


@pytest.fixture
def file_app(tmp_path):
    db_path = tmp_path / "marketplace-concurrency.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"timeout": 30}},
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def _seed(app, *, stock: int, orders: int, quantity: int):
    with app.app_context():
        vendor = Vendor(name="Race", business_name="Race Vendor")
        db.session.add(vendor)
        db.session.flush()
        product = Product(vendor_id=vendor.id, sku="RACE-1", name="Race item", price_cents=1000, stock=stock)
        db.session.add(product)
        db.session.flush()

        order_ids = []
        for _ in range(orders):
            order = Order(payment_method="razorpay")
            db.session.add(order)
            db.session.flush()
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                price_cents=product.price_cents,
            ))
            order_ids.append(order.id)
        db.session.commit()
        return product.id, order_ids


class TestConcurrentRecording:

    def test_each_order_recorded_once(self, file_app):
        product_id, order_ids = _seed(file_app, stock=100, orders=10, quantity=2)

        # two triggers per order, e.g. payment and delivery arriving together
        targets = order_ids * 2
        barrier = threading.Barrier(len(targets))
        lock = threading.Lock()
        recorded, already, errors = [], [], []

        def worker(order_id):
            with file_app.app_context():
                barrier.wait()
                try:
                    result = record_sales_for_order(order_id, trigger="payment", stats_recorder=None)
                    with lock:
                        recorded.append((order_id, len(result.created_records)))
                except AlreadyRecordedError:
                    with lock:
                        already.append(order_id)
                except Exception as exc:
                    with lock:
                        errors.append(repr(exc))

        threads = [threading.Thread(target=worker, args=(order_id,)) for order_id in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(order_id for order_id, _ in recorded) == sorted(order_ids)
        assert all(count == 1 for _, count in recorded)
        assert sorted(already) == sorted(order_ids)

        with file_app.app_context():
            assert db.session.get(Product, product_id).stock == 100 - 2 * len(order_ids)
            assert db.session.query(VendorSale).count() == len(order_ids)
            assert db.session.query(StockMovement).count() == len(order_ids)
            claims = db.session.query(SalesReconciliation).all()
            assert len(claims) == len(order_ids)
            assert {claim.status for claim in claims} == {"completed"}
            for movement in db.session.query(StockMovement).all():
                assert movement.new_stock == movement.previous_stock + movement.quantity

    def test_stock_never_oversold(self, file_app):
        product_id, order_ids = _seed(file_app, stock=5, orders=8, quantity=1)
        barrier = threading.Barrier(len(order_ids))
        lock = threading.Lock()
        errors = []

        def worker(order_id):
            with file_app.app_context():
                barrier.wait()
                try:
                    record_sales_for_order(order_id, stats_recorder=None)
                except Exception as exc:
                    with lock:
                        errors.append(repr(exc))

        threads = [threading.Thread(target=worker, args=(order_id,)) for order_id in order_ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        with file_app.app_context():
            # every order keeps its sale; only five could take stock
            assert db.session.query(VendorSale).count() == len(order_ids)
            assert db.session.query(StockMovement).count() == 5
            assert db.session.get(Product, product_id).stock == 0
