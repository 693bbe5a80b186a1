"""
Sales recording tests.

Covers the commission split, per-order idempotency, partial recording when
catalog rows are missing, stock deduction through the ledger, and resume.
"""

import pytest

from marketplace.models import Product, SalesReconciliation, StockMovement, Vendor, VendorSale
from marketplace.services import sales_recorder_service
from marketplace.services.sales_recorder_service import (
    AlreadyRecordedError,
    OrderNotFoundError,
    ReconciliationNotStartedError,
    record_sales_for_order,
    resume_sales_for_order,
)


def _no_stats(vendor_id):
    return None


class TestRecordSales:

    def test_single_line_commission_split(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        product = make_product(vendor, price_cents=3333, stock=5)
        order = make_order([(product, 1)])

        result = record_sales_for_order(order.id)

        assert len(result.created_records) == 1
        sale = result.created_records[0]
        assert sale.sale_type == "online"
        assert sale.order_id == order.id
        assert sale.vendor_id == vendor.id
        assert sale.total_amount_cents == 3333
        assert sale.platform_commission_cents == 167
        assert sale.net_amount_cents == 3166
        assert sale.payment_method == "razorpay"
        assert sale.customer_name == "Jane Customer"
        assert sale.status == "completed"
        assert result.complete

    def test_two_vendor_order(self, db_session, make_vendor, make_product, make_order):
        vendor_a = make_vendor(business_name="Alpha Traders")
        vendor_b = make_vendor(business_name="Beta Goods")
        phone = make_product(vendor_a, price_cents=20_000, stock=10)
        case = make_product(vendor_b, price_cents=5_000, stock=10)
        order = make_order([(phone, 2), (case, 5)])

        result = record_sales_for_order(order.id)

        assert len(result.created_records) == 2
        total = sum(s.total_amount_cents for s in result.created_records)
        commission = sum(s.platform_commission_cents for s in result.created_records)
        net = sum(s.net_amount_cents for s in result.created_records)
        assert (total, commission, net) == (65_000, 3_250, 61_750)

        by_vendor = {s.vendor_id: s for s in result.created_records}
        assert by_vendor[vendor_a.id].platform_commission_cents == 2_000
        assert by_vendor[vendor_a.id].net_amount_cents == 38_000
        assert by_vendor[vendor_b.id].platform_commission_cents == 1_250
        assert by_vendor[vendor_b.id].net_amount_cents == 23_750

    def test_defaults_for_anonymous_order(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        product = make_product(vendor)
        order = make_order([(product, 1)], customer_name=None, payment_method=None)

        result = record_sales_for_order(order.id)

        sale = result.created_records[0]
        assert sale.customer_name == "Online Customer"
        assert sale.payment_method == "online_payment"

    def test_sale_date_is_order_creation_time(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        product = make_product(vendor)
        order = make_order([(product, 1)])
        created_at = order.created_at

        result = record_sales_for_order(order.id)

        assert result.created_records[0].sale_date == created_at

    def test_missing_order(self, db_session):
        with pytest.raises(OrderNotFoundError):
            record_sales_for_order(999_999)
        assert db_session.query(SalesReconciliation).count() == 0

    def test_empty_order_completes_with_no_records(self, db_session, make_order):
        order = make_order([])

        result = record_sales_for_order(order.id)

        assert result.created_records == []
        assert result.reconciliation.status == "completed"


class TestIdempotency:

    def test_second_recording_is_refused(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        product = make_product(vendor, stock=10)
        order = make_order([(product, 3)])

        record_sales_for_order(order.id, trigger="payment")

        with pytest.raises(AlreadyRecordedError):
            record_sales_for_order(order.id, trigger="delivery")

        db_session.expire_all()
        assert db_session.query(VendorSale).filter_by(order_id=order.id).count() == 1
        assert db_session.query(StockMovement).count() == 1
        assert db_session.get(Product, product.id).stock == 7

    def test_claim_records_trigger(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        product = make_product(vendor)
        order = make_order([(product, 1)])

        record_sales_for_order(order.id, trigger="payment")

        claim = db_session.query(SalesReconciliation).filter_by(order_id=order.id).one()
        assert claim.trigger == "payment"
        assert claim.attempts == 1
        assert claim.lines_total == 1
        assert claim.lines_recorded == 1
        assert claim.completed_at is not None

    def test_existing_sale_without_claim_blocks_recording(
        self, db_session, make_vendor, make_product, make_order
    ):
        vendor = make_vendor()
        product = make_product(vendor)
        order = make_order([(product, 1)])
        db_session.add(VendorSale(
            vendor_id=vendor.id,
            product_id=product.id,
            order_id=order.id,
            sale_type="online",
            quantity=1,
            unit_price_cents=1000,
            total_amount_cents=1000,
            platform_commission_cents=50,
            net_amount_cents=950,
            payment_method="online_payment",
            sale_date=order.created_at,
        ))
        db_session.commit()

        assert sales_recorder_service.sales_exist_for_order(order.id)
        with pytest.raises(AlreadyRecordedError):
            record_sales_for_order(order.id)


class TestPartialRecording:

    def test_missing_product_is_skipped(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        first = make_product(vendor)
        third = make_product(vendor)
        order = make_order([(first, 1), (555_555, 1), (third, 2)])

        result = record_sales_for_order(order.id)

        assert len(result.created_records) == 2
        assert len(result.skipped_lines) == 1
        assert result.skipped_lines[0]["product_id"] == 555_555
        assert not result.complete
        claim = result.reconciliation
        assert claim.status == "partial"
        assert claim.lines_total == 3
        assert claim.lines_recorded == 2

    def test_missing_vendor_is_skipped(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        good = make_product(vendor)
        orphan = make_product(vendor_id=777_777)
        order = make_order([(good, 1), (orphan, 1)])

        result = record_sales_for_order(order.id)

        assert [s.product_id for s in result.created_records] == [good.id]
        assert result.skipped_lines[0]["product_id"] == orphan.id

    def test_unexpected_error_keeps_earlier_lines(
        self, db_session, make_vendor, make_product, make_order, monkeypatch
    ):
        vendor = make_vendor()
        first = make_product(vendor, stock=10)
        second = make_product(vendor, stock=10)
        order = make_order([(first, 1), (second, 1)])

        real_split = sales_recorder_service.split_online_sale
        calls = {"n": 0}

        def flaky_split(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("pricing backend unavailable")
            return real_split(*args, **kwargs)

        monkeypatch.setattr(sales_recorder_service, "split_online_sale", flaky_split)

        with pytest.raises(RuntimeError):
            record_sales_for_order(order.id, stats_recorder=_no_stats)

        db_session.expire_all()
        sales = db_session.query(VendorSale).filter_by(order_id=order.id).all()
        assert [s.product_id for s in sales] == [first.id]
        assert db_session.get(Product, first.id).stock == 9
        assert db_session.get(Product, second.id).stock == 10

        claim = db_session.query(SalesReconciliation).filter_by(order_id=order.id).one()
        assert claim.status == "partial"
        assert "pricing backend unavailable" in claim.last_error

        monkeypatch.setattr(sales_recorder_service, "split_online_sale", real_split)
        resumed = resume_sales_for_order(order.id, stats_recorder=_no_stats)

        assert [s.product_id for s in resumed.created_records] == [second.id]
        assert resumed.complete
        assert resumed.reconciliation.attempts == 2
        assert resumed.reconciliation.last_error is None


class TestResume:

    def test_resume_records_only_missing_lines(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        good = make_product(vendor, stock=10)
        orphan = make_product(vendor_id=880_001, stock=10)
        order = make_order([(good, 2), (orphan, 1)])

        first = record_sales_for_order(order.id)
        assert first.reconciliation.status == "partial"

        db_session.add(Vendor(id=880_001, name="Late", business_name="Late Vendor"))
        db_session.commit()

        resumed = resume_sales_for_order(order.id)

        assert [s.product_id for s in resumed.created_records] == [orphan.id]
        assert resumed.complete
        db_session.expire_all()
        assert db_session.query(VendorSale).filter_by(order_id=order.id).count() == 2
        assert db_session.get(Product, good.id).stock == 8
        assert db_session.get(Product, orphan.id).stock == 9

    def test_resume_without_claim(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        product = make_product(vendor)
        order = make_order([(product, 1)])

        with pytest.raises(ReconciliationNotStartedError):
            resume_sales_for_order(order.id)

    def test_resume_completed_order(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        product = make_product(vendor)
        order = make_order([(product, 1)])
        record_sales_for_order(order.id)

        with pytest.raises(AlreadyRecordedError):
            resume_sales_for_order(order.id)

    def test_resume_missing_order(self, db_session):
        with pytest.raises(OrderNotFoundError):
            resume_sales_for_order(999_999)


class TestStockDeduction:

    def test_auto_deduction_writes_movement(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor(auto_stock_deduction=True)
        product = make_product(vendor, stock=10)
        order = make_order([(product, 3)], user_id=42)

        result = record_sales_for_order(order.id)

        assert len(result.stock_movements) == 1
        movement = result.stock_movements[0]
        assert movement.movement_type == "out"
        assert movement.quantity == -3
        assert movement.previous_stock == 10
        assert movement.new_stock == 7
        assert movement.reference_type == "online_order"
        assert movement.reference_id == str(order.id)
        assert movement.created_by_id == 42
        assert movement.created_by_model == "User"
        assert db_session.get(Product, product.id).stock == 7

    def test_guest_order_movement_attributed_to_system(
        self, db_session, make_vendor, make_product, make_order
    ):
        vendor = make_vendor()
        product = make_product(vendor, stock=10)
        order = make_order([(product, 1)])

        result = record_sales_for_order(order.id)

        assert result.stock_movements[0].created_by_model == "System"

    def test_deduction_disabled(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor(auto_stock_deduction=False)
        product = make_product(vendor, stock=10)
        order = make_order([(product, 3)])

        result = record_sales_for_order(order.id)

        assert len(result.created_records) == 1
        assert result.stock_movements == []
        assert db_session.query(StockMovement).count() == 0
        assert db_session.get(Product, product.id).stock == 10

    def test_insufficient_stock_keeps_sale(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        product = make_product(vendor, stock=2)
        order = make_order([(product, 3)])

        result = record_sales_for_order(order.id)

        assert len(result.created_records) == 1
        assert result.stock_movements == []
        assert result.complete
        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 2
        assert db_session.query(StockMovement).count() == 0
        assert db_session.query(VendorSale).filter_by(order_id=order.id).count() == 1


class TestVendorStatsRefresh:

    def test_stats_recomputed_once_per_vendor(self, db_session, make_vendor, make_product, make_order):
        vendor_a = make_vendor()
        vendor_b = make_vendor()
        order = make_order([
            (make_product(vendor_a), 1),
            (make_product(vendor_b), 1),
            (make_product(vendor_a), 2),
        ])
        calls = []

        record_sales_for_order(order.id, stats_recorder=calls.append)

        assert calls == [vendor_a.id, vendor_b.id]

    def test_stats_failure_does_not_fail_recording(
        self, db_session, make_vendor, make_product, make_order
    ):
        vendor = make_vendor()
        order = make_order([(make_product(vendor), 1)])

        def broken_stats(vendor_id):
            raise RuntimeError("stats store down")

        result = record_sales_for_order(order.id, stats_recorder=broken_stats)

        assert result.complete
        assert db_session.query(VendorSale).filter_by(order_id=order.id).count() == 1

    def test_default_stats_recorder_updates_vendor(self, db_session, make_vendor, make_product, make_order):
        vendor = make_vendor()
        order = make_order([(make_product(vendor, price_cents=2000), 2)])

        record_sales_for_order(order.id)

        db_session.expire_all()
        vendor = db_session.get(Vendor, vendor.id)
        assert vendor.total_online_sales_cents == 4000
        assert vendor.total_sales_cents == 4000
        assert vendor.total_orders == 1
        assert vendor.sales_stats_updated_at is not None
