import pytest

from marketplace.models import Product, StockMovement, Vendor, VendorSale
from marketplace.services.offline_sales_service import OfflineSaleError, record_offline_sale
from marketplace.services.stock_ledger_service import InvalidStockStateError


class TestOfflineSales:

    def test_records_sale_without_commission(self, db_session, make_vendor, make_product):
        vendor = make_vendor()
        product = make_product(vendor, stock=10)

        sale = record_offline_sale(
            vendor_id=vendor.id,
            product_id=product.id,
            quantity=2,
            unit_price_cents=1000,
            discount_cents=100,
            tax_cents=50,
            payment_method="cash",
            customer_email="Walk.In@Example.test",
            invoice_number="INV-0001",
        )

        assert sale.sale_type == "offline"
        assert sale.order_id is None
        assert sale.total_amount_cents == 1900
        assert sale.platform_commission_cents == 0
        assert sale.net_amount_cents == 1850
        assert sale.customer_email == "walk.in@example.test"
        assert sale.sale_date is not None

    def test_deducts_stock_through_ledger(self, db_session, make_vendor, make_product):
        vendor = make_vendor()
        product = make_product(vendor, stock=10)

        sale = record_offline_sale(
            vendor_id=vendor.id,
            product_id=product.id,
            quantity=4,
            unit_price_cents=500,
            payment_method="upi",
        )

        movement = db_session.query(StockMovement).one()
        assert movement.reference_type == "sale"
        assert movement.reference_id == str(sale.id)
        assert movement.quantity == -4
        assert movement.created_by_model == "Vendor"
        assert db_session.get(Product, product.id).stock == 6

    def test_insufficient_stock_rejects_whole_sale(self, db_session, make_vendor, make_product):
        vendor = make_vendor()
        product = make_product(vendor, stock=1)

        with pytest.raises(InvalidStockStateError):
            record_offline_sale(
                vendor_id=vendor.id,
                product_id=product.id,
                quantity=2,
                unit_price_cents=500,
                payment_method="cash",
            )

        db_session.expire_all()
        assert db_session.query(VendorSale).count() == 0
        assert db_session.query(StockMovement).count() == 0
        assert db_session.get(Product, product.id).stock == 1

    def test_no_deduction_when_disabled(self, db_session, make_vendor, make_product):
        vendor = make_vendor(auto_stock_deduction=False)
        product = make_product(vendor, stock=1)

        record_offline_sale(
            vendor_id=vendor.id,
            product_id=product.id,
            quantity=5,
            unit_price_cents=500,
            payment_method="card",
        )

        assert db_session.query(StockMovement).count() == 0
        assert db_session.get(Product, product.id).stock == 1

    def test_offline_sales_disabled_for_vendor(self, db_session, make_vendor, make_product):
        vendor = make_vendor(enable_offline_sales=False)
        product = make_product(vendor)

        with pytest.raises(OfflineSaleError):
            record_offline_sale(
                vendor_id=vendor.id,
                product_id=product.id,
                quantity=1,
                unit_price_cents=500,
                payment_method="cash",
            )

    def test_rejected_sale_leaves_no_open_transaction(self, db_session, make_vendor, make_product):
        vendor = make_vendor(enable_offline_sales=False)
        product = make_product(vendor)
        vendor_id, product_id = vendor.id, product.id
        assert db_session().in_transaction()

        with pytest.raises(OfflineSaleError):
            record_offline_sale(
                vendor_id=vendor_id,
                product_id=product_id,
                quantity=1,
                unit_price_cents=500,
                payment_method="cash",
            )

        assert not db_session().in_transaction()

    def test_product_of_another_vendor(self, db_session, make_vendor, make_product):
        vendor = make_vendor()
        other = make_vendor()
        product = make_product(other)

        with pytest.raises(OfflineSaleError):
            record_offline_sale(
                vendor_id=vendor.id,
                product_id=product.id,
                quantity=1,
                unit_price_cents=500,
                payment_method="cash",
            )

    @pytest.mark.parametrize("overrides", [
        {"payment_method": "barter"},
        {"quantity": 0},
        {"discount_cents": 5000},
        {"tax_cents": 5000},
        {"discount_cents": -1},
    ])
    def test_invalid_amounts(self, db_session, make_vendor, make_product, overrides):
        vendor = make_vendor()
        product = make_product(vendor)
        fields = {
            "vendor_id": vendor.id,
            "product_id": product.id,
            "quantity": 1,
            "unit_price_cents": 1000,
            "payment_method": "cash",
        }
        fields.update(overrides)

        with pytest.raises(OfflineSaleError):
            record_offline_sale(**fields)
        assert db_session.query(VendorSale).count() == 0

    def test_updates_offline_stats(self, db_session, make_vendor, make_product):
        vendor = make_vendor()
        product = make_product(vendor)

        record_offline_sale(
            vendor_id=vendor.id,
            product_id=product.id,
            quantity=3,
            unit_price_cents=700,
            payment_method="cash",
        )

        db_session.expire_all()
        vendor = db_session.get(Vendor, vendor.id)
        assert vendor.total_offline_sales_cents == 2100
        assert vendor.total_online_sales_cents == 0
        assert vendor.total_sales_cents == 2100
