# Overview: Vendor-entered offline (walk-in) sales, with stock deduction through the ledger.

"""
Offline sales

- sale_type='offline', no platform commission.
- total = unit_price * quantity - discount; net = total - tax.
- With auto stock deduction on, stock must cover the sale: the ledger refusal
  aborts the whole sale and nothing is written (unlike online orders, where
  the order already happened and only the deduction is skipped).
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Product, Vendor, VendorSale, PAYMENT_METHODS
from marketplace.money import compute_net_amount_cents, compute_sale_amount_cents
from marketplace.time_utils import utcnow
from .concurrency import run_with_retry
from .stock_ledger_service import StockLedgerError, apply_stock_movement
from .vendor_stats_service import recompute_vendor_sales_stats


class OfflineSaleError(Exception):
    """Raised for offline sale validation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def record_offline_sale(
    *,
    vendor_id: int,
    product_id: int,
    quantity: int,
    unit_price_cents: int,
    payment_method: str,
    discount_cents: int = 0,
    tax_cents: int = 0,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    customer_email: str | None = None,
    invoice_number: str | None = None,
    sale_location: str | None = None,
    notes: str | None = None,
    sale_date: datetime | None = None,
) -> VendorSale:
    if payment_method not in PAYMENT_METHODS:
        raise OfflineSaleError(
            f"Invalid payment method '{payment_method}'. Must be one of: {', '.join(PAYMENT_METHODS)}"
        )
    if discount_cents < 0 or tax_cents < 0:
        raise OfflineSaleError("discount_cents and tax_cents must be >= 0")

    try:
        gross = compute_sale_amount_cents(unit_price_cents, quantity)
    except ValueError as e:
        raise OfflineSaleError(str(e))
    total = gross - discount_cents
    if total < 0:
        raise OfflineSaleError("discount cannot exceed the sale amount")
    try:
        net = compute_net_amount_cents(total, 0, tax_cents)
    except ValueError as e:
        raise OfflineSaleError(str(e))

    def _op():
        vendor = db.session.get(Vendor, vendor_id)
        if vendor is None or not vendor.is_active:
            raise OfflineSaleError("Vendor not found", details={"vendor_id": vendor_id})
        if not vendor.enable_offline_sales:
            raise OfflineSaleError("Offline sales are disabled for this vendor")

        product = db.session.get(Product, product_id)
        if product is None or product.vendor_id != vendor.id:
            raise OfflineSaleError("Product not found", details={"product_id": product_id})

        sale = VendorSale(
            vendor_id=vendor.id,
            product_id=product.id,
            sale_type="offline",
            quantity=quantity,
            unit_price_cents=unit_price_cents,
            total_amount_cents=total,
            discount_cents=discount_cents,
            tax_cents=tax_cents,
            platform_commission_cents=0,
            net_amount_cents=net,
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_email=customer_email.lower() if customer_email else None,
            invoice_number=invoice_number,
            sale_location=sale_location,
            notes=notes,
            payment_method=payment_method,
            status="completed",
            sale_date=sale_date or utcnow(),
        )
        db.session.add(sale)
        db.session.flush()

        if vendor.auto_stock_deduction:
            try:
                apply_stock_movement(
                    product_id=product.id,
                    vendor_id=vendor.id,
                    movement_type="out",
                    quantity=quantity,
                    reference_type="sale",
                    reference_id=str(sale.id),
                    reason="Offline sale",
                    notes=f"Invoice {invoice_number}" if invoice_number else None,
                    created_by_id=vendor.id,
                    created_by_model="Vendor",
                    commit=False,
                )
            except StockLedgerError:
                db.session.rollback()
                raise

        db.session.commit()
        return sale

    try:
        sale = run_with_retry(_op)
    except OfflineSaleError:
        db.session.rollback()
        raise

    try:
        recompute_vendor_sales_stats(vendor_id)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to recompute sales stats for vendor %s", vendor_id)

    return db.session.get(VendorSale, sale.id)
