# Overview: Rebuilds the cached sales and stock statistics stored on Vendor rows.

from __future__ import annotations

from sqlalchemy import case, func

from ..extensions import db
from ..models import Product, Vendor, VendorSale
from marketplace.time_utils import utcnow


class VendorStatsError(Exception):
    """Raised when vendor statistics cannot be rebuilt."""
    pass


def _get_vendor(vendor_id: int) -> Vendor:
    vendor = db.session.get(Vendor, vendor_id)
    if vendor is None:
        raise VendorStatsError(f"Vendor {vendor_id} not found")
    return vendor


def recompute_vendor_sales_stats(vendor_id: int, *, commit: bool = True) -> dict:
    """
    Recompute cumulative sales totals for a vendor from completed VendorSale rows.

    Safe to call repeatedly; the result depends only on stored sales.
    """
    vendor = _get_vendor(vendor_id)

    rows = (
        db.session.query(
            VendorSale.sale_type,
            func.coalesce(func.sum(VendorSale.total_amount_cents), 0).label("total"),
            func.count(VendorSale.id).label("count"),
        )
        .filter(VendorSale.vendor_id == vendor_id, VendorSale.status == "completed")
        .group_by(VendorSale.sale_type)
        .all()
    )

    online = offline = orders = 0
    for row in rows:
        if row.sale_type == "online":
            online = int(row.total or 0)
        elif row.sale_type == "offline":
            offline = int(row.total or 0)
        orders += int(row.count or 0)

    total = online + offline
    vendor.total_online_sales_cents = online
    vendor.total_offline_sales_cents = offline
    vendor.total_sales_cents = total
    vendor.total_orders = orders
    # half-up to the cent
    vendor.average_order_value_cents = (total + orders // 2) // orders if orders else 0
    vendor.sales_stats_updated_at = utcnow()

    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return vendor.sales_stats()


def recompute_vendor_stock_stats(vendor_id: int, *, commit: bool = True) -> dict:
    """Recompute product counts and stock value for a vendor's catalog."""
    vendor = _get_vendor(vendor_id)
    threshold = vendor.low_stock_threshold

    row = (
        db.session.query(
            func.count(Product.id).label("products"),
            func.coalesce(
                func.sum(case(((Product.stock > 0) & (Product.stock <= threshold), 1), else_=0)),
                0,
            ).label("low"),
            func.coalesce(func.sum(case((Product.stock <= 0, 1), else_=0)), 0).label("out"),
            func.coalesce(func.sum(Product.stock * Product.price_cents), 0).label("value"),
        )
        .filter(Product.vendor_id == vendor_id)
        .one()
    )

    vendor.total_products = int(row.products or 0)
    vendor.low_stock_products = int(row.low or 0)
    vendor.out_of_stock_products = int(row.out or 0)
    vendor.total_stock_value_cents = int(row.value or 0)
    vendor.stock_stats_updated_at = utcnow()

    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return vendor.stock_stats()


def recompute_all_vendor_stats() -> int:
    """Rebuild both caches for every vendor. Returns the number of vendors touched."""
    vendor_ids = [vid for (vid,) in db.session.query(Vendor.id).order_by(Vendor.id).all()]
    for vendor_id in vendor_ids:
        recompute_vendor_sales_stats(vendor_id, commit=False)
        recompute_vendor_stock_stats(vendor_id, commit=False)
    db.session.commit()
    return len(vendor_ids)
