# Overview: Read-only projections over VendorSale rows for admin and vendor reporting.

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Product, Vendor, VendorSale
from marketplace.time_utils import parse_range, utcnow


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


class SalesNotFoundError(ReportError):
    """No sales records exist (yet) for the requested order."""


def _vendor_ref(vendor: Vendor | None, vendor_id: int) -> dict:
    if vendor is None:
        return {"id": vendor_id, "name": None, "business_name": None}
    return {"id": vendor.id, "name": vendor.name, "business_name": vendor.business_name}


def _product_ref(product: Product | None, product_id: int) -> dict:
    if product is None:
        return {"id": product_id, "name": None, "price_cents": None}
    return {"id": product.id, "name": product.name, "price_cents": product.price_cents}


def get_order_sales_breakdown(order_id: int) -> dict:
    """
    Totals and per-vendor split of the sales recorded for one order.

    Raises SalesNotFoundError when nothing has been recorded for the order.
    """
    rows = (
        db.session.query(VendorSale, Vendor, Product)
        .outerjoin(Vendor, Vendor.id == VendorSale.vendor_id)
        .outerjoin(Product, Product.id == VendorSale.product_id)
        .filter(VendorSale.order_id == order_id)
        .order_by(VendorSale.id)
        .all()
    )
    if not rows:
        raise SalesNotFoundError("No sales records found for this order")

    lines = []
    by_vendor: dict[int, dict] = {}
    for sale, vendor, product in rows:
        lines.append({
            "sale_id": sale.id,
            "vendor": _vendor_ref(vendor, sale.vendor_id),
            "product": _product_ref(product, sale.product_id),
            "quantity": sale.quantity,
            "unit_price_cents": sale.unit_price_cents,
            "total_amount_cents": sale.total_amount_cents,
            "commission_cents": sale.platform_commission_cents,
            "net_amount_cents": sale.net_amount_cents,
            "status": sale.status,
        })

        bucket = by_vendor.setdefault(sale.vendor_id, {
            "vendor": _vendor_ref(vendor, sale.vendor_id),
            "total_sales_cents": 0,
            "commission_cents": 0,
            "net_amount_cents": 0,
            "lines": 0,
        })
        bucket["total_sales_cents"] += sale.total_amount_cents
        bucket["commission_cents"] += sale.platform_commission_cents
        bucket["net_amount_cents"] += sale.net_amount_cents
        bucket["lines"] += 1

    return {
        "order_id": order_id,
        "total_sales_cents": sum(line["total_amount_cents"] for line in lines),
        "total_commission_cents": sum(line["commission_cents"] for line in lines),
        "total_net_to_vendors_cents": sum(line["net_amount_cents"] for line in lines),
        "vendor_breakdown": lines,
        "vendors": list(by_vendor.values()),
    }


def _require_vendor(vendor_id: int) -> Vendor:
    vendor = db.session.get(Vendor, vendor_id)
    if vendor is None:
        raise ReportError("Vendor not found")
    return vendor


def get_vendor_sales_summary(vendor_id: int, start: str | None = None, end: str | None = None) -> dict:
    """Completed sales for a vendor grouped by sale type (online / offline)."""
    _require_vendor(vendor_id)
    start_dt, end_dt = parse_range(start, end)

    q = db.session.query(
        VendorSale.sale_type,
        func.coalesce(func.sum(VendorSale.total_amount_cents), 0).label("total_sales"),
        func.coalesce(func.sum(VendorSale.quantity), 0).label("total_quantity"),
        func.coalesce(func.sum(VendorSale.net_amount_cents), 0).label("total_net"),
        func.coalesce(func.sum(VendorSale.platform_commission_cents), 0).label("total_commission"),
        func.count(VendorSale.id).label("sales_count"),
    ).filter(
        VendorSale.vendor_id == vendor_id,
        VendorSale.status == "completed",
    )
    if start_dt is not None:
        q = q.filter(VendorSale.sale_date >= start_dt)
    if end_dt is not None:
        q = q.filter(VendorSale.sale_date <= end_dt)

    rows = q.group_by(VendorSale.sale_type).order_by(VendorSale.sale_type).all()

    by_type = []
    for row in rows:
        count = int(row.sales_count or 0)
        total = int(row.total_sales or 0)
        by_type.append({
            "sale_type": row.sale_type,
            "total_sales_cents": total,
            "total_quantity": int(row.total_quantity or 0),
            "total_net_cents": int(row.total_net or 0),
            "total_commission_cents": int(row.total_commission or 0),
            "sales_count": count,
            "average_sale_value_cents": (total + count // 2) // count if count else 0,
        })

    return {
        "vendor_id": vendor_id,
        "start": start,
        "end": end,
        "by_type": by_type,
        "total_sales_cents": sum(t["total_sales_cents"] for t in by_type),
        "total_net_cents": sum(t["total_net_cents"] for t in by_type),
        "sales_count": sum(t["sales_count"] for t in by_type),
    }


def get_vendor_daily_sales(vendor_id: int, days: int = 30) -> dict:
    """Completed sales per calendar day (UTC) and sale type for the last `days` days."""
    if days <= 0 or days > 366:
        raise ReportError("days must be between 1 and 366")
    _require_vendor(vendor_id)

    since = utcnow() - timedelta(days=days)
    day = func.date(VendorSale.sale_date)

    rows = (
        db.session.query(
            day.label("day"),
            VendorSale.sale_type,
            func.coalesce(func.sum(VendorSale.total_amount_cents), 0).label("total_sales"),
            func.coalesce(func.sum(VendorSale.quantity), 0).label("total_quantity"),
            func.count(VendorSale.id).label("sales_count"),
        )
        .filter(
            VendorSale.vendor_id == vendor_id,
            VendorSale.status == "completed",
            VendorSale.sale_date >= since,
        )
        .group_by(day, VendorSale.sale_type)
        .order_by(day, VendorSale.sale_type)
        .all()
    )

    return {
        "vendor_id": vendor_id,
        "days": days,
        "series": [
            {
                "date": str(row.day),
                "sale_type": row.sale_type,
                "total_sales_cents": int(row.total_sales or 0),
                "total_quantity": int(row.total_quantity or 0),
                "sales_count": int(row.sales_count or 0),
            }
            for row in rows
        ],
    }
