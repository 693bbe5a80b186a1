# Overview: Flask API routes for vendor sales/stock reporting and offline sales entry.

"""Vendor dashboard API: sales summaries, daily series, stock summary, offline sales."""

from flask import Blueprint, request, jsonify, current_app

from ..models import VendorSale
from ..services import offline_sales_service, sales_report_service, stock_ledger_service, vendor_stats_service
from ..services.offline_sales_service import OfflineSaleError
from ..services.sales_report_service import ReportError
from ..services.stock_ledger_service import InvalidStockStateError, StockLedgerError
from ..services.vendor_stats_service import VendorStatsError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    enforce_rules_offline_sale,
)


vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")

OFFLINE_SALE_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id",
        "quantity",
        "unit_price_cents",
        "payment_method",
        "discount_cents",
        "tax_cents",
        "customer_name",
        "customer_phone",
        "customer_email",
        "invoice_number",
        "sale_location",
        "notes",
        "sale_date",
    },
    required_on_create={"product_id", "quantity", "unit_price_cents", "payment_method"},
)


@vendors_bp.get("/<int:vendor_id>/sales/summary")
def sales_summary_route(vendor_id: int):
    try:
        summary = sales_report_service.get_vendor_sales_summary(
            vendor_id,
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
    except ReportError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"data": summary}), 200


@vendors_bp.get("/<int:vendor_id>/sales/daily")
def daily_sales_route(vendor_id: int):
    days = request.args.get("days", default=30, type=int)
    try:
        series = sales_report_service.get_vendor_daily_sales(vendor_id, days=days)
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"data": series}), 200


@vendors_bp.post("/<int:vendor_id>/sales/offline")
def record_offline_sale_route(vendor_id: int):
    """Record a walk-in sale entered by the vendor."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=VendorSale,
            payload=payload,
            policy=OFFLINE_SALE_POLICY,
            partial=False,
        )
        enforce_rules_offline_sale(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        sale = offline_sales_service.record_offline_sale(
            vendor_id=vendor_id,
            product_id=patch["product_id"],
            quantity=patch["quantity"],
            unit_price_cents=patch["unit_price_cents"],
            payment_method=patch["payment_method"],
            discount_cents=patch.get("discount_cents") or 0,
            tax_cents=patch.get("tax_cents") or 0,
            customer_name=patch.get("customer_name"),
            customer_phone=patch.get("customer_phone"),
            customer_email=patch.get("customer_email"),
            invoice_number=patch.get("invoice_number"),
            sale_location=patch.get("sale_location"),
            notes=patch.get("notes"),
            sale_date=patch.get("sale_date"),
        )
    except OfflineSaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except InvalidStockStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except StockLedgerError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to record offline sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict()}), 201


@vendors_bp.get("/<int:vendor_id>/stock/summary")
def stock_summary_route(vendor_id: int):
    try:
        summary = stock_ledger_service.get_vendor_stock_summary(
            vendor_id,
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
    except StockLedgerError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"data": summary}), 200


@vendors_bp.post("/<int:vendor_id>/stats/recompute")
def recompute_stats_route(vendor_id: int):
    try:
        sales = vendor_stats_service.recompute_vendor_sales_stats(vendor_id)
        stock = vendor_stats_service.recompute_vendor_stock_stats(vendor_id)
    except VendorStatsError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"sales_stats": sales, "stock_stats": stock}), 200
