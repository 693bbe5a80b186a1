# backend/marketplace/routes/system.py
"""
System health and version endpoints.

Health reports database reachability plus the state of sales
reconciliation (claims stuck in progress or left partial need an operator).
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Order, Product, SalesReconciliation, Vendor
from marketplace.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        vendor_count = db.session.query(Vendor).count()
        product_count = db.session.query(Product).count()
        order_count = db.session.query(Order).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "vendors": vendor_count,
                "products": product_count,
                "orders": order_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_reconciliation_health() -> dict:
    """Partial or in-progress claims mean some order lines have no sales record."""
    start_time = time.time()
    try:
        partial = db.session.query(SalesReconciliation).filter_by(status="partial").count()
        in_progress = db.session.query(SalesReconciliation).filter_by(status="in_progress").count()
        elapsed_ms = (time.time() - start_time) * 1000

        details = {"partial": partial, "in_progress": in_progress}
        if partial:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": f"{partial} order(s) only partially recorded",
                "details": details,
            }
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Reconciliation health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Reconciliation check error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    reconciliation_health = check_reconciliation_health()

    all_checks = [database_health, reconciliation_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "sales_reconciliation": reconciliation_health,
        }
    }, http_status


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
