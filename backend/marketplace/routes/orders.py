# backend/marketplace/routes/orders.py
"""
Order transition and sales reconciliation routes.

Payment/delivery confirmations always answer with the committed order; the
`sales` member reports what reconciliation did (null when it was skipped,
already done, or failed and was logged).
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import order_service, sales_recorder_service, sales_report_service
from ..services.order_service import OrderNotFound, OrderStateError
from ..services.sales_recorder_service import (
    AlreadyRecordedError,
    OrderNotFoundError,
    ReconciliationNotStartedError,
    SalesRecordingError,
)
from ..services.sales_report_service import SalesNotFoundError


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _transition_error(e: OrderStateError):
    status = 404 if isinstance(e, OrderNotFound) else 409
    return jsonify({"error": str(e), "details": e.details}), status


@orders_bp.post("/<int:order_id>/pay")
def mark_paid_route(order_id: int):
    """Confirm payment; records vendor sales on the paid edge."""
    data = request.get_json(silent=True) or {}
    try:
        result = order_service.mark_order_paid(
            order_id,
            payment_reference=data.get("payment_reference"),
            payment_method=data.get("payment_method"),
        )
        return jsonify(result.to_dict()), 200

    except OrderStateError as e:
        return _transition_error(e)
    except Exception:
        current_app.logger.exception("Failed to mark order paid")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/deliver")
def mark_delivered_route(order_id: int):
    """Confirm delivery; records vendor sales on the delivered edge."""
    try:
        result = order_service.mark_order_delivered(order_id)
        return jsonify(result.to_dict()), 200

    except OrderStateError as e:
        return _transition_error(e)
    except Exception:
        current_app.logger.exception("Failed to mark order delivered")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/status")
def update_status_route(order_id: int):
    """Admin status override along the order state machine."""
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        return jsonify({"error": "status required"}), 400

    try:
        result = order_service.update_order_status(order_id, status, reason=data.get("reason"))
        return jsonify(result.to_dict()), 200

    except OrderStateError as e:
        return _transition_error(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/record-sales")
def record_sales_route(order_id: int):
    """Record vendor sales for an order by hand (admin/system)."""
    try:
        result = sales_recorder_service.record_sales_for_order(order_id, trigger="manual")
        return jsonify({
            "message": f"Recorded {len(result.created_records)} online sales from order",
            **result.to_dict(),
        }), 201

    except OrderNotFoundError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except AlreadyRecordedError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except SalesRecordingError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to record sales for order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/resume-sales")
def resume_sales_route(order_id: int):
    """Record the lines a previous attempt left unrecorded."""
    try:
        result = sales_recorder_service.resume_sales_for_order(order_id)
        return jsonify(result.to_dict()), 200

    except OrderNotFoundError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except (AlreadyRecordedError, ReconciliationNotStartedError) as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except SalesRecordingError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to resume sales for order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/sales")
def sales_breakdown_route(order_id: int):
    """Totals and per-vendor split of the sales recorded for an order."""
    try:
        breakdown = sales_report_service.get_order_sales_breakdown(order_id)
        return jsonify({"data": breakdown}), 200

    except SalesNotFoundError as e:
        return jsonify({"error": str(e)}), 404
