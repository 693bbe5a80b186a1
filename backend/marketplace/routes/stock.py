# backend/marketplace/routes/stock.py
"""
Stock ledger routes.

Manual movements (restock, damage, corrections) go through the same ledger
primitive as sales; the response carries the movement and the new stock.
"""
from flask import Blueprint, request, current_app

from ..models import StockMovement
from ..services import stock_ledger_service
from ..services.stock_ledger_service import (
    InvalidStockStateError,
    StockLedgerError,
    StockProductNotFoundError,
)
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    enforce_rules_stock_movement,
)


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")

STOCK_MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id",
        "vendor_id",
        "movement_type",
        "quantity",
        "reason",
        "notes",
        "reference_type",
        "reference_id",
        "unit_cost_cents",
        "total_cost_cents",
        "created_by_id",
        "created_by_model",
    },
    required_on_create={"product_id", "movement_type", "quantity", "reason"},
)


@stock_bp.post("/movements")
def create_movement_route():
    """Apply a manual stock movement."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=StockMovement,
            payload=payload,
            policy=STOCK_MOVEMENT_POLICY,
            partial=False,
        )
        enforce_rules_stock_movement(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        movement = stock_ledger_service.adjust_stock(
            product_id=patch["product_id"],
            vendor_id=patch.get("vendor_id"),
            movement_type=patch["movement_type"],
            quantity=patch["quantity"],
            reason=patch["reason"],
            reference_type=patch.get("reference_type") or "manual",
            reference_id=patch.get("reference_id"),
            notes=patch.get("notes"),
            unit_cost_cents=patch.get("unit_cost_cents"),
            total_cost_cents=patch.get("total_cost_cents"),
            created_by_id=patch.get("created_by_id"),
            created_by_model=patch.get("created_by_model") or "Vendor",
        )
    except StockProductNotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    except InvalidStockStateError as e:
        return {"error": str(e), "details": e.details}, 409
    except StockLedgerError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to apply stock movement")
        return {"error": "Internal server error"}, 500

    return {"movement": movement.to_dict(), "stock": movement.new_stock}, 201


@stock_bp.get("/products/<int:product_id>/history")
def stock_history_route(product_id: int):
    limit = request.args.get("limit", default=50, type=int)
    if limit is None or limit < 1 or limit > 500:
        return {"error": "limit must be between 1 and 500"}, 400

    try:
        movements = stock_ledger_service.get_stock_history(product_id, limit=limit)
        stock = stock_ledger_service.get_current_stock(product_id)
    except StockProductNotFoundError as e:
        return {"error": str(e)}, 404

    return {
        "product_id": product_id,
        "stock": stock,
        "movements": [m.to_dict() for m in movements],
    }, 200
