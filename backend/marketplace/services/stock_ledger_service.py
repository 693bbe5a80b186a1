# Overview: Service-layer operations for product stock; every stock change goes through here.

"""
Marketplace Stock Ledger Invariants (authoritative)

Stock model:
- Product.stock is a mutable counter; StockMovement rows are its audit trail.
- Every change writes exactly one StockMovement in the same DB transaction as
  the counter update. Either both land or neither does.
- StockMovement.quantity is signed: new_stock == previous_stock + quantity.

Sign rules:
- in, return                -> +|quantity|
- out, damage, transfer     -> -|quantity|
- adjustment                -> quantity as given (must be non-zero)

Concurrency:
- The counter is changed with one conditional UPDATE
  (stock = stock + delta WHERE stock + delta >= 0), never read-modify-write.
  A refused UPDATE (0 rows) means insufficient stock; nothing is written.
- previous_stock is derived from the post-update value, so two concurrent
  movements on the same product each see the value they actually produced.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..models import Product, StockMovement, Vendor
from ..models.stock import (
    ACTOR_MODELS,
    APPROVAL_STATUSES,
    INBOUND_TYPES,
    MOVEMENT_TYPES,
    OUTBOUND_TYPES,
    REFERENCE_TYPES,
)
from marketplace.time_utils import parse_range
from .concurrency import lock_for_update, run_with_retry


class StockLedgerError(Exception):
    """Raised for stock ledger operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class StockProductNotFoundError(StockLedgerError):
    """Product does not exist or is not owned by the given vendor."""


class InvalidStockStateError(StockLedgerError):
    """The movement would leave stock negative or break ledger arithmetic."""


def signed_delta(movement_type: str, quantity: int) -> int:
    """Signed stock change implied by a movement type and a quantity."""
    if movement_type not in MOVEMENT_TYPES:
        raise StockLedgerError(
            f"Invalid movement type '{movement_type}'. Must be one of: {', '.join(MOVEMENT_TYPES)}"
        )
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        raise StockLedgerError("quantity must be an integer")
    if quantity == 0:
        raise StockLedgerError("quantity must be non-zero")

    if movement_type in INBOUND_TYPES:
        return abs(quantity)
    if movement_type in OUTBOUND_TYPES:
        return -abs(quantity)
    return quantity


def _validate_costs(quantity: int, unit_cost_cents: int | None, total_cost_cents: int | None) -> int | None:
    if unit_cost_cents is not None and unit_cost_cents < 0:
        raise StockLedgerError("unit_cost_cents must be >= 0")
    if total_cost_cents is not None and total_cost_cents < 0:
        raise StockLedgerError("total_cost_cents must be >= 0")

    if unit_cost_cents is None:
        return total_cost_cents

    expected = unit_cost_cents * abs(quantity)
    if total_cost_cents is None:
        return expected
    if total_cost_cents != expected:
        raise StockLedgerError(
            "total_cost_cents does not match unit_cost_cents * quantity",
            details={"expected": expected, "given": total_cost_cents},
        )
    return total_cost_cents


def _ensure_product_for_vendor(product_id: int, vendor_id: int | None, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise StockProductNotFoundError("Product not found", details={"product_id": product_id})
    if vendor_id is not None and product.vendor_id != vendor_id:
        raise StockProductNotFoundError(
            "Product does not belong to vendor",
            details={"product_id": product_id, "vendor_id": vendor_id},
        )
    return product


def apply_stock_movement(
    *,
    product_id: int,
    vendor_id: int | None,
    movement_type: str,
    quantity: int,
    reference_type: str,
    reason: str,
    reference_id: str | None = None,
    notes: str | None = None,
    unit_cost_cents: int | None = None,
    total_cost_cents: int | None = None,
    location: str | None = None,
    batch_number: str | None = None,
    expiry_date: datetime | None = None,
    approval_status: str = "approved",
    created_by_id: int | None = None,
    created_by_model: str = "Vendor",
    commit: bool = True,
) -> StockMovement:
    """
    Change a product's stock and append the matching StockMovement.

    `quantity` is a magnitude for typed movements and a signed value for
    `adjustment`. With commit=False the caller owns the transaction; the
    counter update and the movement are flushed together either way.

    Raises InvalidStockStateError (nothing written) when the movement would
    take stock below zero.
    """
    if reference_type not in REFERENCE_TYPES:
        raise StockLedgerError(f"Invalid reference type '{reference_type}'")
    if approval_status not in APPROVAL_STATUSES:
        raise StockLedgerError(f"Invalid approval status '{approval_status}'")
    if created_by_model not in ACTOR_MODELS:
        raise StockLedgerError(f"Invalid actor model '{created_by_model}'")
    if not reason or not reason.strip():
        raise StockLedgerError("reason is required")

    delta = signed_delta(movement_type, quantity)
    total_cost_cents = _validate_costs(delta, unit_cost_cents, total_cost_cents)

    product = _ensure_product_for_vendor(product_id, vendor_id, lock=True)

    stmt = update(Product).where(Product.id == product.id).values(stock=Product.stock + delta)
    if delta < 0:
        stmt = stmt.where(Product.stock + delta >= 0)
    result = db.session.execute(stmt.execution_options(synchronize_session=False))

    if result.rowcount != 1:
        raise InvalidStockStateError(
            "Insufficient stock for movement",
            details={
                "product_id": product.id,
                "movement_type": movement_type,
                "requested": abs(delta),
                "on_hand": db.session.query(Product.stock).filter_by(id=product.id).scalar(),
            },
        )

    db.session.refresh(product, attribute_names=["stock"])
    new_stock = product.stock
    previous_stock = new_stock - delta

    # Same rule the CHECK constraints enforce; fail before the INSERT.
    if previous_stock < 0 or new_stock < 0 or new_stock != previous_stock + delta:
        raise InvalidStockStateError(
            "Stock movement arithmetic is inconsistent",
            details={"previous_stock": previous_stock, "new_stock": new_stock, "quantity": delta},
        )

    movement = StockMovement(
        vendor_id=product.vendor_id,
        product_id=product.id,
        movement_type=movement_type,
        quantity=delta,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reference_type=reference_type,
        reference_id=reference_id,
        reason=reason.strip()[:200],
        notes=notes,
        unit_cost_cents=unit_cost_cents,
        total_cost_cents=total_cost_cents,
        location=location or "main_warehouse",
        batch_number=batch_number,
        expiry_date=expiry_date,
        approval_status=approval_status,
        created_by_id=created_by_id,
        created_by_model=created_by_model,
    )
    db.session.add(movement)
    db.session.flush()

    if commit:
        db.session.commit()
    return movement


def adjust_stock(
    *,
    product_id: int,
    vendor_id: int | None,
    movement_type: str,
    quantity: int,
    reason: str,
    reference_type: str = "manual",
    reference_id: str | None = None,
    notes: str | None = None,
    unit_cost_cents: int | None = None,
    total_cost_cents: int | None = None,
    created_by_id: int | None = None,
    created_by_model: str = "Vendor",
) -> StockMovement:
    """
    Manual or administrative stock change (restock, write-off, correction).

    Runs in its own transaction with the standard retry on lock contention.
    A refused movement rolls back and propagates InvalidStockStateError.
    """
    def _op():
        try:
            movement = apply_stock_movement(
                product_id=product_id,
                vendor_id=vendor_id,
                movement_type=movement_type,
                quantity=quantity,
                reference_type=reference_type,
                reference_id=reference_id,
                reason=reason,
                notes=notes,
                unit_cost_cents=unit_cost_cents,
                total_cost_cents=total_cost_cents,
                created_by_id=created_by_id,
                created_by_model=created_by_model,
                commit=True,
            )
        except StockLedgerError:
            db.session.rollback()
            raise

        current_app.logger.info(
            "Stock %s on product %s: %s -> %s (%s)",
            movement.movement_type,
            movement.product_id,
            movement.previous_stock,
            movement.new_stock,
            movement.reason,
        )
        return movement

    return run_with_retry(_op)


def get_stock_history(product_id: int, limit: int = 50) -> list[StockMovement]:
    """Movements for a product, newest first."""
    _ensure_product_for_vendor(product_id, None)
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def get_current_stock(product_id: int) -> int:
    product = _ensure_product_for_vendor(product_id, None)
    return product.stock


def get_vendor_stock_summary(vendor_id: int, start: str | None = None, end: str | None = None) -> dict:
    """Movement totals per type for one vendor, optionally within a window."""
    vendor = db.session.get(Vendor, vendor_id)
    if vendor is None:
        raise StockLedgerError("Vendor not found", details={"vendor_id": vendor_id})

    start_dt, end_dt = parse_range(start, end)

    q = db.session.query(
        StockMovement.movement_type,
        func.coalesce(func.sum(StockMovement.quantity), 0).label("total_quantity"),
        func.coalesce(func.sum(StockMovement.total_cost_cents), 0).label("total_value_cents"),
        func.count(StockMovement.id).label("movement_count"),
    ).filter(StockMovement.vendor_id == vendor_id)
    if start_dt is not None:
        q = q.filter(StockMovement.created_at >= start_dt)
    if end_dt is not None:
        q = q.filter(StockMovement.created_at <= end_dt)

    rows = q.group_by(StockMovement.movement_type).order_by(StockMovement.movement_type).all()

    return {
        "vendor_id": vendor_id,
        "by_type": [
            {
                "movement_type": row.movement_type,
                "total_quantity": int(row.total_quantity or 0),
                "total_value_cents": int(row.total_value_cents or 0),
                "movement_count": int(row.movement_count or 0),
            }
            for row in rows
        ],
        "net_quantity": sum(int(row.total_quantity or 0) for row in rows),
    }
