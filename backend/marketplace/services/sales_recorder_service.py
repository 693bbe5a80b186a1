# Overview: Turns a paid/delivered order into per-vendor sales records, exactly once per order line.

"""
Marketplace Sales Recording Invariants (authoritative)

Idempotency:
- One SalesReconciliation claim per order (UNIQUE order_id). The claim is
  committed before any line is touched; a second trigger for the same order
  fails on the existence check or on the constraint and writes nothing.
- One VendorSale per order line (UNIQUE order_item_id), so resuming a
  partially recorded order can never duplicate a line.

Line processing:
- Lines are handled sequentially in order-item order and committed one by
  one. A failure on line N never undoes lines 1..N-1.
- Missing product or vendor: the line is logged and skipped.
- Stock deduction (vendor.auto_stock_deduction) runs in a savepoint. If the
  ledger refuses it the sale still stands and stock is left untouched.
- Any other error rolls back the current line, marks the claim partial and
  propagates. Nothing here retries.

Financials:
- sale_amount = unit_price * quantity; commission = 5% half-up to the cent;
  net = sale_amount - commission (see marketplace.money).
- sale_date is the order's created_at, so monthly reporting buckets sales by
  order placement, not by payment confirmation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Order, OrderItem, Product, SalesReconciliation, StockMovement, Vendor, VendorSale
from marketplace.money import COMMISSION_RATE_BPS, split_online_sale
from marketplace.time_utils import utcnow
from .concurrency import begin_immediate, lock_for_update
from .stock_ledger_service import InvalidStockStateError, apply_stock_movement
from .vendor_stats_service import recompute_vendor_sales_stats


StatsRecorder = Callable[[int], object]


class SalesRecordingError(Exception):
    """Raised for sales recording errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class AlreadyRecordedError(SalesRecordingError):
    """Sales for this order were already recorded (or are being recorded)."""


class OrderNotFoundError(SalesRecordingError):
    pass


class ProductNotFoundError(SalesRecordingError):
    pass


class VendorNotFoundError(SalesRecordingError):
    pass


class ReconciliationNotStartedError(SalesRecordingError):
    """resume was requested for an order that was never claimed."""


@dataclass
class RecordingResult:
    order_id: int
    reconciliation: SalesReconciliation
    created_records: list[VendorSale] = field(default_factory=list)
    stock_movements: list[StockMovement] = field(default_factory=list)
    skipped_lines: list[dict] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.reconciliation.status == "completed"

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "complete": self.complete,
            "reconciliation": self.reconciliation.to_dict(),
            "created_records": [sale.to_dict() for sale in self.created_records],
            "stock_movements": [m.to_dict() for m in self.stock_movements],
            "skipped_lines": list(self.skipped_lines),
        }


def _get_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise OrderNotFoundError("Order not found", details={"order_id": order_id})
    return order


def _order_items(order_id: int) -> list[OrderItem]:
    return (
        db.session.query(OrderItem)
        .filter_by(order_id=order_id)
        .order_by(OrderItem.id)
        .all()
    )


def sales_exist_for_order(order_id: int) -> bool:
    if db.session.query(VendorSale.id).filter_by(order_id=order_id).first() is not None:
        return True
    return db.session.query(SalesReconciliation.id).filter_by(order_id=order_id).first() is not None


def _claim_order(order: Order, *, lines_total: int, trigger: str) -> SalesReconciliation:
    if sales_exist_for_order(order.id):
        db.session.rollback()
        raise AlreadyRecordedError(
            "Sales already recorded for this order",
            details={"order_id": order.id},
        )

    claim = SalesReconciliation(
        order_id=order.id,
        status="in_progress",
        trigger=trigger,
        lines_total=lines_total,
        lines_recorded=0,
        attempts=1,
    )
    db.session.add(claim)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost the race to a concurrent trigger for the same order
        db.session.rollback()
        raise AlreadyRecordedError(
            "Sales already recorded for this order",
            details={"order_id": order.id},
        )
    return claim


def _record_line(order: Order, item: OrderItem) -> tuple[VendorSale, Optional[StockMovement]]:
    product = db.session.get(Product, item.product_id)
    if product is None:
        raise ProductNotFoundError(
            "Product not found",
            details={"order_item_id": item.id, "product_id": item.product_id},
        )

    vendor = db.session.get(Vendor, product.vendor_id)
    if vendor is None:
        raise VendorNotFoundError(
            "Vendor not found for product",
            details={"order_item_id": item.id, "product_id": product.id, "vendor_id": product.vendor_id},
        )

    amounts = split_online_sale(item.price_cents, item.quantity, COMMISSION_RATE_BPS)

    sale = VendorSale(
        vendor_id=vendor.id,
        product_id=product.id,
        order_id=order.id,
        order_item_id=item.id,
        sale_type="online",
        quantity=item.quantity,
        unit_price_cents=item.price_cents,
        total_amount_cents=amounts.sale_amount_cents,
        discount_cents=0,  # order-level discounts stay on the order
        tax_cents=0,
        platform_commission_cents=amounts.platform_commission_cents,
        net_amount_cents=amounts.net_amount_cents,
        customer_name=order.customer_name or "Online Customer",
        customer_phone=order.customer_phone,
        customer_email=order.customer_email,
        payment_method=order.payment_method or "online_payment",
        status="completed",
        sale_date=order.created_at,
    )
    db.session.add(sale)
    db.session.flush()

    movement = None
    if vendor.auto_stock_deduction:
        try:
            with db.session.begin_nested():
                movement = apply_stock_movement(
                    product_id=product.id,
                    vendor_id=vendor.id,
                    movement_type="out",
                    quantity=item.quantity,
                    reference_type="online_order",
                    reference_id=str(order.id),
                    reason="Online sale",
                    notes=f"Order #{order.id}",
                    created_by_id=order.user_id,
                    created_by_model="User" if order.user_id else "System",
                    commit=False,
                )
        except InvalidStockStateError as exc:
            movement = None
            current_app.logger.warning(
                "Stock not deducted for order %s line %s (product %s): %s %s",
                order.id,
                item.id,
                product.id,
                exc,
                exc.details,
            )

    return sale, movement


def _refresh_vendor_stats(vendor_ids: list[int], stats_recorder: Optional[StatsRecorder]) -> None:
    if stats_recorder is None:
        return
    for vendor_id in vendor_ids:
        try:
            stats_recorder(vendor_id)
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Failed to recompute sales stats for vendor %s", vendor_id)


def _finish_claim(claim: SalesReconciliation, *, last_error: str | None = None) -> SalesReconciliation:
    recorded = db.session.query(VendorSale).filter_by(order_id=claim.order_id).count()
    claim.lines_recorded = recorded
    claim.last_error = last_error[:500] if last_error else None
    if last_error is None and recorded >= claim.lines_total:
        claim.status = "completed"
        claim.completed_at = utcnow()
    else:
        claim.status = "partial"
    db.session.commit()
    return claim


def _reconcile_lines(
    order: Order,
    claim: SalesReconciliation,
    items: list[OrderItem],
    stats_recorder: Optional[StatsRecorder],
) -> RecordingResult:
    order_id = order.id
    result = RecordingResult(order_id=order_id, reconciliation=claim)
    vendor_ids: list[int] = []

    for item in items:
        try:
            sale, movement = _record_line(order, item)
            db.session.commit()
        except (ProductNotFoundError, VendorNotFoundError) as exc:
            db.session.rollback()
            current_app.logger.warning("Skipping order %s line %s: %s %s", order_id, item.id, exc, exc.details)
            result.skipped_lines.append({
                "order_item_id": item.id,
                "product_id": item.product_id,
                "reason": str(exc),
            })
            continue
        except Exception as exc:
            db.session.rollback()
            try:
                _finish_claim(claim, last_error=f"line {item.id}: {exc}")
            except SQLAlchemyError:
                db.session.rollback()
                current_app.logger.exception("Failed to mark reconciliation partial for order %s", order_id)
            _refresh_vendor_stats(vendor_ids, stats_recorder)
            raise

        result.created_records.append(sale)
        if movement is not None:
            result.stock_movements.append(movement)
        if sale.vendor_id not in vendor_ids:
            vendor_ids.append(sale.vendor_id)

    _finish_claim(claim)
    _refresh_vendor_stats(vendor_ids, stats_recorder)

    current_app.logger.info(
        "Recorded %s sales for order %s (%s skipped, status=%s)",
        len(result.created_records),
        order_id,
        len(result.skipped_lines),
        claim.status,
    )
    return result


def record_sales_for_order(
    order_id: int,
    *,
    trigger: str = "manual",
    stats_recorder: Optional[StatsRecorder] = recompute_vendor_sales_stats,
) -> RecordingResult:
    """
    Fan an order out into one VendorSale per line.

    Raises:
        OrderNotFoundError: no such order (nothing written)
        AlreadyRecordedError: the order was already claimed (nothing written)

    Lines whose product or vendor is missing are skipped; compare
    len(result.created_records) with the order's line count, or check
    result.complete, to detect a partial recording.
    """
    begin_immediate()
    try:
        order = _get_order(order_id)
    except OrderNotFoundError:
        db.session.rollback()
        raise

    items = _order_items(order.id)
    claim = _claim_order(order, lines_total=len(items), trigger=trigger)
    return _reconcile_lines(order, claim, items, stats_recorder)


def resume_sales_for_order(
    order_id: int,
    *,
    stats_recorder: Optional[StatsRecorder] = recompute_vendor_sales_stats,
) -> RecordingResult:
    """
    Finish a partially recorded order: reconcile only lines with no VendorSale.

    Raises:
        OrderNotFoundError
        ReconciliationNotStartedError: the order was never claimed
        AlreadyRecordedError: the claim is already complete
    """
    begin_immediate()
    try:
        order = _get_order(order_id)
    except OrderNotFoundError:
        db.session.rollback()
        raise

    claim = lock_for_update(
        db.session.query(SalesReconciliation).filter_by(order_id=order.id)
    ).first()
    if claim is None:
        db.session.rollback()
        raise ReconciliationNotStartedError(
            "Sales recording has not been started for this order",
            details={"order_id": order_id},
        )
    if claim.status == "completed":
        db.session.rollback()
        raise AlreadyRecordedError(
            "Sales already recorded for this order",
            details={"order_id": order_id},
        )

    recorded_item_ids = {
        item_id
        for (item_id,) in db.session.query(VendorSale.order_item_id).filter_by(order_id=order.id).all()
    }
    items = _order_items(order.id)
    pending = [item for item in items if item.id not in recorded_item_ids]

    claim.status = "in_progress"
    claim.attempts += 1
    claim.lines_total = len(items)
    db.session.commit()

    return _reconcile_lines(order, claim, pending, stats_recorder)
