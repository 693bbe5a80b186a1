# Overview: Order payment/delivery/status transitions and the sales-recording trigger on those edges.

"""
Order transition rules

STATE MACHINE:
    pending -> processing -> shipped -> delivered
    pending | processing -> cancelled

- Payment confirmation sets is_paid/paid_at and promotes pending to processing.
- Delivery confirmation sets is_delivered/delivered_at and status=delivered.
- The confirmation write is committed BEFORE sales recording runs. A
  recording failure is logged and never undoes the confirmation.
- Recording fires only on the false -> true edge; repeating a confirmation is
  an OrderStateError, and a second edge on the same order (payment then
  delivery) is absorbed by the recorder's per-order claim.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import Order, ORDER_STATUSES
from marketplace.time_utils import utcnow
from .concurrency import lock_for_update
from .sales_recorder_service import AlreadyRecordedError, RecordingResult, record_sales_for_order


class OrderStateError(Exception):
    """Raised when an order transition is not allowed."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class OrderNotFound(OrderStateError):
    pass


VALID_TRANSITIONS = {
    ("pending", "processing"),
    ("processing", "shipped"),
    ("shipped", "delivered"),
    ("pending", "cancelled"),
    ("processing", "cancelled"),
}


@dataclass
class TransitionResult:
    order: Order
    sales: Optional[RecordingResult] = None

    def to_dict(self) -> dict:
        return {
            "order": self.order.to_dict(),
            "sales": self.sales.to_dict() if self.sales is not None else None,
        }


def can_transition(from_status: str, to_status: str) -> bool:
    if from_status not in ORDER_STATUSES or to_status not in ORDER_STATUSES:
        return False
    return (from_status, to_status) in VALID_TRANSITIONS


def _load_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise OrderNotFound("Order not found", details={"order_id": order_id})
    return order


def record_sales_on_transition(order_id: int, trigger: str) -> Optional[RecordingResult]:
    """
    Run sales recording after a confirmed transition.

    Never raises: an already-recorded order is a no-op and every other failure
    is logged server-side.
    """
    if not current_app.config.get("AUTO_RECORD_SALES", True):
        return None
    try:
        return record_sales_for_order(order_id, trigger=trigger)
    except AlreadyRecordedError:
        current_app.logger.info("Sales already recorded for order %s; %s trigger ignored", order_id, trigger)
        return None
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error recording online sales for order %s (%s)", order_id, trigger)
        return None


def mark_order_paid(
    order_id: int,
    *,
    payment_reference: str | None = None,
    payment_method: str | None = None,
) -> TransitionResult:
    order = _load_order(order_id)

    if order.status == "cancelled":
        raise OrderStateError("Cannot pay a cancelled order", details={"order_id": order_id})
    if order.is_paid:
        raise OrderStateError("Order is already paid", details={"order_id": order_id})

    order.is_paid = True
    order.paid_at = utcnow()
    if payment_reference:
        order.payment_reference = payment_reference
    if payment_method:
        order.payment_method = payment_method
    if order.status == "pending":
        order.status = "processing"
    db.session.commit()

    sales = record_sales_on_transition(order.id, "payment")
    return TransitionResult(order=db.session.get(Order, order_id), sales=sales)


def _apply_delivery(order: Order) -> None:
    order.is_delivered = True
    order.delivered_at = utcnow()
    order.status = "delivered"


def mark_order_delivered(order_id: int) -> TransitionResult:
    order = _load_order(order_id)

    if order.status == "cancelled":
        raise OrderStateError("Cannot deliver a cancelled order", details={"order_id": order_id})
    if order.is_delivered:
        raise OrderStateError("Order is already delivered", details={"order_id": order_id})

    _apply_delivery(order)
    db.session.commit()

    sales = record_sales_on_transition(order.id, "delivery")
    return TransitionResult(order=db.session.get(Order, order_id), sales=sales)


def update_order_status(order_id: int, status: str, *, reason: str | None = None) -> TransitionResult:
    """
    Admin status override along the order state machine.

    Reaching `delivered` behaves exactly like a delivery confirmation.
    """
    if status not in ORDER_STATUSES:
        raise OrderStateError(
            f"Invalid status '{status}'. Must be one of: {', '.join(ORDER_STATUSES)}",
        )

    order = _load_order(order_id)
    old_status = order.status

    if old_status == status:
        return TransitionResult(order=order)

    if not can_transition(old_status, status):
        raise OrderStateError(
            f"Cannot move order from {old_status} to {status}",
            details={"order_id": order_id, "from": old_status, "to": status},
        )

    delivered_edge = False
    if status == "delivered":
        delivered_edge = not order.is_delivered
        _apply_delivery(order)
    elif status == "cancelled":
        order.status = "cancelled"
        order.cancelled_at = utcnow()
        order.cancel_reason = reason
    else:
        order.status = status
    db.session.commit()

    sales = record_sales_on_transition(order.id, "status_override") if delivered_edge else None
    return TransitionResult(order=db.session.get(Order, order_id), sales=sales)


def cancel_order(order_id: int, reason: str | None = None) -> TransitionResult:
    return update_order_status(order_id, "cancelled", reason=reason)
