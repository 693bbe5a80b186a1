from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z


# pending -> processing -> shipped -> delivered; cancelled before shipping
ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")


class Order(db.Model):
    """
    Customer purchase.

    Created by checkout (outside this service). Payment and delivery
    confirmations flip is_paid / is_delivered; those edges are what trigger
    vendor sales recording. Line items are immutable once written.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.CheckConstraint(
            "status IN ('pending', 'processing', 'shipped', 'delivered', 'cancelled')",
            name="ck_orders_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Customer (user accounts live in the auth service)
    user_id = db.Column(db.Integer, nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    coupon_code = db.Column(db.String(64), nullable=True)
    payment_method = db.Column(db.String(32), nullable=True)
    payment_reference = db.Column(db.String(128), nullable=True)

    # Aggregates computed at checkout
    items_price_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)

    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    is_delivered = db.Column(db.Boolean, nullable=False, default=False)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status!r} paid={self.is_paid}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "coupon_code": self.coupon_code,
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "items_price_cents": self.items_price_cents,
            "discount_cents": self.discount_cents,
            "total_price_cents": self.total_price_cents,
            "is_paid": self.is_paid,
            "paid_at": to_utc_z(self.paid_at),
            "is_delivered": self.is_delivered,
            "delivered_at": to_utc_z(self.delivered_at),
            "status": self.status,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    """Product snapshot captured at checkout: one line of an order."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # No FK: the product may be deleted after checkout; the snapshot stays
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    mrp_cents = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship(
        "Order",
        backref=db.backref("items", lazy=True, order_by="OrderItem.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "mrp_cents": self.mrp_cents,
        }
