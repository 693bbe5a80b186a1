from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z


SALE_TYPES = ("online", "offline")
SALE_STATUSES = ("pending", "completed", "cancelled", "refunded")
PAYMENT_METHODS = (
    "cash",
    "card",
    "upi",
    "bank_transfer",
    "razorpay",
    "stripe",
    "online_payment",
    "other",
)


class VendorSale(db.Model):
    """
    One vendor's share of one sale line.

    Online records are derived from an order line by the sales recorder,
    exactly once per order item (uq_vendor_sales_order_item). Offline records
    are entered by the vendor and carry no order reference.

    Financial invariant: total_amount = unit_price * quantity - discount and
    net_amount = total_amount - platform_commission - tax, all in cents.
    """
    __tablename__ = "vendor_sales"
    __table_args__ = (
        db.UniqueConstraint("order_item_id", name="uq_vendor_sales_order_item"),
        db.Index("ix_vendor_sales_vendor_date", "vendor_id", "sale_date"),
        db.Index("ix_vendor_sales_vendor_status_type", "vendor_id", "status", "sale_type"),
        db.CheckConstraint("quantity >= 1", name="ck_vendor_sales_quantity"),
        db.CheckConstraint("platform_commission_cents >= 0", name="ck_vendor_sales_commission"),
        db.CheckConstraint("net_amount_cents >= 0", name="ck_vendor_sales_net"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Online sale reference
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=True)

    sale_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    platform_commission_cents = db.Column(db.Integer, nullable=False, default=0)
    net_amount_cents = db.Column(db.Integer, nullable=False)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)

    # Offline sale details
    invoice_number = db.Column(db.String(64), nullable=True, index=True)
    sale_location = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    payment_method = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    # Business date. Online sales inherit the order's creation time.
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    vendor = db.relationship("Vendor")
    product = db.relationship("Product")

    @property
    def profit_cents(self) -> int:
        return self.net_amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "product_id": self.product_id,
            "order_id": self.order_id,
            "order_item_id": self.order_item_id,
            "sale_type": self.sale_type,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_amount_cents": self.total_amount_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "platform_commission_cents": self.platform_commission_cents,
            "net_amount_cents": self.net_amount_cents,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "invoice_number": self.invoice_number,
            "sale_location": self.sale_location,
            "notes": self.notes,
            "payment_method": self.payment_method,
            "status": self.status,
            "sale_date": to_utc_z(self.sale_date),
            "created_at": to_utc_z(self.created_at),
        }


class SalesReconciliation(db.Model):
    """
    Per-order claim on sales recording.

    The UNIQUE order_id is the storage-level idempotency guard: whichever
    trigger inserts the claim first owns the order; every later attempt
    fails on the constraint. Line-level progress lives in VendorSale rows.
    """
    __tablename__ = "sales_reconciliations"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_sales_reconciliations_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)

    # in_progress | completed | partial
    status = db.Column(db.String(16), nullable=False, default="in_progress", index=True)
    # payment | delivery | status_override | manual | cli
    trigger = db.Column(db.String(32), nullable=True)

    lines_total = db.Column(db.Integer, nullable=False, default=0)
    lines_recorded = db.Column(db.Integer, nullable=False, default=0)
    attempts = db.Column(db.Integer, nullable=False, default=1)
    last_error = db.Column(db.String(500), nullable=True)

    started_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "status": self.status,
            "trigger": self.trigger,
            "lines_total": self.lines_total,
            "lines_recorded": self.lines_recorded,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "started_at": to_utc_z(self.started_at),
            "completed_at": to_utc_z(self.completed_at),
        }
