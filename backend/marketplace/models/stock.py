from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z


INBOUND_TYPES = ("in", "return")
OUTBOUND_TYPES = ("out", "damage", "transfer")
MOVEMENT_TYPES = INBOUND_TYPES + OUTBOUND_TYPES + ("adjustment",)

REFERENCE_TYPES = ("purchase", "sale", "online_order", "manual", "return", "damage", "transfer")
APPROVAL_STATUSES = ("pending", "approved", "rejected")
ACTOR_MODELS = ("Vendor", "Admin", "User", "System")


class StockMovement(db.Model):
    """
    Append-only audit entry for one change to Product.stock.

    `quantity` is stored signed, so new_stock == previous_stock + quantity
    for every movement type. The CHECK constraints repeat that rule at the
    storage layer. Rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_vendor_created", "vendor_id", "created_at"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        db.CheckConstraint("previous_stock >= 0", name="ck_stock_movements_previous"),
        db.CheckConstraint("new_stock >= 0", name="ck_stock_movements_new"),
        db.CheckConstraint("new_stock = previous_stock + quantity", name="ck_stock_movements_arithmetic"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reference_type = db.Column(db.String(32), nullable=False)
    reference_id = db.Column(db.String(64), nullable=True)

    reason = db.Column(db.String(200), nullable=False)
    notes = db.Column(db.String(500), nullable=True)

    unit_cost_cents = db.Column(db.Integer, nullable=True)
    total_cost_cents = db.Column(db.Integer, nullable=True)

    location = db.Column(db.String(64), nullable=False, default="main_warehouse")
    batch_number = db.Column(db.String(64), nullable=True)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)

    approval_status = db.Column(db.String(16), nullable=False, default="approved", index=True)
    approved_by_id = db.Column(db.Integer, nullable=True)

    created_by_id = db.Column(db.Integer, nullable=True)
    created_by_model = db.Column(db.String(16), nullable=False, default="Vendor")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    @property
    def is_inbound(self) -> bool:
        return self.movement_type in INBOUND_TYPES

    @property
    def is_outbound(self) -> bool:
        return self.movement_type in OUTBOUND_TYPES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "reason": self.reason,
            "notes": self.notes,
            "unit_cost_cents": self.unit_cost_cents,
            "total_cost_cents": self.total_cost_cents,
            "location": self.location,
            "batch_number": self.batch_number,
            "expiry_date": to_utc_z(self.expiry_date),
            "approval_status": self.approval_status,
            "approved_by_id": self.approved_by_id,
            "created_by_id": self.created_by_id,
            "created_by_model": self.created_by_model,
            "created_at": to_utc_z(self.created_at),
        }
