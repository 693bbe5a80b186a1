from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z


class Vendor(db.Model):
    """
    Marketplace seller.

    auto_stock_deduction gates whether recorded sales decrement product stock.
    The salesStats / stockStats columns are caches, rebuilt from VendorSale
    and Product rows by vendor_stats_service; never edit them directly.
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.Index("ix_vendors_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    business_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    phone = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Sales and stock preferences
    enable_offline_sales = db.Column(db.Boolean, nullable=False, default=True)
    auto_stock_deduction = db.Column(db.Boolean, nullable=False, default=True)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    # Sales stats cache
    total_online_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_offline_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_orders = db.Column(db.Integer, nullable=False, default=0)
    average_order_value_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_stats_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Stock stats cache
    total_products = db.Column(db.Integer, nullable=False, default=0)
    low_stock_products = db.Column(db.Integer, nullable=False, default=0)
    out_of_stock_products = db.Column(db.Integer, nullable=False, default=0)
    total_stock_value_cents = db.Column(db.Integer, nullable=False, default=0)
    stock_stats_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} business_name={self.business_name!r}>"

    def sales_stats(self) -> dict:
        return {
            "total_online_sales_cents": self.total_online_sales_cents,
            "total_offline_sales_cents": self.total_offline_sales_cents,
            "total_sales_cents": self.total_sales_cents,
            "total_orders": self.total_orders,
            "average_order_value_cents": self.average_order_value_cents,
            "last_updated": to_utc_z(self.sales_stats_updated_at),
        }

    def stock_stats(self) -> dict:
        return {
            "total_products": self.total_products,
            "low_stock_products": self.low_stock_products,
            "out_of_stock_products": self.out_of_stock_products,
            "total_stock_value_cents": self.total_stock_value_cents,
            "last_updated": to_utc_z(self.stock_stats_updated_at),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "business_name": self.business_name,
            "email": self.email,
            "phone": self.phone,
            "is_active": self.is_active,
            "enable_offline_sales": self.enable_offline_sales,
            "auto_stock_deduction": self.auto_stock_deduction,
            "low_stock_threshold": self.low_stock_threshold,
            "sales_stats": self.sales_stats(),
            "stock_stats": self.stock_stats(),
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Vendor-owned catalog item.

    `stock` is a mutable counter. The stock ledger is the only writer: it
    changes the value with a single conditional UPDATE and appends a
    StockMovement in the same transaction.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("vendor_id", "sku", name="uq_products_vendor_sku"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_vendor_name", "vendor_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    price_cents = db.Column(db.Integer, nullable=False)
    mrp_cents = db.Column(db.Integer, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    vendor = db.relationship("Vendor", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} vendor_id={self.vendor_id} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "sku": self.sku,
            "name": self.name,
            "price_cents": self.price_cents,
            "mrp_cents": self.mrp_cents,
            "stock": self.stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
