"""Initial marketplace schema: vendors, products, orders, vendor sales, stock ledger

Revision ID: 20261016_initial
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261016_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        "vendors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("business_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("enable_offline_sales", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("auto_stock_deduction", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("total_online_sales_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_offline_sales_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_sales_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_orders", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("average_order_value_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sales_stats_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_products", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("low_stock_products", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("out_of_stock_products", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_stock_value_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stock_stats_updated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("email"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_vendors_active", "vendors", ["is_active"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("mrp_cents", sa.Integer(), nullable=True),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("vendor_id", "sku", name="uq_products_vendor_sku"),
        sa.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_vendor_id", "products", ["vendor_id"], unique=False)
    op.create_index("ix_products_vendor_name", "products", ["vendor_id", "name"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("customer_email", sa.String(length=255), nullable=True),
        sa.Column("customer_phone", sa.String(length=32), nullable=True),
        sa.Column("coupon_code", sa.String(length=64), nullable=True),
        sa.Column("payment_method", sa.String(length=32), nullable=True),
        sa.Column("payment_reference", sa.String(length=128), nullable=True),
        sa.Column("items_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_delivered", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.String(length=255), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'shipped', 'delivered', 'cancelled')",
            name="ck_orders_status",
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"], unique=False)
    op.create_index("ix_orders_status", "orders", ["status"], unique=False)
    op.create_index("ix_orders_status_created", "orders", ["status", "created_at"], unique=False)

    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("mrp_cents", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"], unique=False)
    op.create_index("ix_order_items_product_id", "order_items", ["product_id"], unique=False)

    op.create_table(
        "vendor_sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=True),
        sa.Column("order_item_id", sa.Integer(), sa.ForeignKey("order_items.id"), nullable=True),
        sa.Column("sale_type", sa.String(length=16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("platform_commission_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("net_amount_cents", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("customer_phone", sa.String(length=32), nullable=True),
        sa.Column("customer_email", sa.String(length=255), nullable=True),
        sa.Column("invoice_number", sa.String(length=64), nullable=True),
        sa.Column("sale_location", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("payment_method", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="completed"),
        sa.Column("sale_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("order_item_id", name="uq_vendor_sales_order_item"),
        sa.CheckConstraint("quantity >= 1", name="ck_vendor_sales_quantity"),
        sa.CheckConstraint("platform_commission_cents >= 0", name="ck_vendor_sales_commission"),
        sa.CheckConstraint("net_amount_cents >= 0", name="ck_vendor_sales_net"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_vendor_sales_vendor_id", "vendor_sales", ["vendor_id"], unique=False)
    op.create_index("ix_vendor_sales_product_id", "vendor_sales", ["product_id"], unique=False)
    op.create_index("ix_vendor_sales_order_id", "vendor_sales", ["order_id"], unique=False)
    op.create_index("ix_vendor_sales_sale_type", "vendor_sales", ["sale_type"], unique=False)
    op.create_index("ix_vendor_sales_status", "vendor_sales", ["status"], unique=False)
    op.create_index("ix_vendor_sales_invoice_number", "vendor_sales", ["invoice_number"], unique=False)
    op.create_index("ix_vendor_sales_vendor_date", "vendor_sales", ["vendor_id", "sale_date"], unique=False)
    op.create_index(
        "ix_vendor_sales_vendor_status_type",
        "vendor_sales",
        ["vendor_id", "status", "sale_type"],
        unique=False,
    )

    op.create_table(
        "sales_reconciliations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="in_progress"),
        sa.Column("trigger", sa.String(length=32), nullable=True),
        sa.Column("lines_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lines_recorded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("last_error", sa.String(length=500), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("order_id", name="uq_sales_reconciliations_order"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_reconciliations_status", "sales_reconciliations", ["status"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("movement_type", sa.String(length=16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("previous_stock", sa.Integer(), nullable=False),
        sa.Column("new_stock", sa.Integer(), nullable=False),
        sa.Column("reference_type", sa.String(length=32), nullable=False),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("reason", sa.String(length=200), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("unit_cost_cents", sa.Integer(), nullable=True),
        sa.Column("total_cost_cents", sa.Integer(), nullable=True),
        sa.Column("location", sa.String(length=64), nullable=False, server_default="main_warehouse"),
        sa.Column("batch_number", sa.String(length=64), nullable=True),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_status", sa.String(length=16), nullable=False, server_default="approved"),
        sa.Column("approved_by_id", sa.Integer(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_by_model", sa.String(length=16), nullable=False, server_default="Vendor"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("previous_stock >= 0", name="ck_stock_movements_previous"),
        sa.CheckConstraint("new_stock >= 0", name="ck_stock_movements_new"),
        sa.CheckConstraint("new_stock = previous_stock + quantity", name="ck_stock_movements_arithmetic"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_movements_vendor_id", "stock_movements", ["vendor_id"], unique=False)
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"], unique=False)
    op.create_index("ix_stock_movements_movement_type", "stock_movements", ["movement_type"], unique=False)
    op.create_index("ix_stock_movements_approval_status", "stock_movements", ["approval_status"], unique=False)
    op.create_index("ix_stock_movements_vendor_created", "stock_movements", ["vendor_id", "created_at"], unique=False)
    op.create_index("ix_stock_movements_product_created", "stock_movements", ["product_id", "created_at"], unique=False)
    op.create_index("ix_stock_movements_reference", "stock_movements", ["reference_type", "reference_id"], unique=False)


def downgrade():
    op.drop_table("stock_movements")
    op.drop_table("sales_reconciliations")
    op.drop_table("vendor_sales")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("products")
    op.drop_table("vendors")
