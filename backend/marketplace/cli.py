# Overview: Flask CLI command groups for database bootstrap, sales reconciliation and vendor stats.

# backend/marketplace/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Sales reconciliation:
# - python -m flask sales record 42
#   Record vendor sales for order 42 (refuses an already recorded order).
# - python -m flask sales resume 42
#   Record only the lines a previous attempt left without a sales record.
# - python -m flask sales breakdown 42
#   Print totals and the per-vendor split for order 42.
#
# Vendors:
# - python -m flask vendors recompute-stats [--vendor-id 7]
#   Rebuild cached sales and stock statistics (all vendors when omitted).

import click
from flask.cli import with_appcontext

from .extensions import db
from .money import cents_to_decimal
from .services import sales_recorder_service, sales_report_service, vendor_stats_service
from .services.sales_recorder_service import SalesRecordingError
from .services.sales_report_service import SalesNotFoundError
from .services.vendor_stats_service import VendorStatsError


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """Drop and recreate all tables. DEV/TEST only."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('sales')
def sales_group():
    """Vendor sales reconciliation commands."""


def _echo_result(result) -> None:
    recon = result.reconciliation
    click.echo(
        f"PASS Order {result.order_id}: {len(result.created_records)} sale(s) recorded, "
        f"{len(result.skipped_lines)} skipped, status={recon.status} "
        f"({recon.lines_recorded}/{recon.lines_total} lines)"
    )
    for line in result.skipped_lines:
        click.echo(f"WARN  line {line['order_item_id']} (product {line['product_id']}): {line['reason']}")


@sales_group.command('record')
@click.argument('order_id', type=int)
@with_appcontext
def record_sales(order_id):
    """Record vendor sales for ORDER_ID."""
    try:
        result = sales_recorder_service.record_sales_for_order(order_id, trigger="cli")
    except SalesRecordingError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    _echo_result(result)


@sales_group.command('resume')
@click.argument('order_id', type=int)
@with_appcontext
def resume_sales(order_id):
    """Record the remaining lines of a partially recorded ORDER_ID."""
    try:
        result = sales_recorder_service.resume_sales_for_order(order_id)
    except SalesRecordingError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    _echo_result(result)


@sales_group.command('breakdown')
@click.argument('order_id', type=int)
@with_appcontext
def sales_breakdown(order_id):
    """Print the sales breakdown for ORDER_ID."""
    try:
        breakdown = sales_report_service.get_order_sales_breakdown(order_id)
    except SalesNotFoundError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"Order {order_id}")
    click.echo(f"  Total sales:      {cents_to_decimal(breakdown['total_sales_cents'])}")
    click.echo(f"  Commission:       {cents_to_decimal(breakdown['total_commission_cents'])}")
    click.echo(f"  Net to vendors:   {cents_to_decimal(breakdown['total_net_to_vendors_cents'])}")
    for entry in breakdown["vendors"]:
        name = entry["vendor"]["business_name"] or f"vendor {entry['vendor']['id']}"
        click.echo(
            f"  - {name}: {cents_to_decimal(entry['total_sales_cents'])} "
            f"(commission {cents_to_decimal(entry['commission_cents'])}, "
            f"net {cents_to_decimal(entry['net_amount_cents'])})"
        )


@click.group('vendors')
def vendors_group():
    """Vendor maintenance commands."""


@vendors_group.command('recompute-stats')
@click.option('--vendor-id', type=int, default=None, help='Single vendor (default: all)')
@with_appcontext
def recompute_stats(vendor_id):
    """Rebuild cached sales and stock statistics."""
    if vendor_id is None:
        count = vendor_stats_service.recompute_all_vendor_stats()
        click.echo(f"PASS Recomputed stats for {count} vendor(s)")
        return

    try:
        sales = vendor_stats_service.recompute_vendor_sales_stats(vendor_id)
        stock = vendor_stats_service.recompute_vendor_stock_stats(vendor_id)
    except VendorStatsError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(
        f"PASS Vendor {vendor_id}: total sales {cents_to_decimal(sales['total_sales_cents'])}, "
        f"{stock['total_products']} product(s), {stock['out_of_stock_products']} out of stock"
    )


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(sales_group)
    app.cli.add_command(vendors_group)
