# Overview: Flask CLI command groups for schema bootstrap and stock/purchasing inspection.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Inventory:
# - python -m flask inventory init-db
#   Create any missing tables (idempotent).
# - python -m flask inventory reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask inventory low-stock
#   List active variants at or below their minimum stock.
#
# Purchasing:
# - python -m flask purchasing stats
#   Purchase order counts per status and this month's received total.
# - python -m flask purchasing next-number
#   Show the next purchase order number without reserving it.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services.factory import current_services


@click.group('inventory')
def inventory_group():
    """Stock ledger bootstrap and inspection commands."""


@inventory_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Schema is up to date.")


@inventory_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete.")


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    """List active variants at or below their minimum stock."""
    variants = current_services().ledger.low_stock_variants()
    if not variants:
        click.echo("No variants below minimum stock.")
        return

    click.echo(f"{'SKU':<24} {'Stock':>7} {'Min':>7}")
    for variant in variants:
        click.echo(f"{variant.sku:<24} {variant.stock:>7} {variant.min_stock:>7}")


@click.group('purchasing')
def purchasing_group():
    """Purchase order inspection commands."""


@purchasing_group.command('stats')
@with_appcontext
def purchasing_stats():
    stats = current_services().orders.order_stats()
    click.echo(f"Total orders: {stats['total']}")
    for status, count in stats["by_status"].items():
        click.echo(f"  {status:<10} {count}")
    click.echo(f"Pending: {stats['pending_count']}")
    click.echo(f"Received this month: {stats['monthly_total_cents'] / 100:.2f}")


@purchasing_group.command('next-number')
@with_appcontext
def next_number():
    click.echo(current_services().orders.preview_order_number())


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(inventory_group)
    app.cli.add_command(purchasing_group)
