# Overview: Flask CLI command groups for bootstrap and ledger inspection.

# backend/posledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection:
# - python -m flask ledger stock 12
#   Derived stock, average cost and last purchase cost for product 12.
# - python -m flask ledger card 12 --limit 20
#   Stock card (newest first, with running balance) for product 12.
# - python -m flask ledger next-code sale
#   Preview the next sales invoice code (or: purchase).

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import inventory_service
from .services.posting_service import PURCHASE_KIND, SALE_KIND, preview_code
from .validation import NotFoundError


DOCUMENT_KINDS = {"sale": SALE_KIND, "purchase": PURCHASE_KIND}


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables. Existing tables and data are left alone."""
    click.echo("BUILD  Creating tables...")
    db.create_all()
    click.echo("PASS Database ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including every ledger row!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('ledger')
def ledger_group():
    """Inventory ledger inspection commands."""


@ledger_group.command('stock')
@click.argument('product_id', type=int)
@with_appcontext
def ledger_stock(product_id):
    """Show stock and cost derived from the ledger for one product."""
    try:
        summary = inventory_service.get_inventory_summary(product_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))

    click.echo(f"Product:            {summary['product_code']} (ID: {summary['product_id']})")
    click.echo(f"Stock:              {summary['stock_qty']}")
    click.echo(f"Average cost:       {summary['average_cost']}")
    click.echo(f"Last purchase cost: {summary['last_purchase_cost']}")
    click.echo(f"Inventory value:    {summary['inventory_value']}")


@ledger_group.command('card')
@click.argument('product_id', type=int)
@click.option('--limit', default=50, show_default=True, help='Rows to show')
@with_appcontext
def ledger_card(product_id, limit):
    """
    Print the stock card for a product, newest first.

    Example:
        flask ledger card 12
        flask ledger card 12 --limit 10
    """
    try:
        card = inventory_service.get_stock_card(product_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))

    if not card:
        click.echo("No ledger rows.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'When':<22} {'Type':<5} {'Qty':>7} {'Ending':>8}  {'Document':<14} {'Partner'}")
    click.echo("="*90)
    for row in card[:limit]:
        click.echo(
            f"{row['created_at'] or '':<22} {row['transaction_type']:<5} {row['quantity']:>7} "
            f"{row['ending_stock']:>8}  {row['document_code'] or '-':<14} {row['partner_name'] or '-'}"
        )
    click.echo("="*90 + "\n")


@ledger_group.command('next-code')
@click.argument('kind', type=click.Choice(sorted(DOCUMENT_KINDS)))
@with_appcontext
def next_code(kind):
    """Preview the next document code for a series. Nothing is reserved."""
    click.echo(preview_code(DOCUMENT_KINDS[kind]))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
