# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Database bootstrap:
# - python -m flask ledger init-db
#   Create any missing tables (idempotent). Use `flask db upgrade` for migrations.
# - python -m flask ledger reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Products and stock:
# - python -m flask ledger create-product --sku RICE-5KG --name "Rice 5kg" [--costing-method FIFO]
# - python -m flask ledger replenish 1 --quantity 10 --unit-cost 100 --unit-price 150
# - python -m flask ledger status [--product-id 1]
#   Quantity, status level and pending stock per product.
#
# Alerts and credit:
# - python -m flask ledger alerts [--all]
#   List open (or all) inventory alerts.
# - python -m flask ledger reconcile
#   Check every customer's balance against SUM(BORROW) - SUM(PAYMENT).

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Customer, Product, CostingMethod
from .services import alert_service, credit_service, inventory_service, products_service


@click.group('ledger')
def ledger_group():
    """Inventory ledger bootstrap and inspection commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@ledger_group.command('reset-db')
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


@ledger_group.command('create-product')
@click.option('--sku', required=True)
@click.option('--name', required=True)
@click.option('--price-cents', type=int, default=0)
@click.option('--low-stock-threshold', type=int, default=None)
@click.option('--costing-method', type=click.Choice([m.value for m in CostingMethod]), default='FIFO')
@with_appcontext
def create_product(sku, name, price_cents, low_stock_threshold, costing_method):
    """Create a product with zero stock."""
    try:
        product = products_service.create_product(
            sku=sku,
            name=name,
            price_cents=price_cents,
            low_stock_threshold=low_stock_threshold,
            costing_method=costing_method,
        )
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created product {product.id} ({product.sku}, {product.costing_method.value})")


@ledger_group.command('replenish')
@click.argument('product_id', type=int)
@click.option('--quantity', type=int, required=True)
@click.option('--unit-cost', 'unit_cost_cents', type=int, required=True, help='Unit cost in cents')
@click.option('--unit-price', 'unit_price_cents', type=int, required=True, help='Unit price in cents')
@with_appcontext
def replenish(product_id, quantity, unit_cost_cents, unit_price_cents):
    """Receive a replenishment batch for a product."""
    try:
        result = inventory_service.replenish(
            product_id, quantity, unit_cost_cents, unit_price_cents, actor="cli"
        )
    except LedgerError as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS Replenished {quantity} units ({result.status}); current stock {result.current_stock}"
    )


@ledger_group.command('status')
@click.option('--product-id', type=int, default=None)
@with_appcontext
def status(product_id):
    """Show quantity and stock level per product."""
    query = db.session.query(Product).order_by(Product.id.asc())
    if product_id is not None:
        query = query.filter(Product.id == product_id)
    products = query.all()
    if not products:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<6}{'SKU':<20}{'QTY':>8}{'PENDING':>9}  STATUS")
    click.echo("-" * 60)
    for product in products:
        summary = inventory_service.get_inventory_summary(product.id)
        click.echo(
            f"{product.id:<6}{product.sku:<20}{summary['quantity']:>8}"
            f"{summary['pending_quantity']:>9}  {summary['status']['label']}"
        )


@ledger_group.command('alerts')
@click.option('--all', 'show_all', is_flag=True, help='Include resolved alerts')
@click.option('--limit', type=int, default=50)
@with_appcontext
def alerts(show_all, limit):
    """List inventory alerts (open only by default)."""
    rows = alert_service.list_alerts(resolved=None if show_all else False, limit=limit)
    if not rows:
        click.echo("No alerts.")
        return
    for alert in rows:
        flag = "RESOLVED" if alert.resolved else "OPEN"
        click.echo(
            f"[{alert.id}] {alert.alert_type.value:<16} product={alert.product_id} "
            f"qty={alert.quantity_at_trigger} {flag}  {alert.message or ''}"
        )


@ledger_group.command('reconcile')
@with_appcontext
def reconcile():
    """Verify customer balances against their debt transactions."""
    customers = db.session.query(Customer).order_by(Customer.id.asc()).all()
    mismatches = 0
    for customer in customers:
        report = credit_service.reconcile_customer(customer.id)
        if not report["is_consistent"]:
            mismatches += 1
            click.echo(
                f"FAIL customer {customer.id} ({customer.name}): stored "
                f"{report['balance_cents']} expected {report['expected_balance_cents']}"
            )
    if mismatches:
        raise click.ClickException(f"{mismatches} customer balance(s) do not reconcile")
    click.echo(f"PASS {len(customers)} customer balance(s) reconcile.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
