# Overview: Flask CLI command groups for bootstrap and ledger maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--branch "Main Branch"]
#   Idempotent bootstrap: creates a default branch and an admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Master data (the ledger only needs these as foreign-key targets):
# - python -m flask catalog add-variant --product "Cola" --name "330ml" --barcode 885000000001
#   Create a product variant (and its product when missing).
#
# Stock inspection:
# - python -m flask stock levels [--branch-id 1]
#   Print current stock rows.
# - python -m flask stock reconcile [--branch-id 1]
#   List (variant, branch) pairs whose stock differs from the sum of their movements.
#   Exits with status 1 when any discrepancy is found.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, User, Product, ProductVariant
from .services import inventory_service, reconciliation_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--branch', 'branch_name', default='Main Branch', help='Default branch name')
@click.option('--username', default='admin', help='Default user name')
@with_appcontext
def init_system(branch_name, username):
    """
    Initialize a usable ledger: tables, a default branch and an admin user.

    The admin's id is what API callers send as X-User-Id.
    """
    click.echo("START Initializing stock ledger...")
    db.create_all()

    branch = db.session.query(Branch).filter_by(name=branch_name).first()
    if not branch:
        branch = Branch(name=branch_name, is_active=True)
        db.session.add(branch)
        db.session.commit()
        click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        user = User(username=username, branch_id=branch.id, role_type="ADMIN", is_active=True)
        db.session.add(user)
        db.session.commit()
        click.echo(f"PASS Created user: {user.username} (ID: {user.id})")
    else:
        click.echo(f"WARN  User '{username}' already exists (ID: {user.id}), skipping...")

    click.echo("DONE Stock ledger initialized. Send X-User-Id: %s with write requests." % user.id)


@system_group.command('reset-db')
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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('catalog')
def catalog_group():
    """Minimal product master data."""


@catalog_group.command('add-variant')
@click.option('--product', 'product_name', required=True, help='Product name')
@click.option('--name', 'variant_name', required=True, help='Variant name')
@click.option('--barcode', required=True, help='Variant barcode (unique)')
@click.option('--sku', default=None, help='Variant SKU')
@with_appcontext
def add_variant(product_name, variant_name, barcode, sku):
    """Create a product variant, creating the product when missing."""
    if db.session.query(ProductVariant).filter_by(barcode=barcode).first():
        raise click.ClickException(f"Barcode {barcode} already exists")

    product = db.session.query(Product).filter_by(name=product_name).first()
    if not product:
        product = Product(name=product_name)
        db.session.add(product)
        db.session.flush()

    variant = ProductVariant(product_id=product.id, name=variant_name, barcode=barcode, sku=sku)
    db.session.add(variant)
    db.session.commit()
    click.echo(f"PASS Created variant {variant.name} (ID: {variant.id}, barcode {variant.barcode})")


@click.group('stock')
def stock_group():
    """Stock ledger inspection."""


@stock_group.command('levels')
@click.option('--branch-id', type=int, default=None, help='Only this branch')
@with_appcontext
def stock_levels(branch_id):
    """Print current stock rows."""
    summary = inventory_service.get_stock_summary(branch_id=branch_id)
    if not summary["items"]:
        click.echo("No stock rows.")
        return
    for row in summary["items"]:
        click.echo(
            f"branch={row['branch_id']:<4} variant={row['product_variant_id']:<6} "
            f"barcode={row['barcode'] or '-':<16} quantity={row['quantity']}"
        )
    click.echo(f"TOTAL {summary['total_quantity']}")


@stock_group.command('reconcile')
@click.option('--branch-id', type=int, default=None, help='Only this branch')
@with_appcontext
def stock_reconcile(branch_id):
    """
    Compare every stock row with the sum of its movements.

    Exit status 1 when any pair disagrees.
    """
    discrepancies = reconciliation_service.find_discrepancies(branch_id)
    if not discrepancies:
        click.echo("PASS Stock matches the movement log.")
        return

    for d in discrepancies:
        click.echo(
            f"FAIL branch={d.branch_id} variant={d.product_variant_id} "
            f"stock={d.stock_quantity} movements={d.movement_sum} diff={d.difference}"
        )
    raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(stock_group)
