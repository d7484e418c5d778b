# Overview: Flask CLI command groups for bootstrap, approval operations and ledger checks.

# backend/stockpost/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP: export FLASK_APP="stockpost:create_app"
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system seed-demo [--org "Demo Org"]
#   Idempotent demo tenant: store, USD/EUR currencies, current period, accounts, products.
#
# Adjustments:
# - python -m flask adjustments approve 12 --org-id 1 --user-id 1
#   Approve and post a submitted adjustment.
# - python -m flask adjustments reject 12 --org-id 1 --user-id 1 --reason "Counted twice"
#   Reject a submitted adjustment.
#
# Ledger:
# - python -m flask ledger check --org-id 1
#   Verify sum of debits equals sum of credits; exits 1 when unbalanced.

from datetime import date
from decimal import Decimal

import click
from flask.cli import with_appcontext

from .errors import AdjustmentError
from .extensions import db
from .models import Account, Currency, ExchangeRate, FinancialPeriod, Organization, Product, Store
from .services.container import get_services
from .services.tenant_service import TenantContext
from .validation import decimal_str


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the current database."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('seed-demo')
@click.option('--org', 'org_name', default='Demo Organization', help='Organization name')
@click.option('--org-code', default='DEMO', help='Organization code')
@with_appcontext
def seed_demo(org_name, org_code):
    """
    Seed a demo tenant with everything an approval needs.

    Creates (if missing): organization, store, USD (default) and EUR with a
    EUR->USD rate, a current financial period, inventory/adjustment accounts
    and two products.
    """
    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = Organization(name=org_name, code=org_code, is_active=True)
        db.session.add(org)
        db.session.flush()
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    def ensure(model, lookup: dict, **values):
        row = db.session.query(model).filter_by(org_id=org.id, **lookup).first()
        if row is None:
            row = model(org_id=org.id, **lookup, **values)
            db.session.add(row)
            db.session.flush()
        return row

    store = ensure(Store, {"code": "MAIN"}, name="Main Store")
    usd = ensure(Currency, {"code": "USD"}, name="US Dollar", symbol="$", is_default=True)
    eur = ensure(Currency, {"code": "EUR"}, name="Euro", symbol="EUR", is_default=False)
    ensure(
        ExchangeRate,
        {"from_currency_id": eur.id, "to_currency_id": usd.id},
        rate=Decimal("1.100000"),
        effective_date=date(date.today().year, 1, 1),
        is_active=True,
    )
    year = date.today().year
    ensure(
        FinancialPeriod,
        {"name": f"FY{year}"},
        start_date=date(year, 1, 1),
        end_date=date(year, 12, 31),
        is_current=True,
        is_active=True,
    )
    inventory = ensure(Account, {"code": "1300"}, name="Inventory", account_type="ASSET")
    shrinkage = ensure(Account, {"code": "5200"}, name="Inventory Adjustments", account_type="EXPENSE")
    ensure(Product, {"code": "SKU-001"}, name="Widget", unit="PCS", selling_price=Decimal("15.00"))
    ensure(Product, {"code": "SKU-002"}, name="Gadget", unit="PCS", selling_price=Decimal("40.00"))

    db.session.commit()
    click.echo(f"PASS Store {store.id}, default currency {usd.code} ({usd.id})")
    click.echo(f"PASS Accounts: inventory={inventory.id}, adjustments={shrinkage.id}")


@click.group('adjustments')
def adjustments_group():
    """Stock adjustment workflow commands."""


@adjustments_group.command('approve')
@click.argument('adjustment_id', type=int)
@click.option('--org-id', type=int, required=True)
@click.option('--user-id', type=int, required=True)
@with_appcontext
def approve_adjustment_cli(adjustment_id, org_id, user_id):
    """Approve and post a submitted adjustment."""
    ctx = TenantContext(org_id=org_id, user_id=user_id)
    try:
        adjustment = get_services().adjustments.approve(ctx, adjustment_id)
    except AdjustmentError as e:
        raise click.ClickException(f"{e.code}: {e.message}")
    click.echo(f"PASS {adjustment.reference_number} approved ({len(adjustment.lines)} lines posted)")


@adjustments_group.command('reject')
@click.argument('adjustment_id', type=int)
@click.option('--org-id', type=int, required=True)
@click.option('--user-id', type=int, required=True)
@click.option('--reason', required=True)
@with_appcontext
def reject_adjustment_cli(adjustment_id, org_id, user_id, reason):
    """Reject a submitted adjustment with a reason."""
    ctx = TenantContext(org_id=org_id, user_id=user_id)
    try:
        adjustment = get_services().adjustments.reject(ctx, adjustment_id, reason)
    except AdjustmentError as e:
        raise click.ClickException(f"{e.code}: {e.message}")
    click.echo(f"PASS {adjustment.reference_number} rejected")


@click.group('ledger')
def ledger_group():
    """General ledger inspection commands."""


@ledger_group.command('check')
@click.option('--org-id', type=int, required=True)
@with_appcontext
def check_ledger_cli(org_id):
    """Verify the tenant's ledger balances, overall and per reference."""
    ledger = get_services().ledger
    balance = ledger.balance(org_id)
    click.echo(
        f"Debits {decimal_str(balance['debit_total'])} / Credits {decimal_str(balance['credit_total'])}"
    )

    unbalanced = ledger.unbalanced_references(org_id)
    for reference, debit, credit in unbalanced:
        click.echo(f"FAIL {reference}: debit {decimal_str(debit)} != credit {decimal_str(credit)}")

    if unbalanced or not balance["balanced"]:
        raise SystemExit(1)
    click.echo("PASS Ledger balanced")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(adjustments_group)
    app.cli.add_command(ledger_group)
