"""
Pytest fixtures for stockpost backend tests.

Provides test database setup, two isolated tenants with the master data an
approval needs, and factories for positions and adjustments.
"""

from datetime import date
from decimal import Decimal

import pytest
from stockpost import create_app
from stockpost.extensions import db
from stockpost.models import (
    Account, Currency, ExchangeRate, FinancialPeriod, InventoryPosition, Organization, Product, Store,
)
from stockpost.services.container import get_services
from stockpost.services.tenant_service import TenantContext
from stockpost.validation import parse_header


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'APPROVAL_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def services(db_session):
    return get_services()


# =============================================================================
# TENANTS
# =============================================================================

def _seed_tenant(session, name: str, code: str, with_period=True, with_default_currency=True) -> dict:
    org = Organization(name=name, code=code, is_active=True)
    session.add(org)
    session.flush()

    store = Store(org_id=org.id, name=f"{name} Main", code="MAIN")
    usd = Currency(org_id=org.id, code="USD", name="US Dollar", symbol="$", is_default=with_default_currency)
    eur = Currency(org_id=org.id, code="EUR", name="Euro", symbol="EUR", is_default=False)
    inventory = Account(org_id=org.id, code="1300", name="Inventory", account_type="ASSET")
    adjustments = Account(org_id=org.id, code="5200", name="Inventory Adjustments", account_type="EXPENSE")
    widget = Product(org_id=org.id, code="SKU-001", name="Widget", unit="PCS", selling_price=Decimal("15.00"))
    gadget = Product(org_id=org.id, code="SKU-002", name="Gadget", unit="PCS", selling_price=Decimal("40.00"))
    session.add_all([store, usd, eur, inventory, adjustments, widget, gadget])
    session.flush()

    period = None
    if with_period:
        period = FinancialPeriod(
            org_id=org.id, name="FY2026",
            start_date=date(2026, 1, 1), end_date=date(2026, 12, 31),
            is_current=True, is_active=True,
        )
        session.add(period)

    session.commit()
    return {
        "org": org,
        "store": store,
        "usd": usd,
        "eur": eur,
        "inventory_account": inventory,
        "adjustment_account": adjustments,
        "product": widget,
        "product_2": gadget,
        "period": period,
        "ctx": TenantContext(org_id=org.id, user_id=1),
    }


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Organization A (first tenant) with store, currencies, period, accounts, products."""
    return _seed_tenant(db_session, "Org A - Acme Corp", "ACME")


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Organization B (second tenant)."""
    return _seed_tenant(db_session, "Org B - Beta Inc", "BETA")


@pytest.fixture(scope='function')
def seed_tenant(db_session):
    """Factory for tenants missing a current period or default currency."""
    def _factory(code="GAMMA", **kwargs):
        return _seed_tenant(db_session, f"Org {code}", code, **kwargs)
    return _factory


@pytest.fixture(scope='function')
def eur_rate(db_session, tenant_a):
    rate = ExchangeRate(
        org_id=tenant_a["org"].id,
        from_currency_id=tenant_a["eur"].id,
        to_currency_id=tenant_a["usd"].id,
        rate=Decimal("1.100000"),
        effective_date=date(2026, 1, 1),
        is_active=True,
    )
    db_session.add(rate)
    db_session.commit()
    return rate


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture(scope='function')
def make_position(db_session):
    def _factory(tenant, quantity, average_cost, product=None):
        product = product or tenant["product"]
        position = InventoryPosition(
            org_id=tenant["org"].id,
            product_id=product.id,
            store_id=tenant["store"].id,
            quantity=Decimal(quantity),
            average_cost=Decimal(average_cost),
        )
        db_session.add(position)
        db_session.commit()
        return position
    return _factory


def adjustment_payload(tenant, lines, adjustment_type="add", currency=None, **extra) -> dict:
    """Request-shaped payload; lines are (product, quantity, unit_cost) tuples."""
    payload = {
        "store_id": tenant["store"].id,
        "adjustment_type": adjustment_type,
        "account_id": tenant["inventory_account"].id,
        "corresponding_account_id": tenant["adjustment_account"].id,
        "currency_id": (currency or tenant["usd"]).id,
        "adjustment_date": "2026-10-19",
        "reason_code": "RECOUNT",
        "lines": [
            {"product_id": product.id, "adjusted_quantity": str(qty), "unit_cost": str(cost)}
            for product, qty, cost in lines
        ],
    }
    payload.update(extra)
    return payload


@pytest.fixture(scope='function')
def make_adjustment(services):
    """Create a draft and optionally drive it to submitted."""
    def _factory(tenant, lines, adjustment_type="add", submit=True, **extra):
        header = parse_header(adjustment_payload(tenant, lines, adjustment_type, **extra))
        adjustment = services.adjustments.create_draft(tenant["ctx"], header)
        if submit:
            adjustment = services.adjustments.submit(tenant["ctx"], adjustment.id)
        return adjustment
    return _factory


def position_of(tenant, product=None):
    product = product or tenant["product"]
    return get_services().positions.get(tenant["org"].id, product.id, tenant["store"].id)


def tenant_headers(tenant) -> dict:
    return {"X-Org-Id": str(tenant["org"].id), "X-User-Id": "1"}
