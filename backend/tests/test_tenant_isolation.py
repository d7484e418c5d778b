# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for adjustments and
everything an approval touches.

Two organizations are seeded with identical master data, then we verify that:
1. Org B cannot read, edit, review or approve Org A's adjustments
2. A draft referencing Org B's store, product, account or currency is rejected
3. Lists, ledger reads and positions only ever show the caller's rows
4. Cross-tenant attempts are logged
"""

import logging
from decimal import Decimal

import pytest

from conftest import adjustment_payload, position_of
from stockpost.errors import NotFound, TenantAccessError
from stockpost.models import StockAdjustment
from stockpost.services.tenant_service import (
    require_account_in_org,
    require_products_in_org,
    require_store_in_org,
)
from stockpost.validation import parse_header


class TestTenantServiceHelpers:
    def test_require_store_in_org_valid(self, services, tenant_a):
        store = require_store_in_org(services.refs, tenant_a["store"].id, tenant_a["org"].id)
        assert store.id == tenant_a["store"].id

    def test_require_store_in_org_cross_tenant(self, services, tenant_a, tenant_b):
        with pytest.raises(TenantAccessError):
            require_store_in_org(services.refs, tenant_b["store"].id, tenant_a["org"].id)

    def test_require_store_in_org_nonexistent(self, services, tenant_a):
        with pytest.raises(TenantAccessError):
            require_store_in_org(services.refs, 99999, tenant_a["org"].id)

    def test_require_products_reports_any_foreign_product(self, services, tenant_a, tenant_b):
        ids = [tenant_a["product"].id, tenant_b["product"].id]
        with pytest.raises(TenantAccessError):
            require_products_in_org(services.refs, ids, tenant_a["org"].id)

    def test_foreign_account_is_not_found(self, services, tenant_a, tenant_b):
        with pytest.raises(NotFound):
            require_account_in_org(services.refs, tenant_b["inventory_account"].id, tenant_a["org"].id)

    def test_cross_tenant_attempt_is_logged(self, services, tenant_a, tenant_b, caplog):
        with caplog.at_level(logging.WARNING):
            with pytest.raises(TenantAccessError):
                require_store_in_org(services.refs, tenant_b["store"].id, tenant_a["org"].id)
        assert "Tenant access denied" in caplog.text


class TestAdjustmentIsolation:
    def test_foreign_adjustment_is_not_found(self, services, tenant_a, tenant_b, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")])
        with pytest.raises(NotFound):
            services.adjustments.get(tenant_b["ctx"], adj.id)

    def test_cannot_approve_foreign_adjustment(self, services, tenant_a, tenant_b, make_position, make_adjustment):
        make_position(tenant_a, "10", "2.00")
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")])

        with pytest.raises(NotFound):
            services.adjustments.approve(tenant_b["ctx"], adj.id)

        assert services.adjustments.get(tenant_a["ctx"], adj.id).status == "submitted"
        assert position_of(tenant_a).quantity == Decimal("10")

    def test_cannot_review_or_edit_foreign_adjustment(self, services, tenant_a, tenant_b, make_adjustment):
        draft = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")], submit=False)
        submitted = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")])

        with pytest.raises(NotFound):
            services.adjustments.submit(tenant_b["ctx"], draft.id)
        with pytest.raises(NotFound):
            services.adjustments.delete_draft(tenant_b["ctx"], draft.id)
        with pytest.raises(NotFound):
            services.adjustments.replace_draft_lines(tenant_b["ctx"], draft.id, ())
        with pytest.raises(NotFound):
            services.adjustments.reject(tenant_b["ctx"], submitted.id, "not mine")

    def test_list_is_scoped(self, services, tenant_a, tenant_b, make_adjustment):
        make_adjustment(tenant_a, [(tenant_a["product"], "1", "1")])
        make_adjustment(tenant_a, [(tenant_a["product"], "1", "1")])
        make_adjustment(tenant_b, [(tenant_b["product"], "1", "1")])

        assert len(services.adjustments.list(tenant_a["ctx"])) == 2
        assert len(services.adjustments.list(tenant_b["ctx"])) == 1


class TestForeignReferencesInDrafts:
    @pytest.mark.parametrize("field, source", [
        ("store_id", "store"),
        ("account_id", "inventory_account"),
        ("corresponding_account_id", "adjustment_account"),
        ("currency_id", "usd"),
    ])
    def test_foreign_header_reference_rejected(self, services, db_session, tenant_a, tenant_b, field, source):
        payload = adjustment_payload(tenant_a, [(tenant_a["product"], "1", "1")])
        payload[field] = tenant_b[source].id

        with pytest.raises(TenantAccessError):
            services.adjustments.create_draft(tenant_a["ctx"], parse_header(payload))
        assert db_session.query(StockAdjustment).count() == 0

    def test_foreign_product_rejected(self, services, db_session, tenant_a, tenant_b):
        payload = adjustment_payload(tenant_a, [(tenant_b["product"], "1", "1")])

        with pytest.raises(TenantAccessError):
            services.adjustments.create_draft(tenant_a["ctx"], parse_header(payload))
        assert db_session.query(StockAdjustment).count() == 0


class TestPostingIsolation:
    def test_positions_and_ledger_are_per_tenant(self, services, tenant_a, tenant_b, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")])
        services.adjustments.approve(tenant_a["ctx"], adj.id)

        assert position_of(tenant_a).quantity == Decimal("5")
        assert position_of(tenant_b) is None

        assert len(services.ledger.entries_for_reference(tenant_a["org"].id, adj.reference_number)) == 2
        assert services.ledger.entries_for_reference(tenant_b["org"].id, adj.reference_number) == []
        assert services.ledger.balance(tenant_b["org"].id)["debit_total"] == Decimal("0")
