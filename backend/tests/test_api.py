# Overview: Pytest coverage for the HTTP API; status codes and JSON contracts.

from decimal import Decimal

import pytest

from conftest import adjustment_payload, tenant_headers


def create(client, tenant, lines, **kwargs):
    return client.post(
        "/api/stock-adjustments",
        json=adjustment_payload(tenant, lines, **kwargs),
        headers=tenant_headers(tenant),
    )


def drive_to_approved(client, tenant, lines, **kwargs):
    headers = tenant_headers(tenant)
    adjustment_id = create(client, tenant, lines, **kwargs).get_json()["adjustment"]["id"]
    client.patch(f"/api/stock-adjustments/{adjustment_id}/submit", headers=headers)
    return client.patch(f"/api/stock-adjustments/{adjustment_id}/approve", headers=headers)


class TestTenantHeaders:
    def test_missing_headers_is_401(self, client, db_session):
        response = client.get("/api/stock-adjustments")
        assert response.status_code == 401
        assert response.get_json()["error"] == "UNAUTHENTICATED"

    def test_non_numeric_org_is_401(self, client, db_session):
        response = client.get("/api/stock-adjustments", headers={"X-Org-Id": "acme", "X-User-Id": "1"})
        assert response.status_code == 401


class TestAdjustmentRoutes:
    def test_create_returns_draft_with_lines(self, client, tenant_a):
        response = create(client, tenant_a, [(tenant_a["product"], "20", "12.00")])
        assert response.status_code == 201

        adjustment = response.get_json()["adjustment"]
        assert adjustment["status"] == "draft"
        assert adjustment["reference_number"].startswith("SA-")
        assert Decimal(adjustment["total_value"]) == Decimal("240")
        assert len(adjustment["lines"]) == 1
        assert adjustment["lines"][0]["serial_numbers"] == []

    def test_float_amounts_rejected(self, client, tenant_a):
        payload = adjustment_payload(tenant_a, [])
        payload["lines"] = [{"product_id": tenant_a["product"].id, "adjusted_quantity": 2.5, "unit_cost": "1"}]
        response = client.post("/api/stock-adjustments", json=payload, headers=tenant_headers(tenant_a))

        assert response.status_code == 400
        assert response.get_json()["error"] == "VALIDATION_ERROR"

    def test_full_lifecycle(self, client, tenant_a):
        headers = tenant_headers(tenant_a)
        adjustment_id = create(client, tenant_a, [(tenant_a["product"], "20", "12.00")]).get_json()["adjustment"]["id"]

        response = client.patch(f"/api/stock-adjustments/{adjustment_id}/submit", headers=headers)
        assert response.status_code == 200
        assert response.get_json()["adjustment"]["status"] == "submitted"

        response = client.patch(f"/api/stock-adjustments/{adjustment_id}/approve", headers=headers)
        assert response.status_code == 200
        body = response.get_json()["adjustment"]
        assert body["status"] == "approved"
        assert body["approved_by_user_id"] == 1
        assert body["approved_at"].endswith("Z")

        response = client.patch(f"/api/stock-adjustments/{adjustment_id}/approve", headers=headers)
        assert response.status_code == 409
        assert response.get_json()["error"] == "INVALID_STATE"
        assert response.get_json()["retryable"] is False

    def test_reject_requires_reason(self, client, tenant_a):
        headers = tenant_headers(tenant_a)
        adjustment_id = create(client, tenant_a, [(tenant_a["product"], "1", "1")]).get_json()["adjustment"]["id"]
        client.patch(f"/api/stock-adjustments/{adjustment_id}/submit", headers=headers)

        response = client.patch(f"/api/stock-adjustments/{adjustment_id}/reject", json={"reason": "  "}, headers=headers)
        assert response.status_code == 400
        assert response.get_json()["error"] == "MISSING_REASON"

        response = client.patch(f"/api/stock-adjustments/{adjustment_id}/reject", json={"reason": "Wrong store"}, headers=headers)
        assert response.status_code == 200
        assert response.get_json()["adjustment"]["rejection_reason"] == "Wrong store"

    def test_submit_empty_draft(self, client, tenant_a):
        adjustment_id = create(client, tenant_a, []).get_json()["adjustment"]["id"]
        response = client.patch(f"/api/stock-adjustments/{adjustment_id}/submit", headers=tenant_headers(tenant_a))
        assert response.status_code == 400
        assert response.get_json()["error"] == "EMPTY_ADJUSTMENT"

    def test_put_lines_only_replaces_lines(self, client, tenant_a):
        headers = tenant_headers(tenant_a)
        adjustment_id = create(client, tenant_a, [(tenant_a["product"], "1", "1")]).get_json()["adjustment"]["id"]

        body = {"lines": [{"product_id": tenant_a["product_2"].id, "adjusted_quantity": "4", "unit_cost": "2.50"}]}
        response = client.put(f"/api/stock-adjustments/{adjustment_id}", json=body, headers=headers)

        assert response.status_code == 200
        adjustment = response.get_json()["adjustment"]
        assert [line["product_id"] for line in adjustment["lines"]] == [tenant_a["product_2"].id]
        assert Decimal(adjustment["total_value"]) == Decimal("10")
        assert adjustment["adjustment_type"] == "add"

    def test_delete_draft(self, client, tenant_a):
        headers = tenant_headers(tenant_a)
        adjustment_id = create(client, tenant_a, [(tenant_a["product"], "1", "1")]).get_json()["adjustment"]["id"]

        response = client.delete(f"/api/stock-adjustments/{adjustment_id}", headers=headers)
        assert response.status_code == 200
        assert response.get_json() == {"deleted": True}
        assert client.get(f"/api/stock-adjustments/{adjustment_id}", headers=headers).status_code == 404

    def test_foreign_tenant_gets_404(self, client, tenant_a, tenant_b):
        adjustment_id = create(client, tenant_a, [(tenant_a["product"], "1", "1")]).get_json()["adjustment"]["id"]

        for method, suffix in (("get", ""), ("patch", "/submit"), ("delete", "")):
            response = getattr(client, method)(f"/api/stock-adjustments/{adjustment_id}{suffix}", headers=tenant_headers(tenant_b))
            assert response.status_code == 404
            assert response.get_json()["error"] == "NOT_FOUND"

    def test_insufficient_stock_is_409(self, client, tenant_a):
        response = drive_to_approved(client, tenant_a, [(tenant_a["product"], "1", "1")], adjustment_type="deduct")
        assert response.status_code == 409
        assert response.get_json()["error"] == "INSUFFICIENT_STOCK"

    def test_missing_period_is_422(self, client, seed_tenant):
        tenant = seed_tenant("NOPERIOD", with_period=False)
        response = drive_to_approved(client, tenant, [(tenant["product"], "1", "1")])
        assert response.status_code == 422
        assert response.get_json()["error"] == "NO_ACTIVE_PERIOD"

    def test_postings_summary(self, client, tenant_a):
        headers = tenant_headers(tenant_a)
        body = drive_to_approved(client, tenant_a, [(tenant_a["product"], "20", "12.00")]).get_json()
        adjustment_id = body["adjustment"]["id"]

        response = client.get(f"/api/stock-adjustments/{adjustment_id}/postings", headers=headers)
        assert response.status_code == 200
        data = response.get_json()

        assert data["adjustment"]["reference_number"] == body["adjustment"]["reference_number"]
        assert [Decimal(m["quantity_in"]) for m in data["movements"]] == [Decimal("20")]
        assert [e["side"] for e in data["ledger_entries"]] == ["debit", "credit"]
        assert data["balance"]["balanced"] is True
        assert Decimal(data["balance"]["debit_total"]) == Decimal("240")
        assert len(data["price_history"]) == 1
        assert data["price_history"][0]["notes"] == "Stock adjustment: add - RECOUNT"

    def test_postings_empty_before_approval(self, client, tenant_a, tenant_b):
        adjustment_id = create(client, tenant_a, [(tenant_a["product"], "1", "1")]).get_json()["adjustment"]["id"]

        data = client.get(f"/api/stock-adjustments/{adjustment_id}/postings", headers=tenant_headers(tenant_a)).get_json()
        assert data["movements"] == [] and data["ledger_entries"] == [] and data["price_history"] == []
        assert data["balance"] is None

        response = client.get(f"/api/stock-adjustments/{adjustment_id}/postings", headers=tenant_headers(tenant_b))
        assert response.status_code == 404

    def test_list_filters(self, client, tenant_a):
        create(client, tenant_a, [(tenant_a["product"], "1", "1")])
        drive_to_approved(client, tenant_a, [(tenant_a["product"], "1", "1")])

        response = client.get("/api/stock-adjustments?status=approved", headers=tenant_headers(tenant_a))
        assert response.status_code == 200
        assert [a["status"] for a in response.get_json()["adjustments"]] == ["approved"]


class TestLedgerRoutes:
    def test_entries_and_balance_for_reference(self, client, tenant_a):
        body = drive_to_approved(client, tenant_a, [(tenant_a["product"], "20", "12.00")]).get_json()
        reference = body["adjustment"]["reference_number"]

        response = client.get(f"/api/ledger/{reference}", headers=tenant_headers(tenant_a))
        assert response.status_code == 200
        data = response.get_json()
        assert [e["side"] for e in data["entries"]] == ["debit", "credit"]
        assert Decimal(data["balance"]["debit_total"]) == Decimal("240")
        assert data["balance"]["balanced"] is True

    def test_unknown_reference_is_404(self, client, tenant_a):
        response = client.get("/api/ledger/SA-999-000001", headers=tenant_headers(tenant_a))
        assert response.status_code == 404

    def test_tenant_balance(self, client, tenant_a):
        drive_to_approved(client, tenant_a, [(tenant_a["product"], "3", "1.10")])
        response = client.get("/api/ledger/balance", headers=tenant_headers(tenant_a))

        data = response.get_json()
        assert data["balance"]["balanced"] is True
        assert Decimal(data["balance"]["difference"]) == 0
        assert data["unbalanced_references"] == []


class TestCostingRoutes:
    @pytest.fixture
    def costed_product(self, client, tenant_a):
        drive_to_approved(client, tenant_a, [(tenant_a["product"], "100", "10.00")])
        drive_to_approved(client, tenant_a, [(tenant_a["product"], "100", "12.00")])
        return tenant_a["product"]

    def test_avg_cost_with_trend(self, client, tenant_a, costed_product):
        response = client.get(
            f"/api/products/{costed_product.id}/cost?method=avg&quantity=10",
            headers=tenant_headers(tenant_a),
        )
        assert response.status_code == 200
        cost = response.get_json()["cost"]
        assert cost["method"] == "AVG"
        assert cost["records_considered"] == 2
        assert cost["trend"]["direction"] == "up"

    def test_fifo_and_lifo(self, client, tenant_a, costed_product):
        headers = tenant_headers(tenant_a)
        fifo = client.get(f"/api/products/{costed_product.id}/cost?method=FIFO", headers=headers).get_json()["cost"]
        lifo = client.get(f"/api/products/{costed_product.id}/cost?method=LIFO", headers=headers).get_json()["cost"]
        assert Decimal(fifo["unit_cost"]) == Decimal("10")
        assert Decimal(lifo["unit_cost"]) == Decimal("11")

    def test_unknown_method_is_400(self, client, tenant_a, costed_product):
        response = client.get(f"/api/products/{costed_product.id}/cost?method=HIFO", headers=tenant_headers(tenant_a))
        assert response.status_code == 400

    def test_compare(self, client, tenant_a, costed_product):
        response = client.get(f"/api/products/{costed_product.id}/cost/compare", headers=tenant_headers(tenant_a))
        assert response.status_code == 200
        comparison = response.get_json()["comparison"]
        assert set(comparison["methods"]) == {"FIFO", "LIFO", "AVG"}
        assert Decimal(comparison["range"]) == Decimal("1")

    def test_foreign_product_is_404(self, client, tenant_a, tenant_b):
        response = client.get(f"/api/products/{tenant_b['product'].id}/cost", headers=tenant_headers(tenant_a))
        assert response.status_code == 404

    def test_price_history_by_product_and_module(self, client, tenant_a, costed_product):
        headers = tenant_headers(tenant_a)
        by_product = client.get(f"/api/price-history?product_id={costed_product.id}", headers=headers)
        assert by_product.status_code == 200
        assert len(by_product.get_json()["price_history"]) == 2

        by_module = client.get("/api/price-history?module=Stock Adjustment", headers=headers)
        assert len(by_module.get_json()["price_history"]) == 2

    def test_price_history_requires_filter(self, client, tenant_a):
        response = client.get("/api/price-history", headers=tenant_headers(tenant_a))
        assert response.status_code == 400


class TestHealth:
    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["timestamp"].endswith("Z")
        assert "+00:00" not in data["timestamp"]
        assert data["checks"]["posting_config"]["details"]["price_history_failure_policy"] == "fail_open"
