# Overview: Pytest coverage for the stock adjustment draft and review lifecycle.

"""
Lifecycle tests: draft -> submitted -> approved | rejected

Covers reference numbering, draft snapshots/totals, line replacement,
header edits, deletion, and every illegal transition.
"""

from decimal import Decimal

import pytest

from conftest import adjustment_payload
from stockpost.errors import EmptyAdjustment, InvalidState, MissingReason, RateNotFound, ValidationError
from stockpost.models import StockAdjustment, StockAdjustmentLine
from stockpost.validation import parse_header, parse_lines


class TestDrafts:
    def test_create_draft_allocates_reference_and_totals(self, services, tenant_a, make_adjustment, make_position):
        make_position(tenant_a, "100", "10.00")
        adj = make_adjustment(
            tenant_a,
            [(tenant_a["product"], "20", "12.00"), (tenant_a["product_2"], "3", "40.50")],
            submit=False,
        )

        assert adj.status == "draft"
        assert adj.reference_number == f"SA-{tenant_a['org'].id:03d}-000001"
        assert adj.total_items == 2
        assert adj.total_value == Decimal("361.50")
        assert adj.equivalent_amount == Decimal("361.50")
        assert adj.exchange_rate == Decimal("1")
        assert adj.created_by_user_id == 1

        first, second = adj.lines
        assert first.line_number == 1
        assert first.current_quantity == Decimal("100")
        assert first.new_quantity == Decimal("120")
        assert first.line_value == Decimal("240.00")
        # No position yet for the second product
        assert second.current_quantity == Decimal("0")
        assert second.new_quantity == Decimal("3")

    def test_reference_numbers_are_sequential_per_tenant(self, tenant_a, tenant_b, make_adjustment):
        a1 = make_adjustment(tenant_a, [(tenant_a["product"], "1", "1")], submit=False)
        a2 = make_adjustment(tenant_a, [(tenant_a["product"], "1", "1")], submit=False)
        b1 = make_adjustment(tenant_b, [(tenant_b["product"], "1", "1")], submit=False)

        assert a1.reference_number.endswith("-000001")
        assert a2.reference_number.endswith("-000002")
        assert b1.reference_number == f"SA-{tenant_b['org'].id:03d}-000001"

    def test_deduct_snapshot_subtracts(self, tenant_a, make_adjustment, make_position):
        make_position(tenant_a, "120", "10.333333")
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "30", "11.00")], adjustment_type="deduct", submit=False)
        assert adj.lines[0].new_quantity == Decimal("90")

    def test_foreign_currency_uses_latest_rate(self, tenant_a, eur_rate, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "10", "5.00")], currency=tenant_a["eur"], submit=False)
        assert adj.exchange_rate == Decimal("1.100000")
        assert adj.total_value == Decimal("50.00")
        assert adj.equivalent_amount == Decimal("55.00")

    def test_supplied_rate_wins_over_table(self, tenant_a, eur_rate, make_adjustment):
        adj = make_adjustment(
            tenant_a, [(tenant_a["product"], "10", "5.00")],
            currency=tenant_a["eur"], exchange_rate="1.2", submit=False,
        )
        assert adj.exchange_rate == Decimal("1.200000")
        assert adj.equivalent_amount == Decimal("60.00")

    def test_default_currency_forces_rate_one(self, tenant_a, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "1", "5")], exchange_rate="3.5", submit=False)
        assert adj.exchange_rate == Decimal("1")

    def test_foreign_currency_without_rate_fails(self, services, tenant_a):
        header = parse_header(adjustment_payload(tenant_a, [(tenant_a["product"], "1", "5")], currency=tenant_a["eur"]))
        with pytest.raises(RateNotFound):
            services.adjustments.create_draft(tenant_a["ctx"], header)
        assert services.adjustments.list(tenant_a["ctx"]) == []

    def test_replace_lines_deletes_and_recreates(self, services, db_session, tenant_a, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00"), (tenant_a["product_2"], "1", "1.00")], submit=False)
        old_ids = {line.id for line in adj.lines}

        lines = parse_lines([{"product_id": tenant_a["product_2"].id, "adjusted_quantity": "7", "unit_cost": "3.00"}])
        adj = services.adjustments.replace_draft_lines(tenant_a["ctx"], adj.id, lines)

        assert len(adj.lines) == 1
        assert adj.lines[0].line_number == 1
        assert adj.lines[0].product_id == tenant_a["product_2"].id
        assert adj.total_value == Decimal("21.00")
        assert adj.total_items == 1
        remaining = db_session.query(StockAdjustmentLine).filter(StockAdjustmentLine.id.in_(old_ids)).count()
        assert remaining == 0

    def test_update_draft_changes_direction(self, services, tenant_a, make_adjustment, make_position):
        make_position(tenant_a, "50", "4.00")
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "4.00")], submit=False)
        assert adj.lines[0].new_quantity == Decimal("55")

        header = parse_header(adjustment_payload(tenant_a, [(tenant_a["product"], "5", "4.00")], adjustment_type="deduct"))
        adj = services.adjustments.update_draft(tenant_a["ctx"], adj.id, header)

        assert adj.adjustment_type == "deduct"
        assert adj.lines[0].new_quantity == Decimal("45")
        assert adj.updated_by_user_id == 1

    def test_delete_draft(self, services, db_session, tenant_a, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")], submit=False)
        services.adjustments.delete_draft(tenant_a["ctx"], adj.id)
        assert db_session.query(StockAdjustment).count() == 0
        assert db_session.query(StockAdjustmentLine).count() == 0

    def test_cannot_edit_or_delete_submitted(self, services, tenant_a, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")])
        with pytest.raises(InvalidState):
            services.adjustments.replace_draft_lines(tenant_a["ctx"], adj.id, ())
        with pytest.raises(InvalidState):
            services.adjustments.delete_draft(tenant_a["ctx"], adj.id)


class TestValidation:
    def test_float_quantities_rejected(self, tenant_a):
        payload = adjustment_payload(tenant_a, [])
        payload["lines"] = [{"product_id": tenant_a["product"].id, "adjusted_quantity": 1.5, "unit_cost": "1"}]
        with pytest.raises(ValidationError):
            parse_header(payload)

    def test_same_accounts_rejected(self, tenant_a):
        payload = adjustment_payload(tenant_a, [], corresponding_account_id=tenant_a["inventory_account"].id)
        with pytest.raises(ValidationError):
            parse_header(payload)

    def test_non_positive_quantity_rejected(self, tenant_a):
        with pytest.raises(ValidationError):
            parse_header(adjustment_payload(tenant_a, [(tenant_a["product"], "0", "1")]))

    def test_unknown_direction_rejected(self, tenant_a):
        with pytest.raises(ValidationError):
            parse_header(adjustment_payload(tenant_a, [], adjustment_type="transfer"))


class TestReviewTransitions:
    def test_submit_stamps_submitter(self, tenant_a, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")])
        assert adj.status == "submitted"
        assert adj.submitted_by_user_id == 1
        assert adj.submitted_at is not None

    def test_submit_without_lines(self, services, tenant_a, make_adjustment):
        adj = make_adjustment(tenant_a, [], submit=False)
        with pytest.raises(EmptyAdjustment):
            services.adjustments.submit(tenant_a["ctx"], adj.id)
        assert services.adjustments.get(tenant_a["ctx"], adj.id).status == "draft"

    def test_submit_twice(self, services, tenant_a, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")])
        with pytest.raises(InvalidState):
            services.adjustments.submit(tenant_a["ctx"], adj.id)

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_reject_requires_reason(self, services, tenant_a, make_adjustment, reason):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")])
        with pytest.raises(MissingReason):
            services.adjustments.reject(tenant_a["ctx"], adj.id, reason)
        assert services.adjustments.get(tenant_a["ctx"], adj.id).status == "submitted"

    def test_reject_stores_trimmed_reason(self, services, tenant_a, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")])
        adj = services.adjustments.reject(tenant_a["ctx"], adj.id, "  counted twice  ")
        assert adj.status == "rejected"
        assert adj.rejection_reason == "counted twice"
        assert adj.rejected_by_user_id == 1

    def test_reject_draft_is_invalid(self, services, tenant_a, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")], submit=False)
        with pytest.raises(InvalidState):
            services.adjustments.reject(tenant_a["ctx"], adj.id, "nope")

    def test_rejected_is_terminal(self, services, tenant_a, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")])
        services.adjustments.reject(tenant_a["ctx"], adj.id, "wrong store")
        with pytest.raises(InvalidState):
            services.adjustments.approve(tenant_a["ctx"], adj.id)
        with pytest.raises(InvalidState):
            services.adjustments.submit(tenant_a["ctx"], adj.id)

    def test_approve_draft_is_invalid(self, services, tenant_a, make_adjustment):
        adj = make_adjustment(tenant_a, [(tenant_a["product"], "5", "2.00")], submit=False)
        with pytest.raises(InvalidState):
            services.adjustments.approve(tenant_a["ctx"], adj.id)

    def test_list_filters_by_status(self, services, tenant_a, make_adjustment):
        make_adjustment(tenant_a, [(tenant_a["product"], "1", "1")], submit=False)
        make_adjustment(tenant_a, [(tenant_a["product"], "1", "1")])
        drafts = services.adjustments.list(tenant_a["ctx"], status="draft")
        submitted = services.adjustments.list(tenant_a["ctx"], status="submitted")
        assert len(drafts) == 1
        assert len(submitted) == 1
