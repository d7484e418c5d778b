"""
Stock Adjustment Service: draft editing, review lifecycle and approval posting

LIFECYCLE:
1. draft      - CreateDraft; header and lines may be edited, or the draft deleted
2. submitted  - Submit (requires at least one line)
3. approved   - Approve: inventory, costing, price history, stock movements and
                general ledger are posted in ONE transaction (terminal)
4. rejected   - Reject with a non-blank reason (terminal)

APPROVAL INVARIANTS:
- The submitted -> approved transition is claimed with a single conditional
  UPDATE before any posting, so the same adjustment can never be approved
  twice, even by concurrent callers.
- Lines are posted in line_number order, so lock acquisition order is
  deterministic between adjustments sharing products.
- Any failure rolls back the whole transaction; callers never observe a
  partially posted adjustment.
- Lock waits and deadlocks are retried with backoff, then surface as
  ConcurrencyTimeout.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from ..errors import EmptyAdjustment, InvalidState, MissingReason, NotFound
from ..models import StockAdjustment, StockAdjustmentLine
from ..time_utils import today, utcnow
from ..validation import HeaderInput, LineInput, money, quantity as quantize_quantity
from .concurrency import apply_lock_timeout, run_with_retry
from .costing import weighted_average
from .tenant_service import (
    TenantContext,
    require_account_in_org,
    require_currency_in_org,
    require_products_in_org,
    require_store_in_org,
)


# =============================================================================
# STATUS CONSTANTS
# =============================================================================

STATUS_DRAFT = "draft"
STATUS_SUBMITTED = "submitted"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

SEQUENCE_DOCUMENT_TYPE = "STOCK_ADJUSTMENT"


@dataclass(frozen=True)
class ApprovalSettings:
    reference_prefix: str = "SA"
    retry_attempts: int = 3
    retry_backoff: float = 0.1
    lock_timeout_ms: int = 5000

    @classmethod
    def from_config(cls, config) -> "ApprovalSettings":
        return cls(
            reference_prefix=config.get("REFERENCE_PREFIX", "SA"),
            retry_attempts=int(config.get("APPROVAL_RETRY_ATTEMPTS", 3)),
            retry_backoff=float(config.get("APPROVAL_RETRY_BACKOFF", 0.1)),
            lock_timeout_ms=int(config.get("LOCK_TIMEOUT_MS", 5000)),
        )


def format_reference(prefix: str, org_id: int, number: int) -> str:
    return f"{prefix}-{org_id:03d}-{number:06d}"


def _history_note(adjustment) -> str:
    note = f"Stock adjustment: {adjustment.adjustment_type}"
    if adjustment.reason_code:
        note = f"{note} - {adjustment.reason_code}"
    return note


class AdjustmentService:
    def __init__(
        self,
        *,
        session,
        adjustments,
        positions,
        sequences,
        refs,
        resolver,
        inventory,
        recorder,
        poster,
        journal,
        lots,
        settings: ApprovalSettings,
    ):
        self.session = session
        self.adjustments = adjustments
        self.positions = positions
        self.sequences = sequences
        self.refs = refs
        self.resolver = resolver
        self.inventory = inventory
        self.recorder = recorder
        self.poster = poster
        self.journal = journal
        self.lots = lots
        self.settings = settings

    def _unit_of_work(self, func):
        return run_with_retry(
            func,
            session=self.session,
            attempts=self.settings.retry_attempts,
            backoff_base=self.settings.retry_backoff,
        )

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, ctx: TenantContext, adjustment_id: int) -> StockAdjustment:
        adjustment = self.adjustments.get(ctx.org_id, adjustment_id)
        if adjustment is None:
            raise NotFound(f"Stock adjustment {adjustment_id} not found")
        return adjustment

    def list(self, ctx: TenantContext, *, status: str | None = None, store_id: int | None = None, limit: int = 200):
        return self.adjustments.list(ctx.org_id, status=status, store_id=store_id, limit=limit)

    def postings(self, ctx: TenantContext, adjustment_id: int) -> dict:
        """Everything approval wrote for one adjustment: movements, ledger rows, price history."""
        adjustment = self.get(ctx, adjustment_id)
        entries = self.poster.entries_for_adjustment(ctx.org_id, adjustment.id)
        return {
            "adjustment": adjustment,
            "movements": self.journal.for_adjustment(ctx.org_id, adjustment.id),
            "ledger_entries": entries,
            "balance": self.poster.balance(ctx.org_id, adjustment.reference_number) if entries else None,
            "price_history": self.recorder.history_for_reference(ctx.org_id, adjustment.reference_number),
        }

    # =========================================================================
    # DRAFTS
    # =========================================================================

    def create_draft(self, ctx: TenantContext, header: HeaderInput) -> StockAdjustment:
        """
        Create a draft with its lines (status: draft).

        Allocates the tenant-unique reference number, captures the exchange
        rate and snapshots each line's on-hand quantity.
        """
        def work():
            number = self.sequences.allocate(ctx.org_id, SEQUENCE_DOCUMENT_TYPE)
            adjustment = StockAdjustment(
                org_id=ctx.org_id,
                reference_number=format_reference(self.settings.reference_prefix, ctx.org_id, number),
                status=STATUS_DRAFT,
                created_by_user_id=ctx.user_id,
            )
            self._apply_header(ctx, adjustment, header)
            self.adjustments.add(adjustment)
            self._replace_lines(ctx, adjustment, header.lines)
            self.session.commit()
            return adjustment

        adjustment = self._unit_of_work(work)
        current_app.logger.info(
            "Stock adjustment %s created as draft (org %s)", adjustment.reference_number, ctx.org_id
        )
        return adjustment

    def update_draft(self, ctx: TenantContext, adjustment_id: int, header: HeaderInput) -> StockAdjustment:
        """Edit header fields and replace all lines. Draft only."""
        def work():
            adjustment = self._require_draft(ctx, adjustment_id)
            self._apply_header(ctx, adjustment, header)
            adjustment.updated_by_user_id = ctx.user_id
            adjustment.updated_at = utcnow()
            self._replace_lines(ctx, adjustment, header.lines)
            self.session.commit()
            return adjustment

        return self._unit_of_work(work)

    def replace_draft_lines(self, ctx: TenantContext, adjustment_id: int, lines: tuple[LineInput, ...]) -> StockAdjustment:
        def work():
            adjustment = self._require_draft(ctx, adjustment_id)
            adjustment.updated_by_user_id = ctx.user_id
            adjustment.updated_at = utcnow()
            self._replace_lines(ctx, adjustment, lines)
            self.session.commit()
            return adjustment

        return self._unit_of_work(work)

    def delete_draft(self, ctx: TenantContext, adjustment_id: int) -> None:
        def work():
            adjustment = self._require_draft(ctx, adjustment_id)
            reference = adjustment.reference_number
            self.adjustments.delete(adjustment)
            self.session.commit()
            return reference

        reference = self._unit_of_work(work)
        current_app.logger.info("Stock adjustment %s deleted (org %s)", reference, ctx.org_id)

    def _require_draft(self, ctx: TenantContext, adjustment_id: int) -> StockAdjustment:
        adjustment = self.get(ctx, adjustment_id)
        if adjustment.status != STATUS_DRAFT:
            raise InvalidState(
                f"Stock adjustment {adjustment.reference_number} is {adjustment.status}; only drafts can be changed"
            )
        return adjustment

    def _apply_header(self, ctx: TenantContext, adjustment: StockAdjustment, header: HeaderInput) -> None:
        require_store_in_org(self.refs, header.store_id, ctx.org_id)
        require_account_in_org(self.refs, header.account_id, ctx.org_id)
        require_account_in_org(self.refs, header.corresponding_account_id, ctx.org_id)
        require_currency_in_org(self.refs, header.currency_id, ctx.org_id)

        adjustment_date = header.adjustment_date or today()
        default_currency = self.resolver.default_currency(ctx.org_id)
        rate = self.resolver.resolve_rate(
            ctx.org_id,
            header.currency_id,
            to_currency_id=default_currency.id,
            supplied=header.exchange_rate,
            as_of=adjustment_date,
        )

        adjustment.store_id = header.store_id
        adjustment.adjustment_type = header.adjustment_type
        adjustment.adjustment_date = adjustment_date
        adjustment.reason_code = header.reason_code
        adjustment.account_id = header.account_id
        adjustment.corresponding_account_id = header.corresponding_account_id
        adjustment.currency_id = header.currency_id
        adjustment.exchange_rate = rate
        adjustment.document_type = header.document_type
        adjustment.document_number = header.document_number
        adjustment.notes = header.notes

    def _replace_lines(self, ctx: TenantContext, adjustment: StockAdjustment, lines: tuple[LineInput, ...]) -> None:
        """Delete-then-recreate the full line set and recompute header totals."""
        require_products_in_org(self.refs, [line.product_id for line in lines], ctx.org_id)

        sign = Decimal("1") if adjustment.is_stock_in else Decimal("-1")
        new_lines = []
        for number, item in enumerate(lines, start=1):
            current = self.positions.current_quantity(ctx.org_id, item.product_id, adjustment.store_id)
            new_lines.append(StockAdjustmentLine(
                org_id=ctx.org_id,
                line_number=number,
                product_id=item.product_id,
                current_quantity=quantize_quantity(current),
                adjusted_quantity=item.adjusted_quantity,
                new_quantity=quantize_quantity(current + sign * item.adjusted_quantity),
                unit_cost=item.unit_cost,
                line_value=money(item.adjusted_quantity * item.unit_cost),
                batch_number=item.batch_number,
                serial_numbers=list(item.serial_numbers),
                expiry_date=item.expiry_date,
                notes=item.notes,
            ))

        self.adjustments.replace_lines(adjustment, new_lines)

        total_value = sum((line.line_value for line in new_lines), Decimal("0"))
        adjustment.total_items = len(new_lines)
        adjustment.total_value = money(total_value)
        adjustment.equivalent_amount = money(total_value * Decimal(adjustment.exchange_rate))

    # =========================================================================
    # REVIEW LIFECYCLE
    # =========================================================================

    def submit(self, ctx: TenantContext, adjustment_id: int) -> StockAdjustment:
        def work():
            adjustment = self.get(ctx, adjustment_id)
            if adjustment.status != STATUS_DRAFT:
                raise InvalidState(f"Cannot submit a {adjustment.status} adjustment")
            if not adjustment.lines:
                raise EmptyAdjustment()

            now = utcnow()
            self._claim(ctx, adjustment, STATUS_DRAFT, {
                "status": STATUS_SUBMITTED,
                "submitted_by_user_id": ctx.user_id,
                "submitted_at": now,
                "updated_at": now,
            })
            self.session.commit()
            return adjustment

        adjustment = self._unit_of_work(work)
        current_app.logger.info("Stock adjustment %s submitted by user %s", adjustment.reference_number, ctx.user_id)
        return adjustment

    def reject(self, ctx: TenantContext, adjustment_id: int, reason: str | None) -> StockAdjustment:
        def work():
            adjustment = self.get(ctx, adjustment_id)
            if adjustment.status != STATUS_SUBMITTED:
                raise InvalidState(f"Cannot reject a {adjustment.status} adjustment")
            cleaned = str(reason or "").strip()
            if not cleaned:
                raise MissingReason()

            now = utcnow()
            self._claim(ctx, adjustment, STATUS_SUBMITTED, {
                "status": STATUS_REJECTED,
                "rejected_by_user_id": ctx.user_id,
                "rejected_at": now,
                "rejection_reason": cleaned,
                "updated_at": now,
            })
            self.session.commit()
            return adjustment

        adjustment = self._unit_of_work(work)
        current_app.logger.info("Stock adjustment %s rejected by user %s", adjustment.reference_number, ctx.user_id)
        return adjustment

    def _claim(self, ctx: TenantContext, adjustment: StockAdjustment, from_status: str, values: dict) -> None:
        if not self.adjustments.transition(ctx.org_id, adjustment.id, from_status=from_status, values=values):
            raise InvalidState(
                f"Stock adjustment {adjustment.reference_number} is no longer {from_status}"
            )
        self.adjustments.refresh(adjustment)

    # =========================================================================
    # APPROVAL (posting)
    # =========================================================================

    def approve(self, ctx: TenantContext, adjustment_id: int) -> StockAdjustment:
        """
        Approve a submitted adjustment and post it.

        Per line, in order: apply the quantity movement under the position
        lock, recompute the weighted average cost, append the stock movement,
        record price history, post the balanced ledger pair.

        Raises:
            InvalidState, NoActivePeriod, NoDefaultCurrency, InsufficientStock,
            RateNotFound, PriceHistoryWriteError, ConcurrencyTimeout
        """
        def work():
            apply_lock_timeout(self.session, self.settings.lock_timeout_ms)

            adjustment = self.get(ctx, adjustment_id)
            if adjustment.status != STATUS_SUBMITTED:
                raise InvalidState(f"Cannot approve a {adjustment.status} adjustment")

            period = self.resolver.active_period(ctx.org_id)
            currency = self.resolver.default_currency(ctx.org_id)

            now = utcnow()
            self._claim(ctx, adjustment, STATUS_SUBMITTED, {
                "status": STATUS_APPROVED,
                "approved_by_user_id": ctx.user_id,
                "approved_at": now,
                "updated_at": now,
            })

            products = require_products_in_org(
                self.refs, [line.product_id for line in adjustment.lines], ctx.org_id
            )
            for line in adjustment.lines:
                self._post_line(ctx, adjustment, line, products[line.product_id], period, currency)

            self.session.commit()
            return adjustment

        adjustment = self._unit_of_work(work)
        current_app.logger.info(
            "Stock adjustment %s approved by user %s (%d lines)",
            adjustment.reference_number, ctx.user_id, len(adjustment.lines),
        )
        return adjustment

    def _post_line(self, ctx, adjustment, line, product, period, currency) -> None:
        adjusted = Decimal(line.adjusted_quantity)
        unit_cost = Decimal(line.unit_cost)
        delta = adjusted if adjustment.is_stock_in else -adjusted

        movement = self.inventory.apply_movement(ctx.org_id, line.product_id, adjustment.store_id, delta)

        new_average = weighted_average(movement.old_quantity, movement.old_average_cost, delta, unit_cost)
        self.inventory.set_average_cost(movement.position, new_average)

        self.journal.append(
            adjustment, line, movement,
            average_cost_after=new_average,
            period=period,
            currency=currency,
            user_id=ctx.user_id,
        )
        self.lots.post_line(adjustment, line, unit_cost=unit_cost)

        self.recorder.record(
            ctx.org_id,
            product=product,
            store_id=adjustment.store_id,
            old_cost=movement.old_average_cost,
            new_cost=new_average,
            old_price=product.selling_price,
            new_price=product.selling_price,
            quantity=adjusted,
            currency_id=adjustment.currency_id,
            exchange_rate=adjustment.exchange_rate,
            reference_number=adjustment.reference_number,
            reason_code=adjustment.reason_code,
            notes=_history_note(adjustment),
            transaction_date=adjustment.adjustment_date,
            user_id=ctx.user_id,
        )

        self.poster.post(adjustment, line, period, currency, user_id=ctx.user_id)
