# Overview: Service-layer operations for the stock movement journal.

from __future__ import annotations

from decimal import Decimal

from ..models import StockMovement
from ..validation import money

"""
Stock Movement Journal Invariants

- Append-only: one row per posted adjustment line, never updated or deleted.
- Written inside the same DB transaction as the position change it records.
- quantity_in / quantity_out are both non-negative; exactly one is non-zero.
"""


class MovementJournal:
    def __init__(self, repository):
        self.repository = repository

    def append(self, adjustment, line, movement, *, average_cost_after, period, currency, user_id=None) -> StockMovement:
        delta = movement.new_quantity - movement.old_quantity
        rate = Decimal(adjustment.exchange_rate or 1)
        row = StockMovement(
            org_id=adjustment.org_id,
            store_id=adjustment.store_id,
            product_id=line.product_id,
            financial_period_id=period.id,
            source_type="STOCK_ADJUSTMENT",
            source_id=adjustment.id,
            source_line_id=line.id,
            reference_number=adjustment.reference_number,
            quantity_in=delta if delta > 0 else Decimal("0"),
            quantity_out=-delta if delta < 0 else Decimal("0"),
            quantity_after=movement.new_quantity,
            unit_cost=line.unit_cost,
            average_cost_after=average_cost_after,
            currency_id=adjustment.currency_id,
            system_currency_id=currency.id,
            exchange_rate=rate,
            equivalent_amount=money(Decimal(line.adjusted_quantity) * Decimal(line.unit_cost) * rate),
            batch_number=line.batch_number,
            serial_numbers=list(line.serial_numbers or []),
            expiry_date=line.expiry_date,
            transaction_date=adjustment.adjustment_date,
            created_by_user_id=user_id,
        )
        return self.repository.append(row)

    def for_adjustment(self, org_id: int, adjustment_id: int) -> list[StockMovement]:
        return self.repository.for_source(org_id, adjustment_id)
