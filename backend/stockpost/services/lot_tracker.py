# Overview: Service-layer operations for serial number and batch/expiry stock.

"""
Lot Tracker

Posts the serial numbers and batch/expiry data carried on adjustment lines
into per-lot quantities, inside the approval transaction.

- Each serial number on a line moves exactly one unit (+1 in, -1 out).
- A line with a batch number or an expiry date moves its full quantity
  against the (batch, expiry) lot.
- Stock-in creates the lot or increments it; stock-out decrements it.
  Quantities are never clamped, so a lot may go negative when it is issued
  before it was ever received.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

SERIAL_PREFIX = "S:"
BATCH_PREFIX = "B:"


def serial_lot_key(serial_number: str) -> str:
    return f"{SERIAL_PREFIX}{serial_number}"


def batch_lot_key(batch_number, expiry_date) -> str:
    expiry = expiry_date.isoformat() if expiry_date else ""
    return f"{BATCH_PREFIX}{batch_number or ''}|{expiry}"


class LotTracker:
    def __init__(self, repository):
        self.repository = repository

    def post_line(self, adjustment, line, *, unit_cost: Decimal) -> list:
        """Apply one approved line to its serial and batch lots; returns the lots touched."""
        sign = Decimal("1") if adjustment.is_stock_in else Decimal("-1")
        common = dict(unit_cost=unit_cost, reference_number=adjustment.reference_number)
        touched = []

        # Sorted so lots are always locked in the same order
        for serial in sorted(set(line.serial_numbers or [])):
            touched.append(self.repository.apply(
                adjustment.org_id, line.product_id, adjustment.store_id,
                serial_lot_key(serial), sign,
                serial_number=serial, **common,
            ))

        if line.batch_number or line.expiry_date:
            touched.append(self.repository.apply(
                adjustment.org_id, line.product_id, adjustment.store_id,
                batch_lot_key(line.batch_number, line.expiry_date),
                sign * Decimal(line.adjusted_quantity),
                batch_number=line.batch_number,
                expiry_date=line.expiry_date,
                **common,
            ))

        negative = [lot.lot_key for lot in touched if lot.current_quantity < 0]
        if negative:
            current_app.logger.warning(
                "Stock adjustment %s left lots below zero for product %s: %s",
                adjustment.reference_number, line.product_id, ", ".join(negative),
            )
        return touched

    def lots_for_product(self, org_id: int, product_id: int, *, store_id: int | None = None):
        return self.repository.for_product(org_id, product_id, store_id=store_id)
