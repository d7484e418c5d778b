# Overview: Service-layer operations for inventory positions; locked, atomic quantity movements.

"""
Inventory Quantity Ledger

INVARIANTS:
- A position is mutated only while its row is locked for the enclosing transaction.
- Quantities change through one conditional UPDATE (quantity = quantity + delta),
  never by writing back a value read earlier.
- Stock-out below zero raises InsufficientStock unless negative stock is
  allowed. Quantities are never clamped.
- Positions are created lazily on first movement and never deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import InsufficientStock
from ..validation import cost as quantize_cost


@dataclass(frozen=True)
class Movement:
    """Result of apply_movement: the position plus its before/after figures."""
    position: object
    old_quantity: Decimal
    new_quantity: Decimal
    old_average_cost: Decimal


class InventoryLedger:
    def __init__(self, positions, *, allow_negative: bool = False):
        self.positions = positions
        self.allow_negative = allow_negative

    def apply_movement(self, org_id: int, product_id: int, store_id: int, delta: Decimal) -> Movement:
        """
        Apply a signed quantity delta to the (product, store) position.

        Returns the pre-movement quantity and average cost so the caller can
        compute the new average without another query.
        """
        position = self.positions.get(org_id, product_id, store_id, lock=True)
        if position is None:
            if delta < 0 and not self.allow_negative:
                raise InsufficientStock(
                    f"No stock on hand for product {product_id} in store {store_id}"
                )
            position = self.positions.create_empty(org_id, product_id, store_id)

        old_average = Decimal(position.average_cost or 0)

        if not self.positions.increment(position, delta, allow_negative=self.allow_negative):
            raise InsufficientStock(
                f"Insufficient stock for product {product_id} in store {store_id}: "
                f"requested {-delta}, on hand {Decimal(position.quantity)}"
            )

        new_quantity = Decimal(position.quantity)
        return Movement(
            position=position,
            old_quantity=new_quantity - delta,
            new_quantity=new_quantity,
            old_average_cost=old_average,
        )

    def set_average_cost(self, position, average_cost: Decimal) -> None:
        self.positions.set_average_cost(position, quantize_cost(average_cost))
