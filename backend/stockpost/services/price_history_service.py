# Overview: Service-layer operations for price history; append-only cost/price audit trail.

"""
Price History Recorder

- Appends one immutable row per material cost/price change.
- A change is material when |old - new| exceeds the epsilon for either the
  average cost or the selling price.
- Writes happen inside a SAVEPOINT of the caller's transaction, so a failed
  write can be discarded without disturbing inventory or ledger effects.
- What happens on failure is decided by PriceHistoryPolicy:
    fail_open   -> log a warning, approval continues without the record
    fail_closed -> raise PriceHistoryWriteError, approval rolls back
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PriceHistoryWriteError, RateNotFound, ValidationError
from ..models import PriceHistory
from ..time_utils import utcnow
from ..validation import cost as quantize_cost

FAIL_OPEN = "fail_open"
FAIL_CLOSED = "fail_closed"

PRODUCT_ENTITY = "product"
STOCK_ADJUSTMENT_MODULE = "Stock Adjustment"


@dataclass(frozen=True)
class PriceHistoryPolicy:
    mode: str = FAIL_OPEN
    epsilon: Decimal = Decimal("0.0001")

    def __post_init__(self):
        if self.mode not in (FAIL_OPEN, FAIL_CLOSED):
            raise ValidationError(f"Unknown price history failure policy: {self.mode}")

    @classmethod
    def from_config(cls, config) -> "PriceHistoryPolicy":
        return cls(
            mode=str(config.get("PRICE_HISTORY_FAILURE_POLICY", FAIL_OPEN)).lower(),
            epsilon=Decimal(str(config.get("PRICE_HISTORY_EPSILON", "0.0001"))),
        )

    @property
    def fail_open(self) -> bool:
        return self.mode == FAIL_OPEN

    def is_material(self, old_cost, new_cost, old_price, new_price) -> bool:
        return (
            _delta(old_cost, new_cost) > self.epsilon
            or _delta(old_price, new_price) > self.epsilon
        )


def _delta(old, new) -> Decimal:
    return abs(Decimal(new or 0) - Decimal(old or 0))


class PriceHistoryRecorder:
    def __init__(self, repository, resolver, policy: PriceHistoryPolicy, session):
        self.repository = repository
        self.resolver = resolver
        self.policy = policy
        self.session = session

    def record(
        self,
        org_id: int,
        *,
        product,
        store_id: int | None,
        old_cost: Decimal,
        new_cost: Decimal,
        old_price: Decimal | None,
        new_price: Decimal | None,
        quantity: Decimal | None,
        currency_id: int,
        exchange_rate: Decimal | None,
        reference_number: str | None,
        reason_code: str | None,
        notes: str | None = None,
        module_name: str = STOCK_ADJUSTMENT_MODULE,
        transaction_date: date | None = None,
        user_id: int | None = None,
        change_date: datetime | None = None,
    ) -> PriceHistory | None:
        """
        Append a price history row if the change is material.

        Returns the new row, or None when the change was below epsilon or the
        write failed under fail_open.
        """
        if not self.policy.is_material(old_cost, new_cost, old_price, new_price):
            return None

        try:
            default_currency = self.resolver.default_currency(org_id)
            rate = self.resolver.resolve_rate(
                org_id,
                currency_id,
                to_currency_id=default_currency.id,
                supplied=exchange_rate,
                as_of=transaction_date,
                prefer_supplied=False,
            )
            row = PriceHistory(
                org_id=org_id,
                entity_type=PRODUCT_ENTITY,
                entity_id=product.id,
                entity_code=product.code,
                entity_name=product.name,
                store_id=store_id,
                module_name=module_name,
                costing_method="AVG",
                reason_code=reason_code,
                old_average_cost=quantize_cost(old_cost),
                new_average_cost=quantize_cost(new_cost),
                old_selling_price=old_price,
                new_selling_price=new_price,
                quantity=quantity,
                unit=product.unit,
                currency_id=currency_id,
                system_currency_id=default_currency.id,
                exchange_rate=rate,
                equivalent_amount=quantize_cost(Decimal(new_cost) * rate),
                reference_number=reference_number,
                notes=notes,
                change_date=change_date or utcnow(),
                transaction_date=transaction_date,
                created_by_user_id=user_id,
            )
            with self.session.begin_nested():
                self.repository.add(row)
            return row
        except (SQLAlchemyError, RateNotFound) as exc:
            if not self.policy.fail_open:
                raise PriceHistoryWriteError(
                    f"Price history for product {product.id} could not be written: {exc}"
                ) from exc
            current_app.logger.warning(
                "Price history write skipped for product %s (ref %s): %s",
                product.id, reference_number, exc,
            )
            return None

    # =========================================================================
    # Queries
    # =========================================================================

    def history_for_product(self, org_id: int, product_id: int, *, store_id=None, start=None, as_of=None):
        return self.repository.for_entity(
            org_id, PRODUCT_ENTITY, product_id, store_id=store_id, start=start, as_of=as_of
        )

    def history_for_module(self, org_id: int, module_name: str, *, limit: int = 200):
        return self.repository.for_module(org_id, module_name, limit=limit)

    def history_for_reference(self, org_id: int, reference_number: str):
        return self.repository.for_reference(org_id, reference_number)
