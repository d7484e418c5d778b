# Overview: Tenant-scoped repositories; every query takes an explicit org_id.

"""
One repository per aggregate, bound to a SQLAlchemy session (normally the
Flask-SQLAlchemy scoped session). Repositories never commit: the service that
owns the unit of work decides when to commit or roll back.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import case, func, type_coerce, update
from sqlalchemy.exc import IntegrityError

from .models import (
    Account,
    Currency,
    DocumentSequence,
    ExchangeRate,
    FinancialPeriod,
    InventoryPosition,
    LedgerEntry,
    PriceHistory,
    Product,
    StockAdjustment,
    StockLot,
    StockMovement,
    Store,
)
from .services.concurrency import lock_for_update
from .time_utils import utcnow


class AdjustmentRepository:
    def __init__(self, session):
        self.session = session

    def get(self, org_id: int, adjustment_id: int) -> StockAdjustment | None:
        return (
            self.session.query(StockAdjustment)
            .filter_by(org_id=org_id, id=adjustment_id)
            .first()
        )

    def list(
        self,
        org_id: int,
        *,
        status: str | None = None,
        store_id: int | None = None,
        limit: int = 200,
    ) -> list[StockAdjustment]:
        q = self.session.query(StockAdjustment).filter_by(org_id=org_id)
        if status:
            q = q.filter_by(status=status)
        if store_id is not None:
            q = q.filter_by(store_id=store_id)
        return q.order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc()).limit(limit).all()

    def add(self, adjustment: StockAdjustment) -> StockAdjustment:
        self.session.add(adjustment)
        self.session.flush()
        return adjustment

    def delete(self, adjustment: StockAdjustment) -> None:
        self.session.delete(adjustment)
        self.session.flush()

    def replace_lines(self, adjustment: StockAdjustment, lines: list) -> None:
        """Delete every existing line, then insert the new set (same transaction)."""
        adjustment.lines.clear()
        self.session.flush()
        adjustment.lines.extend(lines)
        self.session.flush()

    def transition(self, org_id: int, adjustment_id: int, *, from_status: str, values: dict) -> bool:
        """
        Atomically move an adjustment out of from_status.

        Single conditional UPDATE, so two concurrent callers cannot both win:
        the loser sees rowcount 0.
        """
        stmt = (
            update(StockAdjustment)
            .where(
                StockAdjustment.org_id == org_id,
                StockAdjustment.id == adjustment_id,
                StockAdjustment.status == from_status,
            )
            .values(version_id=StockAdjustment.version_id + 1, **values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def refresh(self, adjustment: StockAdjustment) -> None:
        self.session.refresh(adjustment)


class PositionRepository:
    def __init__(self, session):
        self.session = session

    def get(self, org_id: int, product_id: int, store_id: int, *, lock: bool = False) -> InventoryPosition | None:
        q = self.session.query(InventoryPosition).filter_by(
            org_id=org_id, product_id=product_id, store_id=store_id
        )
        if lock:
            q = lock_for_update(q).populate_existing()
        return q.first()

    def create_empty(self, org_id: int, product_id: int, store_id: int) -> InventoryPosition:
        """
        Insert a zero position. If a concurrent transaction inserted it first,
        fall back to locking theirs.
        """
        position = InventoryPosition(
            org_id=org_id,
            product_id=product_id,
            store_id=store_id,
            quantity=Decimal("0"),
            average_cost=Decimal("0"),
        )
        try:
            with self.session.begin_nested():
                self.session.add(position)
        except IntegrityError:
            existing = self.get(org_id, product_id, store_id, lock=True)
            if existing is None:
                raise
            return existing
        return position

    def increment(self, position: InventoryPosition, delta: Decimal, *, allow_negative: bool) -> bool:
        """
        quantity = quantity + delta, as one statement against the locked row.

        Returns False when the guard (result must stay >= 0) rejected it.
        """
        stmt = (
            update(InventoryPosition)
            .where(InventoryPosition.id == position.id)
            .values(quantity=InventoryPosition.quantity + delta, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if delta < 0 and not allow_negative:
            stmt = stmt.where(InventoryPosition.quantity + delta >= 0)
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            return False
        self.session.refresh(position)
        return True

    def set_average_cost(self, position: InventoryPosition, average_cost: Decimal) -> None:
        position.average_cost = average_cost
        position.updated_at = utcnow()
        self.session.flush()

    def current_quantity(self, org_id: int, product_id: int, store_id: int) -> Decimal:
        position = self.get(org_id, product_id, store_id)
        return Decimal(position.quantity) if position else Decimal("0")


def _side_total(side: str, *, coalesce: bool = False):
    # Aggregates keep the scaled column type so results come back as Decimal
    total = func.sum(case((LedgerEntry.side == side, LedgerEntry.amount), else_=0))
    if coalesce:
        total = func.coalesce(total, 0)
    return type_coerce(total, LedgerEntry.amount.type)


class LedgerRepository:
    def __init__(self, session):
        self.session = session

    def add_pair(self, debit: LedgerEntry, credit: LedgerEntry) -> None:
        self.session.add_all([debit, credit])
        self.session.flush()

    def for_reference(self, org_id: int, reference_number: str) -> list[LedgerEntry]:
        return (
            self.session.query(LedgerEntry)
            .filter_by(org_id=org_id, reference_number=reference_number)
            .order_by(LedgerEntry.id.asc())
            .all()
        )

    def for_source(self, org_id: int, source_id: int) -> list[LedgerEntry]:
        return (
            self.session.query(LedgerEntry)
            .filter_by(org_id=org_id, source_id=source_id)
            .order_by(LedgerEntry.id.asc())
            .all()
        )

    def totals(self, org_id: int, reference_number: str | None = None) -> tuple[Decimal, Decimal]:
        """Return (sum of debits, sum of credits) in tenant-default currency."""
        q = self.session.query(
            _side_total("debit", coalesce=True),
            _side_total("credit", coalesce=True),
        ).filter(LedgerEntry.org_id == org_id)
        if reference_number:
            q = q.filter(LedgerEntry.reference_number == reference_number)
        debit, credit = q.one()
        return Decimal(str(debit)).quantize(Decimal("0.01")), Decimal(str(credit)).quantize(Decimal("0.01"))

    def unbalanced_references(self, org_id: int) -> list[tuple[str, Decimal, Decimal]]:
        rows = (
            self.session.query(
                LedgerEntry.reference_number,
                _side_total("debit"),
                _side_total("credit"),
            )
            .filter(LedgerEntry.org_id == org_id)
            .group_by(LedgerEntry.reference_number)
            .all()
        )
        out = []
        for reference, debit, credit in rows:
            debit = Decimal(str(debit or 0)).quantize(Decimal("0.01"))
            credit = Decimal(str(credit or 0)).quantize(Decimal("0.01"))
            if debit != credit:
                out.append((reference, debit, credit))
        return out


class PriceHistoryRepository:
    """Append-only: no update or delete."""

    def __init__(self, session):
        self.session = session

    def add(self, record: PriceHistory) -> PriceHistory:
        self.session.add(record)
        self.session.flush()
        return record

    def for_entity(
        self,
        org_id: int,
        entity_type: str,
        entity_id: int,
        *,
        store_id: int | None = None,
        start: datetime | None = None,
        as_of: datetime | None = None,
    ) -> list[PriceHistory]:
        q = self.session.query(PriceHistory).filter(
            PriceHistory.org_id == org_id,
            PriceHistory.entity_type == entity_type,
            PriceHistory.entity_id == entity_id,
            PriceHistory.new_average_cost.isnot(None),
        )
        if store_id is not None:
            q = q.filter(PriceHistory.store_id == store_id)
        if start is not None:
            q = q.filter(PriceHistory.change_date >= start)
        if as_of is not None:
            q = q.filter(PriceHistory.change_date <= as_of)
        return q.order_by(PriceHistory.change_date.asc(), PriceHistory.id.asc()).all()

    def for_module(self, org_id: int, module_name: str, *, limit: int = 200) -> list[PriceHistory]:
        return (
            self.session.query(PriceHistory)
            .filter_by(org_id=org_id, module_name=module_name)
            .order_by(PriceHistory.change_date.desc(), PriceHistory.id.desc())
            .limit(limit)
            .all()
        )

    def for_reference(self, org_id: int, reference_number: str) -> list[PriceHistory]:
        return (
            self.session.query(PriceHistory)
            .filter_by(org_id=org_id, reference_number=reference_number)
            .order_by(PriceHistory.id.asc())
            .all()
        )


class MovementRepository:
    def __init__(self, session):
        self.session = session

    def append(self, movement: StockMovement) -> StockMovement:
        self.session.add(movement)
        self.session.flush()
        return movement

    def for_source(self, org_id: int, source_id: int) -> list[StockMovement]:
        return (
            self.session.query(StockMovement)
            .filter_by(org_id=org_id, source_id=source_id)
            .order_by(StockMovement.id.asc())
            .all()
        )


class LotRepository:
    def __init__(self, session):
        self.session = session

    def get(self, org_id: int, product_id: int, store_id: int, lot_key: str) -> StockLot | None:
        return (
            self.session.query(StockLot)
            .filter_by(org_id=org_id, product_id=product_id, store_id=store_id, lot_key=lot_key)
            .populate_existing()
            .first()
        )

    def for_product(self, org_id: int, product_id: int, *, store_id: int | None = None) -> list[StockLot]:
        q = self.session.query(StockLot).filter_by(org_id=org_id, product_id=product_id)
        if store_id is not None:
            q = q.filter_by(store_id=store_id)
        return q.order_by(StockLot.store_id.asc(), StockLot.lot_key.asc()).all()

    def apply(
        self,
        org_id: int,
        product_id: int,
        store_id: int,
        lot_key: str,
        delta: Decimal,
        *,
        unit_cost: Decimal,
        reference_number: str,
        serial_number: str | None = None,
        batch_number: str | None = None,
        expiry_date: date | None = None,
    ) -> StockLot:
        """
        current_quantity = current_quantity + delta for one lot, inserting
        the lot the first time it is seen.

        Same update-then-insert shape as SequenceRepository.allocate: a
        concurrent insert of the same lot falls back to the UPDATE.
        """
        received = delta if delta > 0 else Decimal("0")
        issued = -delta if delta < 0 else Decimal("0")
        stmt = (
            update(StockLot)
            .where(
                StockLot.org_id == org_id,
                StockLot.product_id == product_id,
                StockLot.store_id == store_id,
                StockLot.lot_key == lot_key,
            )
            .values(
                current_quantity=StockLot.current_quantity + delta,
                total_received=StockLot.total_received + received,
                total_issued=StockLot.total_issued + issued,
                total_adjusted=StockLot.total_adjusted + abs(delta),
                status=case((StockLot.current_quantity + delta > 0, "active"), else_="depleted"),
                last_reference_number=reference_number,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

        if not self.session.execute(stmt).rowcount:
            lot = StockLot(
                org_id=org_id,
                product_id=product_id,
                store_id=store_id,
                lot_key=lot_key,
                serial_number=serial_number,
                batch_number=batch_number,
                expiry_date=expiry_date,
                current_quantity=delta,
                total_received=received,
                total_issued=issued,
                total_adjusted=abs(delta),
                unit_cost=unit_cost,
                status="active" if delta > 0 else "depleted",
                last_reference_number=reference_number,
                updated_at=utcnow(),
            )
            try:
                with self.session.begin_nested():
                    self.session.add(lot)
                return lot
            except IntegrityError:
                if not self.session.execute(stmt).rowcount:
                    raise

        return self.get(org_id, product_id, store_id, lot_key)


class SequenceRepository:
    def __init__(self, session):
        self.session = session

    def allocate(self, org_id: int, document_type: str) -> int:
        """
        Atomically allocate the next number for an org/document type.

        Increment-then-read under the row lock the UPDATE takes; the first
        allocation inserts the row inside a savepoint and, if another
        transaction beat us to it, falls back to the increment.
        """
        stmt = (
            update(DocumentSequence)
            .where(
                DocumentSequence.org_id == org_id,
                DocumentSequence.document_type == document_type,
            )
            .values(next_number=DocumentSequence.next_number + 1)
            .execution_options(synchronize_session=False)
        )

        result = self.session.execute(stmt)
        if result.rowcount:
            return self._current(org_id, document_type) - 1

        try:
            with self.session.begin_nested():
                self.session.add(DocumentSequence(org_id=org_id, document_type=document_type, next_number=2))
            return 1
        except IntegrityError:
            result = self.session.execute(stmt)
            if not result.rowcount:
                raise
            return self._current(org_id, document_type) - 1

    def _current(self, org_id: int, document_type: str) -> int:
        return (
            self.session.query(DocumentSequence.next_number)
            .filter_by(org_id=org_id, document_type=document_type)
            .scalar()
        )


class ReferenceDataRepository:
    """Read-only master data lookups (stores, products, currencies, rates, periods, accounts)."""

    def __init__(self, session):
        self.session = session

    def store(self, org_id: int, store_id: int) -> Store | None:
        return self.session.query(Store).filter_by(org_id=org_id, id=store_id).first()

    def product(self, org_id: int, product_id: int) -> Product | None:
        return self.session.query(Product).filter_by(org_id=org_id, id=product_id).first()

    def products(self, org_id: int, product_ids) -> dict[int, Product]:
        ids = set(product_ids)
        if not ids:
            return {}
        rows = self.session.query(Product).filter(Product.org_id == org_id, Product.id.in_(ids)).all()
        return {p.id: p for p in rows}

    def account(self, org_id: int, account_id: int) -> Account | None:
        return self.session.query(Account).filter_by(org_id=org_id, id=account_id).first()

    def currency(self, org_id: int, currency_id: int) -> Currency | None:
        return self.session.query(Currency).filter_by(org_id=org_id, id=currency_id).first()

    def default_currency(self, org_id: int) -> Currency | None:
        return self.session.query(Currency).filter_by(org_id=org_id, is_default=True).first()

    def current_period(self, org_id: int) -> FinancialPeriod | None:
        return (
            self.session.query(FinancialPeriod)
            .filter_by(org_id=org_id, is_current=True, is_active=True)
            .first()
        )

    def latest_rate(self, org_id: int, from_currency_id: int, to_currency_id: int, as_of: date) -> ExchangeRate | None:
        return (
            self.session.query(ExchangeRate)
            .filter(
                ExchangeRate.org_id == org_id,
                ExchangeRate.from_currency_id == from_currency_id,
                ExchangeRate.to_currency_id == to_currency_id,
                ExchangeRate.is_active.is_(True),
                ExchangeRate.effective_date <= as_of,
            )
            .order_by(ExchangeRate.effective_date.desc(), ExchangeRate.id.desc())
            .first()
        )
