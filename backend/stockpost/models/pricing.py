from __future__ import annotations

from ..extensions import db
from .types import Cost, Money, Quantity, Rate
from stockpost.time_utils import to_utc_z, to_iso_date
from stockpost.validation import decimal_str


class PriceHistory(db.Model):
    """
    Immutable cost/price change snapshot.

    APPEND-ONLY: rows are inserted by the price history recorder and never
    updated or deleted. module_name records which workflow produced the change
    ("Stock Adjustment", ...) so the trail is queryable per origin.
    """
    __tablename__ = "price_history"
    __table_args__ = (
        db.Index("ix_price_history_org_entity", "org_id", "entity_type", "entity_id", "change_date"),
        db.Index("ix_price_history_org_module", "org_id", "module_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    entity_type = db.Column(db.String(50), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    entity_code = db.Column(db.String(64), nullable=True)
    entity_name = db.Column(db.String(255), nullable=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True)

    module_name = db.Column(db.String(100), nullable=False)
    costing_method = db.Column(db.String(8), nullable=False, default="AVG")
    reason_code = db.Column(db.String(50), nullable=True)

    old_average_cost = db.Column(Cost(), nullable=True)
    new_average_cost = db.Column(Cost(), nullable=True)
    old_selling_price = db.Column(Money(), nullable=True)
    new_selling_price = db.Column(Money(), nullable=True)

    quantity = db.Column(Quantity(), nullable=True)
    unit = db.Column(db.String(20), nullable=True)

    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=True)
    system_currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=True)
    exchange_rate = db.Column(Rate(), nullable=False, default=1)
    equivalent_amount = db.Column(Cost(), nullable=True)

    reference_number = db.Column(db.String(50), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    change_date = db.Column(db.DateTime(timezone=True), nullable=False)
    transaction_date = db.Column(db.Date, nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "entity_code": self.entity_code,
            "entity_name": self.entity_name,
            "store_id": self.store_id,
            "module_name": self.module_name,
            "costing_method": self.costing_method,
            "reason_code": self.reason_code,
            "old_average_cost": decimal_str(self.old_average_cost),
            "new_average_cost": decimal_str(self.new_average_cost),
            "old_selling_price": decimal_str(self.old_selling_price),
            "new_selling_price": decimal_str(self.new_selling_price),
            "quantity": decimal_str(self.quantity),
            "unit": self.unit,
            "currency_id": self.currency_id,
            "system_currency_id": self.system_currency_id,
            "exchange_rate": decimal_str(self.exchange_rate),
            "equivalent_amount": decimal_str(self.equivalent_amount),
            "reference_number": self.reference_number,
            "notes": self.notes,
            "change_date": to_utc_z(self.change_date),
            "transaction_date": to_iso_date(self.transaction_date),
            "created_by_user_id": self.created_by_user_id,
        }
