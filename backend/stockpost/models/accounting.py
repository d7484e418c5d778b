from __future__ import annotations

from ..extensions import db
from .types import Money, Rate
from stockpost.time_utils import to_utc_z, to_iso_date
from stockpost.validation import decimal_str


class Currency(db.Model):
    """
    Tenant currency. At most one row per organization has is_default=True;
    that invariant is checked by the master-data service in the same
    transaction as the write, not by a model hook.
    """
    __tablename__ = "currencies"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_currencies_org_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    code = db.Column(db.String(3), nullable=False)
    name = db.Column(db.String(64), nullable=False)
    symbol = db.Column(db.String(8), nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "name": self.name,
            "symbol": self.symbol,
            "is_default": self.is_default,
        }


class ExchangeRate(db.Model):
    """Rate converting one unit of from_currency into to_currency, effective from a date."""
    __tablename__ = "exchange_rates"
    __table_args__ = (
        db.UniqueConstraint(
            "org_id", "from_currency_id", "to_currency_id", "effective_date",
            name="uq_exchange_rates_pair_date",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    from_currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    to_currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    rate = db.Column(Rate(), nullable=False)
    effective_date = db.Column(db.Date, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_currency_id": self.from_currency_id,
            "to_currency_id": self.to_currency_id,
            "rate": decimal_str(self.rate),
            "effective_date": to_iso_date(self.effective_date),
            "is_active": self.is_active,
        }


class FinancialPeriod(db.Model):
    """Accounting window (fiscal year). Exactly one may be current per tenant."""
    __tablename__ = "financial_periods"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_financial_periods_org_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    is_current = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "is_current": self.is_current,
            "is_active": self.is_active,
        }


class Account(db.Model):
    """
    Chart-of-accounts entry.

    account_type is the account's own classification (ASSET, LIABILITY,
    EQUITY, INCOME, EXPENSE); ledger rows copy it at posting time.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_accounts_org_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    account_type = db.Column(db.String(16), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "account_type": self.account_type,
            "is_active": self.is_active,
        }


class LedgerEntry(db.Model):
    """
    One side of a posted double-entry transaction.

    INVARIANTS (enforced by the poster, not by a DB constraint):
    - Rows are only ever created in matched debit/credit pairs sharing a
      pair_key and an identical amount.
    - amount is the tenant-default-currency equivalent; original_amount is in
      the document currency.
    - Append-only: never updated or deleted.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.Index("ix_ledger_entries_org_reference", "org_id", "reference_number"),
        db.CheckConstraint("side IN ('debit', 'credit')", name="ck_ledger_entries_side"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    financial_period_id = db.Column(db.Integer, db.ForeignKey("financial_periods.id"), nullable=False, index=True)
    financial_period_name = db.Column(db.String(64), nullable=False)

    transaction_type = db.Column(db.String(32), nullable=False, default="STOCK_ADJUSTMENT")
    reference_number = db.Column(db.String(50), nullable=False)
    source_id = db.Column(db.Integer, nullable=False)
    source_line_id = db.Column(db.Integer, nullable=True)
    pair_key = db.Column(db.String(64), nullable=False, index=True)

    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)
    account_code = db.Column(db.String(32), nullable=False)
    account_name = db.Column(db.String(255), nullable=False)
    account_type = db.Column(db.String(16), nullable=False)

    side = db.Column(db.String(6), nullable=False)
    amount = db.Column(Money(), nullable=False)
    original_amount = db.Column(Money(), nullable=False)
    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    system_currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    exchange_rate = db.Column(Rate(), nullable=False, default=1)

    description = db.Column(db.String(255), nullable=True)
    transaction_date = db.Column(db.Date, nullable=False)
    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def debit_amount(self):
        return self.amount if self.side == "debit" else 0

    @property
    def credit_amount(self):
        return self.amount if self.side == "credit" else 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "financial_period_id": self.financial_period_id,
            "financial_period_name": self.financial_period_name,
            "transaction_type": self.transaction_type,
            "reference_number": self.reference_number,
            "source_id": self.source_id,
            "source_line_id": self.source_line_id,
            "pair_key": self.pair_key,
            "account_id": self.account_id,
            "account_code": self.account_code,
            "account_name": self.account_name,
            "account_type": self.account_type,
            "side": self.side,
            "amount": decimal_str(self.amount),
            "original_amount": decimal_str(self.original_amount),
            "currency_id": self.currency_id,
            "system_currency_id": self.system_currency_id,
            "exchange_rate": decimal_str(self.exchange_rate),
            "description": self.description,
            "transaction_date": to_iso_date(self.transaction_date),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
