# Overview: Service-layer operations for general ledger posting; balanced debit/credit pairs.

"""
General Ledger Poster

POSTING RULES:
- Stock-in (add):     debit primary account,       credit corresponding account
- Stock-out (deduct): debit corresponding account, credit primary account
- Both rows are valued at quantity x unit cost x exchange rate (tenant-default
  currency), rounded once to the cent, so they are equal by construction.
- original_amount keeps the document-currency value (quantity x unit cost).
- account_type is copied from the account's own classification.

post() is the only way rows are created, and it always returns exactly one
debit and one credit.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from ..errors import TenantAccessError
from ..models import LedgerEntry
from ..validation import money

TRANSACTION_TYPE = "STOCK_ADJUSTMENT"


class LedgerPoster:
    def __init__(self, repository, refs):
        self.repository = repository
        self.refs = refs

    def _account(self, org_id: int, account_id: int):
        account = self.refs.account(org_id, account_id)
        if account is None:
            raise TenantAccessError(f"Account {account_id} not found")
        return account

    def post(self, adjustment, line, period, currency, *, user_id: int | None = None) -> list[LedgerEntry]:
        """
        Post one adjustment line.

        Args:
            adjustment: StockAdjustment header (direction, accounts, rate, reference)
            line:       StockAdjustmentLine being posted
            period:     active FinancialPeriod
            currency:   tenant default Currency (amount is expressed in it)
        """
        org_id = adjustment.org_id
        primary = self._account(org_id, adjustment.account_id)
        corresponding = self._account(org_id, adjustment.corresponding_account_id)

        if adjustment.is_stock_in:
            debit_account, credit_account = primary, corresponding
        else:
            debit_account, credit_account = corresponding, primary

        rate = Decimal(adjustment.exchange_rate or 1)
        original = Decimal(line.adjusted_quantity) * Decimal(line.unit_cost)
        amount = money(original * rate)
        original_amount = money(original)
        pair_key = uuid.uuid4().hex
        description = f"Stock adjustment {adjustment.reference_number} line {line.line_number}"

        def _row(side, account):
            return LedgerEntry(
                org_id=org_id,
                financial_period_id=period.id,
                financial_period_name=period.name,
                transaction_type=TRANSACTION_TYPE,
                reference_number=adjustment.reference_number,
                source_id=adjustment.id,
                source_line_id=line.id,
                pair_key=pair_key,
                account_id=account.id,
                account_code=account.code,
                account_name=account.name,
                account_type=account.account_type,
                side=side,
                amount=amount,
                original_amount=original_amount,
                currency_id=adjustment.currency_id,
                system_currency_id=currency.id,
                exchange_rate=rate,
                description=description,
                transaction_date=adjustment.adjustment_date,
                created_by_user_id=user_id,
            )

        debit = _row("debit", debit_account)
        credit = _row("credit", credit_account)
        self.repository.add_pair(debit, credit)
        return [debit, credit]

    # =========================================================================
    # Inspection
    # =========================================================================

    def entries_for_reference(self, org_id: int, reference_number: str) -> list[LedgerEntry]:
        return self.repository.for_reference(org_id, reference_number)

    def entries_for_adjustment(self, org_id: int, adjustment_id: int) -> list[LedgerEntry]:
        return self.repository.for_source(org_id, adjustment_id)

    def balance(self, org_id: int, reference_number: str | None = None) -> dict:
        debit, credit = self.repository.totals(org_id, reference_number)
        return {
            "debit_total": debit,
            "credit_total": credit,
            "difference": debit - credit,
            "balanced": debit == credit,
        }

    def unbalanced_references(self, org_id: int):
        return self.repository.unbalanced_references(org_id)
