# Overview: Service-layer operations for reference data; default currency, active period and exchange rates.

from __future__ import annotations

from datetime import date
from decimal import Decimal

from ..errors import NoActivePeriod, NoDefaultCurrency, RateNotFound
from ..time_utils import today
from ..validation import rate as quantize_rate


class ReferenceResolver:
    """Turns master-data lookups into domain answers (or domain errors)."""

    def __init__(self, refs):
        self.refs = refs

    def default_currency(self, org_id: int):
        currency = self.refs.default_currency(org_id)
        if currency is None:
            raise NoDefaultCurrency()
        return currency

    def active_period(self, org_id: int):
        period = self.refs.current_period(org_id)
        if period is None:
            raise NoActivePeriod()
        return period

    def resolve_rate(
        self,
        org_id: int,
        from_currency_id: int,
        *,
        to_currency_id: int | None = None,
        supplied: Decimal | None = None,
        as_of: date | None = None,
        prefer_supplied: bool = True,
    ) -> Decimal:
        """
        Rate converting from_currency_id into to_currency_id (default currency
        when omitted).

        Same currency -> 1. Otherwise the supplied rate or the latest active
        rate effective on as_of, in the order prefer_supplied selects.
        """
        if to_currency_id is None:
            to_currency_id = self.default_currency(org_id).id
        if from_currency_id == to_currency_id:
            return Decimal("1")

        if prefer_supplied and supplied is not None:
            return quantize_rate(supplied)

        row = self.refs.latest_rate(org_id, from_currency_id, to_currency_id, as_of or today())
        if row is not None:
            return quantize_rate(row.rate)
        if supplied is not None:
            return quantize_rate(supplied)
        raise RateNotFound(
            f"No exchange rate from currency {from_currency_id} to {to_currency_id}"
        )
