from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.types import BigInteger, TypeDecorator


class ScaledDecimal(TypeDecorator):
    """
    Decimal stored as a scaled integer (cents, thousandths, micro-units).

    Quantities and amounts live in the database as whole numbers of
    10**-places, the same way unit costs are kept in integer cents, so
    `quantity = quantity + :delta` and its >= 0 guard are integer arithmetic
    on every backend. Python code only ever sees Decimal.
    """
    impl = BigInteger
    cache_ok = True

    def __init__(self, places: int):
        super().__init__()
        self.places = places
        self._factor = Decimal(10) ** places

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return int((value * self._factor).to_integral_value(rounding=ROUND_HALF_UP))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-self.places)


def Quantity():
    return ScaledDecimal(3)


def Cost():
    return ScaledDecimal(6)


def Money():
    return ScaledDecimal(2)


def Rate():
    return ScaledDecimal(6)
