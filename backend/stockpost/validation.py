from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError
from .time_utils import parse_iso_date


# Fixed-point scales. Money is stored to the cent, quantities to 3 places,
# unit/average costs and exchange rates to 6 places.
MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")
COST_PLACES = Decimal("0.000001")
RATE_PLACES = Decimal("0.000001")

ADJUSTMENT_TYPES = ("add", "deduct")

# Maximum absolute value accepted for any amount (fits a BIGINT in micro-units)
MAX_AMOUNT = Decimal("999999999999")


def _quantize(value: Decimal, places: Decimal) -> Decimal:
    return value.quantize(places, rounding=ROUND_HALF_UP)


def money(value) -> Decimal:
    return _quantize(Decimal(value), MONEY_PLACES)


def quantity(value) -> Decimal:
    return _quantize(Decimal(value), QUANTITY_PLACES)


def cost(value) -> Decimal:
    return _quantize(Decimal(value), COST_PLACES)


def rate(value) -> Decimal:
    return _quantize(Decimal(value), RATE_PLACES)


def to_decimal(value: Any, field_name: str, *, places: Decimal | None = None) -> Decimal:
    """
    Strictly coerce client input to Decimal.

    Accepts Decimal, int and numeric strings. Floats are rejected: money and
    quantities must never pass through binary floating point.
    """
    if value is None:
        raise ValidationError(f"{field_name} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a decimal number")
    if isinstance(value, float):
        raise ValidationError(f"{field_name} must be a decimal string, not a float")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field_name} is required")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field_name} must be a plain decimal (scientific notation not allowed)")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field_name} must be a decimal number")
    else:
        raise ValidationError(f"{field_name} must be a decimal number")

    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite")
    if abs(result) > MAX_AMOUNT:
        raise ValidationError(f"{field_name} is out of range")
    return _quantize(result, places) if places is not None else result


def to_int(value: Any, field_name: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{field_name} must be an integer")


@dataclass(frozen=True)
class LineInput:
    """One requested adjustment line, already validated and normalized."""
    product_id: int
    adjusted_quantity: Decimal
    unit_cost: Decimal
    batch_number: str | None = None
    serial_numbers: tuple[str, ...] = ()
    expiry_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class HeaderInput:
    store_id: int
    adjustment_type: str
    account_id: int
    corresponding_account_id: int
    currency_id: int
    reason_code: str | None = None
    adjustment_date: date | None = None
    exchange_rate: Decimal | None = None
    document_type: str | None = None
    document_number: str | None = None
    notes: str | None = None
    lines: tuple[LineInput, ...] = field(default_factory=tuple)


def parse_line(data: dict, index: int) -> LineInput:
    if not isinstance(data, dict):
        raise ValidationError(f"lines[{index}] must be an object")
    prefix = f"lines[{index}]"

    adjusted = to_decimal(data.get("adjusted_quantity"), f"{prefix}.adjusted_quantity", places=QUANTITY_PLACES)
    if adjusted <= 0:
        raise ValidationError(f"{prefix}.adjusted_quantity must be positive")

    unit_cost = to_decimal(data.get("unit_cost"), f"{prefix}.unit_cost", places=COST_PLACES)
    if unit_cost < 0:
        raise ValidationError(f"{prefix}.unit_cost cannot be negative")

    serials = data.get("serial_numbers") or []
    if not isinstance(serials, (list, tuple)) or not all(isinstance(s, str) for s in serials):
        raise ValidationError(f"{prefix}.serial_numbers must be a list of strings")

    try:
        expiry = parse_iso_date(data.get("expiry_date"))
    except ValueError:
        raise ValidationError(f"{prefix}.expiry_date must be YYYY-MM-DD")

    return LineInput(
        product_id=to_int(data.get("product_id"), f"{prefix}.product_id"),
        adjusted_quantity=adjusted,
        unit_cost=unit_cost,
        batch_number=(data.get("batch_number") or None),
        serial_numbers=tuple(s.strip() for s in serials if s.strip()),
        expiry_date=expiry,
        notes=data.get("notes"),
    )


def parse_lines(items: Any) -> tuple[LineInput, ...]:
    if items is None:
        return ()
    if not isinstance(items, list):
        raise ValidationError("lines must be a list")
    return tuple(parse_line(item, i) for i, item in enumerate(items))


def parse_header(data: dict) -> HeaderInput:
    """Validate a create/edit payload (header plus its full set of lines)."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    missing = [
        key for key in ("store_id", "adjustment_type", "account_id", "corresponding_account_id", "currency_id")
        if data.get(key) in (None, "")
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    adjustment_type = str(data["adjustment_type"]).strip().lower()
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError("adjustment_type must be 'add' or 'deduct'")

    exchange_rate = None
    if data.get("exchange_rate") not in (None, ""):
        exchange_rate = to_decimal(data["exchange_rate"], "exchange_rate", places=RATE_PLACES)
        if exchange_rate <= 0:
            raise ValidationError("exchange_rate must be positive")

    try:
        adjustment_date = parse_iso_date(data.get("adjustment_date"))
    except ValueError:
        raise ValidationError("adjustment_date must be YYYY-MM-DD")

    account_id = to_int(data["account_id"], "account_id")
    corresponding_account_id = to_int(data["corresponding_account_id"], "corresponding_account_id")
    if account_id == corresponding_account_id:
        raise ValidationError("account_id and corresponding_account_id must differ")

    return HeaderInput(
        store_id=to_int(data["store_id"], "store_id"),
        adjustment_type=adjustment_type,
        account_id=account_id,
        corresponding_account_id=corresponding_account_id,
        currency_id=to_int(data["currency_id"], "currency_id"),
        reason_code=(data.get("reason_code") or None),
        adjustment_date=adjustment_date,
        exchange_rate=exchange_rate,
        document_type=data.get("document_type"),
        document_number=data.get("document_number"),
        notes=data.get("notes"),
        lines=parse_lines(data.get("lines")),
    )


def decimal_str(value: Decimal | None) -> str | None:
    """Serialize a Decimal for JSON without exponent notation."""
    if value is None:
        return None
    return format(Decimal(value), "f")
