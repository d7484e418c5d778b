"""
Costing Methods: FIFO, LIFO, AVG and SPEC over price history

Pure functions. A history is any sequence of records exposing
new_average_cost, quantity, change_date, reference_number and reason_code,
ordered oldest first (PriceHistory rows satisfy this). Nothing here touches
the database, so reports and tests can feed plain objects.

FIFO:  cost of the earliest record
LIFO:  cost of the latest record
AVG:   quantity-weighted mean of costs; simple mean if no record has a quantity
SPEC:  cost of the record matching a reference number, else a date, else a reason code
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from ..errors import NotFound, ValidationError
from ..validation import cost as quantize_cost

METHODS = ("FIFO", "LIFO", "AVG", "SPEC")


def weighted_average(old_quantity: Decimal, old_average: Decimal, delta: Decimal, unit_cost: Decimal) -> Decimal:
    """
    Moving weighted average after a movement of signed delta.

    Stock-in blends unit_cost into the existing average by quantity; stock-out
    leaves the average untouched. A zero resulting quantity takes unit_cost.
    """
    if delta <= 0:
        return quantize_cost(old_average)
    new_quantity = old_quantity + delta
    if new_quantity == 0:
        return quantize_cost(unit_cost)
    return quantize_cost((old_average * old_quantity + unit_cost * delta) / new_quantity)


def _cost_of(record) -> Decimal:
    return Decimal(record.new_average_cost)


def fifo_cost(history) -> Decimal | None:
    if not history:
        return None
    return quantize_cost(_cost_of(history[0]))


def lifo_cost(history) -> Decimal | None:
    if not history:
        return None
    return quantize_cost(_cost_of(history[-1]))


def average_cost(history) -> Decimal | None:
    if not history:
        return None

    weighted = [r for r in history if r.quantity is not None and Decimal(r.quantity) > 0]
    total_qty = sum((Decimal(r.quantity) for r in weighted), Decimal("0"))
    if total_qty > 0:
        total_value = sum((_cost_of(r) * Decimal(r.quantity) for r in weighted), Decimal("0"))
        return quantize_cost(total_value / total_qty)

    total = sum((_cost_of(r) for r in history), Decimal("0"))
    return quantize_cost(total / len(history))


def _same_day(value, target: date) -> bool:
    if value is None:
        return False
    if isinstance(value, datetime):
        value = value.date()
    return value == target


def specific_cost(history, *, reference_number=None, on_date=None, reason_code=None) -> Decimal:
    """
    Specific identification by exactly one criterion.

    Only the highest-priority criterion supplied is used: reference number,
    else date, else reason code. If that criterion matches nothing the lookup
    fails; lower-priority criteria are not consulted.
    """
    if reference_number is not None:
        candidates = [r for r in history if r.reference_number == reference_number]
    elif on_date is not None:
        if isinstance(on_date, datetime):
            on_date = on_date.date()
        candidates = [r for r in history if _same_day(r.change_date, on_date)]
    elif reason_code is not None:
        candidates = [r for r in history if r.reason_code == reason_code]
    else:
        raise ValidationError("Specific identification needs a reference number, date or reason code")

    if not candidates:
        raise NotFound("No price history record matches the requested identification")
    return quantize_cost(_cost_of(candidates[0]))


def cost_for_method(method: str, history, **spec_criteria) -> Decimal | None:
    method = (method or "").upper()
    if method not in METHODS:
        raise ValidationError(f"Unknown costing method: {method}")
    if method == "SPEC":
        return specific_cost(history, **spec_criteria)
    return {"FIFO": fifo_cost, "LIFO": lifo_cost, "AVG": average_cost}[method](history)


def calculate_cost(history, method: str, quantity: Decimal = Decimal("1"), **spec_criteria) -> dict:
    """Unit cost and extended value for a quantity, with a short explanation."""
    method = (method or "").upper()
    unit = cost_for_method(method, history, **spec_criteria)
    explanations = {
        "FIFO": "Earliest recorded cost",
        "LIFO": "Most recent recorded cost",
        "AVG": "Quantity-weighted average of recorded costs",
        "SPEC": "Cost of the specifically identified record",
    }
    return {
        "method": method,
        "unit_cost": unit,
        "quantity": quantity,
        "total_cost": quantize_cost(unit * quantity) if unit is not None else None,
        "records_considered": len(history),
        "explanation": explanations[method],
    }


def compare_methods(history, quantity: Decimal = Decimal("1")) -> dict:
    """FIFO / LIFO / AVG side by side, plus the spread between them."""
    results = {m: calculate_cost(history, m, quantity) for m in ("FIFO", "LIFO", "AVG")}
    costs = [r["unit_cost"] for r in results.values() if r["unit_cost"] is not None]
    return {
        "methods": results,
        "min_unit_cost": min(costs) if costs else None,
        "max_unit_cost": max(costs) if costs else None,
        "range": (max(costs) - min(costs)) if costs else None,
    }


def cost_trend(history) -> dict:
    """
    Direction and volatility of cost over the history.

    volatility is the population standard deviation of the recorded costs.
    """
    costs = [_cost_of(r) for r in history]
    if not costs:
        return {
            "records": 0,
            "increases": 0,
            "decreases": 0,
            "first_cost": None,
            "last_cost": None,
            "average_change": None,
            "direction": "flat",
            "volatility": None,
        }

    changes = [b - a for a, b in zip(costs, costs[1:])]
    avg_change = sum(changes, Decimal("0")) / len(changes) if changes else Decimal("0")

    mean = sum(costs, Decimal("0")) / len(costs)
    variance = sum(((c - mean) ** 2 for c in costs), Decimal("0")) / len(costs)

    if costs[-1] > costs[0]:
        direction = "up"
    elif costs[-1] < costs[0]:
        direction = "down"
    else:
        direction = "flat"

    return {
        "records": len(costs),
        "increases": sum(1 for c in changes if c > 0),
        "decreases": sum(1 for c in changes if c < 0),
        "first_cost": quantize_cost(costs[0]),
        "last_cost": quantize_cost(costs[-1]),
        "average_change": quantize_cost(avg_change),
        "direction": direction,
        "volatility": quantize_cost(variance.sqrt()),
    }
