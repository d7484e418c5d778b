# Overview: Flask API routes for costing reports and price history; read-only.

from decimal import Decimal

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AdjustmentError, ValidationError
from ..decorators import require_tenant_context
from ..services import costing
from ..services.container import get_services
from ..services.tenant_service import require_product_in_org
from ..time_utils import parse_iso_date, parse_iso_datetime
from ..validation import QUANTITY_PLACES, decimal_str, to_decimal

"""
Time semantics:
- as_of / start are ISO-8601 datetimes (Z or offsets accepted), normalized to UTC.
- as_of filtering is inclusive: change_date <= as_of.
"""

costing_bp = Blueprint("costing", __name__, url_prefix="/api")


def _error(e: AdjustmentError):
    return jsonify(e.to_dict()), e.http_status


def _jsonable(value):
    if isinstance(value, Decimal):
        return decimal_str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def _history_window(product_id: int):
    """Load the product's cost history for the window in the query string."""
    try:
        start = parse_iso_datetime(request.args.get("start"))
        as_of = parse_iso_datetime(request.args.get("as_of"))
    except ValueError:
        raise ValidationError("start and as_of must be ISO-8601 datetimes")

    services = get_services()
    require_product_in_org(services.refs, product_id, g.tenant.org_id)
    return services.price_history.history_for_product(
        g.tenant.org_id,
        product_id,
        store_id=request.args.get("store_id", type=int),
        start=start,
        as_of=as_of,
    )


def _requested_quantity() -> Decimal:
    raw = request.args.get("quantity")
    if raw in (None, ""):
        return Decimal("1")
    return to_decimal(raw, "quantity", places=QUANTITY_PLACES)


@costing_bp.get("/products/<int:product_id>/cost")
@require_tenant_context
def product_cost_route(product_id: int):
    """
    Unit cost of a product under a costing method.

    Query params:
        method:           FIFO | LIFO | AVG | SPEC (default: AVG)
        quantity:         decimal string (default: 1)
        store_id, start, as_of: history window (optional)
        reference_number, date, reason_code: SPEC identification
    """
    try:
        history = _history_window(product_id)
        method = (request.args.get("method") or "AVG").upper()

        criteria = {}
        if method == "SPEC":
            try:
                on_date = parse_iso_date(request.args.get("date"))
            except ValueError:
                raise ValidationError("date must be YYYY-MM-DD")
            criteria = {
                "reference_number": request.args.get("reference_number") or None,
                "on_date": on_date,
                "reason_code": request.args.get("reason_code") or None,
            }

        result = costing.calculate_cost(history, method, _requested_quantity(), **criteria)
        result["product_id"] = product_id
        result["trend"] = costing.cost_trend(history)
        return jsonify({"cost": _jsonable(result)}), 200

    except AdjustmentError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to calculate product cost")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@costing_bp.get("/products/<int:product_id>/cost/compare")
@require_tenant_context
def compare_product_cost_route(product_id: int):
    try:
        history = _history_window(product_id)
        result = costing.compare_methods(history, _requested_quantity())
        result["methods"] = {m: _jsonable(r) for m, r in result["methods"].items()}
        result["product_id"] = product_id
        return jsonify({"comparison": _jsonable(result)}), 200

    except AdjustmentError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to compare costing methods")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@costing_bp.get("/products/<int:product_id>/lots")
@require_tenant_context
def product_lots_route(product_id: int):
    """Serial number and batch/expiry quantities for a product (optional store_id)."""
    try:
        services = get_services()
        require_product_in_org(services.refs, product_id, g.tenant.org_id)
        lots = services.lots.lots_for_product(
            g.tenant.org_id, product_id, store_id=request.args.get("store_id", type=int)
        )
        return jsonify({"lots": [lot.to_dict() for lot in lots]}), 200

    except AdjustmentError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list product lots")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@costing_bp.get("/price-history")
@require_tenant_context
def price_history_route():
    """
    Price history by product (optionally as of a point in time) or by module.

    Query params (one of):
        product_id: int, with optional store_id / start / as_of
        module:     originating module, e.g. "Stock Adjustment"
    """
    try:
        product_id = request.args.get("product_id", type=int)
        module = request.args.get("module")
        services = get_services()

        if product_id is not None:
            records = _history_window(product_id)
        elif module:
            limit = max(1, min(request.args.get("limit", default=200, type=int), 500))
            records = services.price_history.history_for_module(g.tenant.org_id, module, limit=limit)
        else:
            raise ValidationError("product_id or module is required")

        return jsonify({"price_history": [r.to_dict() for r in records]}), 200

    except AdjustmentError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to load price history")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500
