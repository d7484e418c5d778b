# Overview: Flask API routes for stock adjustments; parses input and returns JSON responses.

"""
Stock Adjustment API Routes

DESIGN:
- Drafts are created and edited with their full line set
- Review workflow: submit, then approve or reject
- Approval posts inventory, price history, stock movements and ledger rows
- Money and quantities travel as decimal strings (JSON floats are rejected)

SECURITY:
- Every route requires the tenant context (X-Org-Id / X-User-Id)
- Adjustments of other tenants are reported as not found
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AdjustmentError
from ..decorators import require_tenant_context
from ..services.container import get_services
from ..validation import decimal_str, parse_header, parse_lines


adjustments_bp = Blueprint("adjustments", __name__, url_prefix="/api/stock-adjustments")


def error_response(e: AdjustmentError):
    return jsonify(e.to_dict()), e.http_status


# =============================================================================
# DRAFTS
# =============================================================================

@adjustments_bp.post("")
@require_tenant_context
def create_adjustment_route():
    """
    Create a stock adjustment draft.

    Request body:
    {
        "store_id": 1,
        "adjustment_type": "add",              ("add" | "deduct")
        "account_id": 10,
        "corresponding_account_id": 11,
        "currency_id": 1,
        "exchange_rate": "1.000000",           (optional)
        "adjustment_date": "2026-10-19",       (optional, default: today)
        "reason_code": "DAMAGE",               (optional)
        "lines": [
            {"product_id": 5, "adjusted_quantity": "20", "unit_cost": "12.00"}
        ]
    }

    Returns:
        201: Draft created
        400: Invalid input
        404: Referenced store/account/currency/product not found
        422: Exchange rate or default currency missing
    """
    try:
        header = parse_header(request.get_json(silent=True))
        adjustment = get_services().adjustments.create_draft(g.tenant, header)
        return jsonify({"adjustment": adjustment.to_dict(include_lines=True)}), 201

    except AdjustmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create stock adjustment")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@adjustments_bp.get("")
@require_tenant_context
def list_adjustments_route():
    """
    List adjustments, newest first.

    Query params:
        status:   draft | submitted | approved | rejected (optional)
        store_id: int (optional)
    """
    try:
        store_id = request.args.get("store_id", type=int)
        status = request.args.get("status")
        adjustments = get_services().adjustments.list(g.tenant, status=status, store_id=store_id)
        return jsonify({"adjustments": [a.to_dict() for a in adjustments]}), 200

    except AdjustmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock adjustments")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@adjustments_bp.get("/<int:adjustment_id>")
@require_tenant_context
def get_adjustment_route(adjustment_id: int):
    try:
        adjustment = get_services().adjustments.get(g.tenant, adjustment_id)
        return jsonify({"adjustment": adjustment.to_dict(include_lines=True)}), 200

    except AdjustmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get stock adjustment")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@adjustments_bp.get("/<int:adjustment_id>/postings")
@require_tenant_context
def get_adjustment_postings_route(adjustment_id: int):
    """
    Posting summary for one adjustment.

    Returns the stock movements, ledger pair(s) and price history rows
    written when it was approved. All lists are empty until approval.
    """
    try:
        summary = get_services().adjustments.postings(g.tenant, adjustment_id)
        balance = summary["balance"]
        return jsonify({
            "adjustment": summary["adjustment"].to_dict(),
            "movements": [m.to_dict() for m in summary["movements"]],
            "ledger_entries": [e.to_dict() for e in summary["ledger_entries"]],
            "balance": {
                "debit_total": decimal_str(balance["debit_total"]),
                "credit_total": decimal_str(balance["credit_total"]),
                "balanced": balance["balanced"],
            } if balance else None,
            "price_history": [h.to_dict() for h in summary["price_history"]],
        }), 200

    except AdjustmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get stock adjustment postings")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@adjustments_bp.put("/<int:adjustment_id>")
@require_tenant_context
def update_adjustment_route(adjustment_id: int):
    """
    Edit a draft: header fields plus a full replacement line set.

    A body without header fields (only "lines") replaces the lines and keeps
    the header.

    Returns:
        200: Draft updated
        409: Adjustment is not a draft
    """
    try:
        data = request.get_json(silent=True)
        services = get_services()
        if isinstance(data, dict) and set(data) <= {"lines"}:
            adjustment = services.adjustments.replace_draft_lines(
                g.tenant, adjustment_id, parse_lines(data.get("lines"))
            )
        else:
            adjustment = services.adjustments.update_draft(g.tenant, adjustment_id, parse_header(data))
        return jsonify({"adjustment": adjustment.to_dict(include_lines=True)}), 200

    except AdjustmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update stock adjustment")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@adjustments_bp.delete("/<int:adjustment_id>")
@require_tenant_context
def delete_adjustment_route(adjustment_id: int):
    try:
        get_services().adjustments.delete_draft(g.tenant, adjustment_id)
        return jsonify({"deleted": True}), 200

    except AdjustmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete stock adjustment")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


# =============================================================================
# REVIEW WORKFLOW
# =============================================================================

@adjustments_bp.patch("/<int:adjustment_id>/submit")
@require_tenant_context
def submit_adjustment_route(adjustment_id: int):
    """
    Returns:
        200: Submitted
        400: EMPTY_ADJUSTMENT
        409: INVALID_STATE
    """
    try:
        adjustment = get_services().adjustments.submit(g.tenant, adjustment_id)
        return jsonify({"adjustment": adjustment.to_dict()}), 200

    except AdjustmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to submit stock adjustment")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@adjustments_bp.patch("/<int:adjustment_id>/approve")
@require_tenant_context
def approve_adjustment_route(adjustment_id: int):
    """
    Approve and post a submitted adjustment.

    Returns:
        200: Approved and posted
        409: INVALID_STATE or INSUFFICIENT_STOCK
        422: NO_ACTIVE_PERIOD, NO_DEFAULT_CURRENCY or RATE_NOT_FOUND
        503: CONCURRENCY_TIMEOUT (retryable)
    """
    try:
        adjustment = get_services().adjustments.approve(g.tenant, adjustment_id)
        return jsonify({"adjustment": adjustment.to_dict(include_lines=True)}), 200

    except AdjustmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to approve stock adjustment")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@adjustments_bp.patch("/<int:adjustment_id>/reject")
@require_tenant_context
def reject_adjustment_route(adjustment_id: int):
    """
    Request body:
    {
        "reason": "Counted twice"
    }

    Returns:
        200: Rejected
        400: MISSING_REASON
        409: INVALID_STATE
    """
    try:
        data = request.get_json(silent=True) or {}
        adjustment = get_services().adjustments.reject(g.tenant, adjustment_id, data.get("reason"))
        return jsonify({"adjustment": adjustment.to_dict()}), 200

    except AdjustmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reject stock adjustment")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500
