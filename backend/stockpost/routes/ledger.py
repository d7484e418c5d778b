# Overview: Flask API routes for general ledger inspection; read-only.

from flask import Blueprint, jsonify, g, current_app

from ..errors import AdjustmentError, NotFound
from ..decorators import require_tenant_context
from ..services.container import get_services
from ..validation import decimal_str

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


def _balance_json(balance: dict) -> dict:
    return {
        "debit_total": decimal_str(balance["debit_total"]),
        "credit_total": decimal_str(balance["credit_total"]),
        "difference": decimal_str(balance["difference"]),
        "balanced": balance["balanced"],
    }


@ledger_bp.get("/balance")
@require_tenant_context
def ledger_balance_route():
    """Tenant-wide trial check: sum of debits must equal sum of credits."""
    try:
        ledger = get_services().ledger
        balance = ledger.balance(g.tenant.org_id)
        unbalanced = [
            {"reference_number": ref, "debit_total": decimal_str(d), "credit_total": decimal_str(c)}
            for ref, d, c in ledger.unbalanced_references(g.tenant.org_id)
        ]
        return jsonify({"balance": _balance_json(balance), "unbalanced_references": unbalanced}), 200

    except AdjustmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to compute ledger balance")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


@ledger_bp.get("/<reference_number>")
@require_tenant_context
def ledger_entries_route(reference_number: str):
    try:
        ledger = get_services().ledger
        entries = ledger.entries_for_reference(g.tenant.org_id, reference_number)
        if not entries:
            raise NotFound(f"No ledger entries for {reference_number}")
        return jsonify({
            "reference_number": reference_number,
            "entries": [e.to_dict() for e in entries],
            "balance": _balance_json(ledger.balance(g.tenant.org_id, reference_number)),
        }), 200

    except AdjustmentError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load ledger entries")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500
