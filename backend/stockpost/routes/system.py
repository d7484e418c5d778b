# backend/stockpost/routes/system.py
"""
System health endpoint.

Reports database reachability and whether the posting configuration is
usable (failure policy recognised, retry budget positive).
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Organization, StockAdjustment
from ..services.price_history_service import FAIL_CLOSED, FAIL_OPEN
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        org_count = db.session.query(Organization).count()
        pending = db.session.query(StockAdjustment).filter_by(status="submitted").count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "organizations": org_count,
                "adjustments_awaiting_approval": pending,
            },
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_posting_config() -> dict:
    policy = str(current_app.config.get("PRICE_HISTORY_FAILURE_POLICY", "")).lower()
    attempts = int(current_app.config.get("APPROVAL_RETRY_ATTEMPTS", 0))

    warnings = []
    if policy not in (FAIL_OPEN, FAIL_CLOSED):
        warnings.append(f"Unknown price history failure policy: {policy}")
    if attempts < 1:
        warnings.append("APPROVAL_RETRY_ATTEMPTS must be at least 1")

    details = {
        "price_history_failure_policy": policy,
        "allow_negative_stock": bool(current_app.config.get("ALLOW_NEGATIVE_STOCK")),
        "approval_retry_attempts": attempts,
    }
    if warnings:
        return {"status": "degraded", "warning": "; ".join(warnings), "details": details}
    return {"status": "healthy", "details": details}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    config_health = check_posting_config()

    all_checks = [database_health, config_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "posting_config": config_health,
        },
    }
    return response, http_status
