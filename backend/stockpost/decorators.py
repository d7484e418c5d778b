# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services.tenant_service import TenantContext


def _header_int(name: str):
    raw = (request.headers.get(name) or "").strip()
    if not raw.isdigit():
        return None
    return int(raw)


def require_tenant_context(f):
    """
    Establish the tenant context for the request.

    Authentication happens upstream; the gateway forwards the resolved
    identity as headers:
    - X-Org-Id:  organization (tenant) id - REQUIRED
    - X-User-Id: acting user id - REQUIRED

    Sets g.tenant to a TenantContext. Returns 401 if either header is missing
    or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        org_id = _header_int("X-Org-Id")
        user_id = _header_int("X-User-Id")

        if not org_id or not user_id:
            return jsonify({"error": "UNAUTHENTICATED", "message": "Tenant context required"}), 401

        g.tenant = TenantContext(org_id=org_id, user_id=user_id)
        return f(*args, **kwargs)

    return decorated_function
