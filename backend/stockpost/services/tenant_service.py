"""
Multi-Tenant Service: Tenant Context and Scoping Helpers

Every operation runs on behalf of exactly one organization. The caller's
identity travels explicitly as a TenantContext; nothing here reads request
globals, so the same services run under HTTP, CLI and tests.

SECURITY INVARIANTS:
1. Every id taken from client input is checked against ctx.org_id
2. A reference owned by another org is reported exactly like a missing one
3. Cross-tenant attempts are logged as security warnings

USAGE:
    ctx = TenantContext(org_id=g.tenant.org_id, user_id=g.tenant.user_id)
    store = require_store_in_org(refs, store_id, ctx.org_id)
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import TenantAccessError


@dataclass(frozen=True)
class TenantContext:
    """Who is acting, and for which organization."""
    org_id: int
    user_id: int | None = None


def _log_cross_tenant_attempt(kind: str, entity_id, org_id: int) -> None:
    current_app.logger.warning(
        "Tenant access denied: %s %s not visible to org %s", kind, entity_id, org_id
    )


def _require(found, kind: str, entity_id, org_id: int):
    # Repository lookups already filter by org_id, so a foreign row is simply
    # absent and indistinguishable from a missing one.
    if found is None:
        _log_cross_tenant_attempt(kind, entity_id, org_id)
        raise TenantAccessError(f"{kind} not found")
    return found


def require_store_in_org(refs, store_id: int, org_id: int):
    """
    Validate that a store belongs to the specified organization.

    Raises:
        TenantAccessError if the store doesn't exist or belongs to a different org
    """
    return _require(refs.store(org_id, store_id), "Store", store_id, org_id)


def require_product_in_org(refs, product_id: int, org_id: int):
    return _require(refs.product(org_id, product_id), "Product", product_id, org_id)


def require_products_in_org(refs, product_ids, org_id: int) -> dict:
    """Batch variant; returns {product_id: Product}."""
    wanted = set(product_ids)
    found = refs.products(org_id, wanted)
    missing = wanted - set(found)
    if missing:
        _log_cross_tenant_attempt("Products", sorted(missing), org_id)
        raise TenantAccessError("One or more products not found")
    return found


def require_account_in_org(refs, account_id: int, org_id: int):
    return _require(refs.account(org_id, account_id), "Account", account_id, org_id)


def require_currency_in_org(refs, currency_id: int, org_id: int):
    return _require(refs.currency(org_id, currency_id), "Currency", currency_id, org_id)
