"""
tenancy/lifecycle.py -- Disable a tenant by deactivating its members.

Tenants are never deleted. Disabling one flips is_active off for every user
of the tenant in a single UPDATE. Super admins are left untouched so someone
can still reverse or audit the action.
"""

from __future__ import annotations

import logging

from auth.store import CredentialStore
from core.errors import NotFoundError

logger = logging.getLogger("crm.tenancy")


def disable_tenant(store: CredentialStore, tenant_id: str) -> int:
    """Deactivate all non-super-admin users of a tenant. Returns the affected count.

    Raises NotFoundError, with no write performed, if the tenant does not exist.
    """
    with store.transaction() as conn:
        if store.get_tenant(tenant_id, conn=conn) is None:
            raise NotFoundError("Tenant not found.")
        count = store.deactivate_tenant_users(tenant_id, conn=conn)
    logger.info("Disabled tenant %s: %d user(s) deactivated", tenant_id, count)
    return count
