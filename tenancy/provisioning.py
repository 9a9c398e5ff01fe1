"""
tenancy/provisioning.py -- Create a tenant together with its security boundary.

One provisioning call writes four records: the tenant, its "Admin" and "User"
roles, and its first administrator. They are written inside a single store
transaction, so afterwards either all four exist or none do.

Duplicate domains are caught twice: a lookup inside the transaction gives the
common case a clean ConflictError before any insert, and the UNIQUE
constraint on tenants.domain catches the race where two requests pass that
lookup at the same time. The IntegrityError rolls the whole transaction back.

The admin password is hashed before the transaction opens; bcrypt is slow on
purpose and must not run while the database holds a write lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from auth.models import Role, Tenant, User
from auth.passwords import hash_password
from auth.store import CredentialStore
from core.errors import ConflictError, ValidationError
from tenancy.defaults import ADMIN_PERMISSIONS, ADMIN_ROLE_NAME, USER_PERMISSIONS, USER_ROLE_NAME

logger = logging.getLogger("crm.tenancy")


@dataclass(frozen=True)
class ProvisionedTenant:
    tenant: Tenant
    admin_role: Role
    user_role: Role
    admin_user: User


class TenantProvisioner:
    """Creates tenants for super admins.

    Usage:
        provisioner = TenantProvisioner(store)
        bundle = provisioner.provision("Acme", "acme.example", "root@acme.example", "s3cret!")
    """

    def __init__(self, store: CredentialStore) -> None:
        self.store = store

    def provision(self, name: str, domain: str, admin_email: str, admin_password: str) -> ProvisionedTenant:
        """Create tenant, Admin role, User role and first admin atomically.

        Raises ValidationError when an input is empty, ConflictError when the
        domain (or, in a race, any unique key) is already taken.
        """
        missing = [
            label
            for label, value in (
                ("name", name),
                ("domain", domain),
                ("adminEmail", admin_email),
                ("adminPassword", admin_password),
            )
            if not value or not value.strip()
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}.")

        password_hash = hash_password(admin_password)

        try:
            with self.store.transaction() as conn:
                if self.store.get_tenant_by_domain(domain, conn=conn) is not None:
                    raise ConflictError("Domain already in use.", code="domain_in_use")

                tenant = self.store.create_tenant(Tenant(name=name, domain=domain), conn=conn)
                admin_role = self.store.create_role(
                    Role(name=ADMIN_ROLE_NAME, tenant_id=tenant.id, permissions=ADMIN_PERMISSIONS),
                    conn=conn,
                )
                user_role = self.store.create_role(
                    Role(name=USER_ROLE_NAME, tenant_id=tenant.id, permissions=USER_PERMISSIONS),
                    conn=conn,
                )
                admin_user = self.store.create_user(
                    User(
                        email=admin_email,
                        password_hash=password_hash,
                        first_name="Admin",
                        last_name=name,
                        tenant_id=tenant.id,
                        role_id=admin_role.id,
                        is_active=True,
                        is_super_admin=False,
                    ),
                    conn=conn,
                )
        except IntegrityError as exc:
            logger.warning("Provisioning of domain %s rolled back: unique constraint violated", domain)
            raise ConflictError("Domain already in use.", code="domain_in_use") from exc

        logger.info("Provisioned tenant %s (%s) with admin %s", tenant.id, domain, admin_user.id)
        return ProvisionedTenant(tenant=tenant, admin_role=admin_role, user_role=user_role, admin_user=admin_user)
