"""
api/routes/v1/super_admin.py -- Cross-tenant operator endpoints.

Routes (all require auth + super admin):
  GET  /api/v1/super-admin/tenants               -- every tenant with user/role counts
  POST /api/v1/super-admin/tenants               -- provision tenant, roles and first admin
  POST /api/v1/super-admin/tenants/{id}/disable  -- deactivate all non-super-admin users

require_super_admin re-reads the flag from the store on each call, so a
demoted operator is blocked on the next request.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import (
    AdminUserSummary,
    DisableTenantResponse,
    ProvisionedRoles,
    ProvisionResponse,
    RoleResponse,
    TenantCreate,
    TenantResponse,
    TenantStatsResponse,
    TenantWithStatsResponse,
)
from auth.dependencies import get_store, require_super_admin
from auth.models import IdentityContext
from tenancy.lifecycle import disable_tenant
from tenancy.provisioning import TenantProvisioner

router = APIRouter(prefix="/super-admin")


@router.get("/tenants", response_model=list[TenantWithStatsResponse])
def list_tenants(
    request: Request,
    identity: IdentityContext = Depends(require_super_admin),
) -> list[TenantWithStatsResponse]:
    """List all tenants with aggregate counts."""
    rows = get_store(request).list_tenants_with_stats()
    return [
        TenantWithStatsResponse(
            **TenantResponse.from_tenant(tenant).model_dump(),
            stats=TenantStatsResponse.from_stats(stats),
        )
        for tenant, stats in rows
    ]


@router.post("/tenants", response_model=ProvisionResponse, status_code=201)
def create_tenant(
    request: Request,
    body: TenantCreate,
    identity: IdentityContext = Depends(require_super_admin),
) -> ProvisionResponse:
    """Provision a tenant with its Admin and User roles and first administrator."""
    bundle = TenantProvisioner(get_store(request)).provision(
        name=body.name,
        domain=body.domain,
        admin_email=body.admin_email,
        admin_password=body.admin_password,
    )
    return ProvisionResponse(
        tenant=TenantResponse.from_tenant(bundle.tenant),
        roles=ProvisionedRoles(
            admin=RoleResponse.from_role(bundle.admin_role),
            user=RoleResponse.from_role(bundle.user_role),
        ),
        admin_user=AdminUserSummary(id=bundle.admin_user.id, email=bundle.admin_user.email),
    )


@router.post("/tenants/{tenant_id}/disable", response_model=DisableTenantResponse)
def disable(
    request: Request,
    tenant_id: str,
    identity: IdentityContext = Depends(require_super_admin),
) -> DisableTenantResponse:
    """Deactivate every non-super-admin user of the tenant."""
    count = disable_tenant(get_store(request), tenant_id)
    return DisableTenantResponse(
        message=f"All users in tenant {tenant_id} have been disabled.",
        disabled_users=count,
    )
