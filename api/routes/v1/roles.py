"""
api/routes/v1/roles.py -- Tenant-scoped role read endpoints.

Routes:
  GET /api/v1/roles            -- roles of the caller's tenant (roles.read)
  GET /api/v1/roles/{role_id}  -- one role of the caller's tenant (roles.read)

A role id from another tenant answers 404, the same as an unknown id, so
callers cannot probe other tenants' role ids.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import RoleResponse
from auth.dependencies import get_store, require_permission
from auth.models import Action, IdentityContext, Resource
from core.errors import NotFoundError

router = APIRouter()

_can_read_roles = require_permission(Resource.roles, Action.read)


@router.get("/roles", response_model=list[RoleResponse])
def list_roles(request: Request, identity: IdentityContext = Depends(_can_read_roles)) -> list[RoleResponse]:
    return [RoleResponse.from_role(r) for r in get_store(request).list_roles(identity.tenant_id)]


@router.get("/roles/{role_id}", response_model=RoleResponse)
def get_role(
    request: Request,
    role_id: str,
    identity: IdentityContext = Depends(_can_read_roles),
) -> RoleResponse:
    role = get_store(request).get_role(role_id)
    if role is None or role.tenant_id != identity.tenant_id:
        raise NotFoundError("Role not found.")
    return RoleResponse.from_role(role)
