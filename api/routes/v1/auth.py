"""
api/routes/v1/auth.py -- Registration, login and self-service account endpoints.

Routes:
  POST /api/v1/auth/register         -- create an account in a tenant; returns profile + token
  POST /api/v1/auth/login            -- password login, optionally scoped by tenantDomain
  GET  /api/v1/auth/me               -- current user with role and tenant (requires auth)
  PUT  /api/v1/auth/update-password  -- change own password (requires auth)
  PUT  /api/v1/auth/update-profile   -- change own profile fields (requires auth)

Security:
  POST /login and /register are rate-limited per IP (Settings.login_rate_limit).
  auth.passwords.authenticate() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on every response that carries a token.
  Registration checks that the role belongs to the tenant it targets; a role is
  never shared across tenants.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    PasswordUpdate,
    ProfileUpdate,
    RegisterRequest,
    RegisterResponse,
    RoleResponse,
    TenantResponse,
    UserResponse,
)
from auth.dependencies import get_identity, get_store, get_token_codec
from auth.models import IdentityContext, User
from auth.passwords import authenticate, hash_password, verify_password
from auth.store import CredentialStore
from core.config import get_settings
from core.errors import ConflictError, ForbiddenError, NotFoundError, UnauthenticatedError, ValidationError

logger = logging.getLogger("crm.api")

_settings = get_settings()

# Auth policy:
# - POST /api/v1/auth/register:         public (Settings.self_registration_enabled)
# - POST /api/v1/auth/login:            public
# - GET  /api/v1/auth/me:               requires auth (get_identity)
# - PUT  /api/v1/auth/update-password:  requires auth (get_identity)
# - PUT  /api/v1/auth/update-profile:   requires auth (get_identity)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.login_rate_limit)
@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account inside an existing tenant and return it with a session token."""
    if not get_settings().self_registration_enabled:
        raise ForbiddenError("Self-registration is disabled.")

    codec = get_token_codec(request)
    store: CredentialStore = get_store(request)

    if store.get_tenant(body.tenant_id) is None:
        raise NotFoundError("Tenant not found.")
    role = store.get_role(body.role_id)
    if role is None or role.tenant_id != body.tenant_id:
        raise ValidationError("Role does not belong to this tenant.")
    if store.get_user_by_email(body.email, body.tenant_id) is not None:
        raise ConflictError("This email is already used in this tenant.")

    try:
        user = store.create_user(
            User(
                email=body.email,
                password_hash=hash_password(body.password),
                first_name=body.first_name,
                last_name=body.last_name,
                tenant_id=body.tenant_id,
                role_id=body.role_id,
                is_active=True,
            )
        )
    except IntegrityError as exc:
        # A concurrent registration won the (email, tenant_id) race.
        raise ConflictError("This email is already used in this tenant.") from exc

    logger.info("Registered user %s in tenant %s", user.id, user.tenant_id)
    token = codec.issue(user.id, user.email, user.tenant_id)
    resp = JSONResponse(
        status_code=201,
        content=RegisterResponse.from_user(user, token=token).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(_settings.login_rate_limit)
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password, optionally scoped to a tenant domain.

    404 when the domain or the account is unknown, 401 on a wrong password or a
    disabled account.
    """
    codec = get_token_codec(request)
    store: CredentialStore = get_store(request)

    user = authenticate(store, body.email, body.password, body.tenant_domain)
    store.update_last_login(user.id)
    user = store.get_user(user.id) or user
    logger.info("User %s logged in to tenant %s", user.id, user.tenant_id)

    token = codec.issue(user.id, user.email, user.tenant_id)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(user=_me_response(store, user), token=token).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, identity: IdentityContext = Depends(get_identity)) -> MeResponse:
    """Return the current user, its role and its tenant. The password hash is never included."""
    store: CredentialStore = get_store(request)
    user = store.get_user(identity.id)
    if user is None:
        raise NotFoundError("User not found.")
    return _me_response(store, user)


@router.put("/auth/update-password")
def update_password(
    request: Request,
    body: PasswordUpdate,
    identity: IdentityContext = Depends(get_identity),
) -> dict:
    """Replace the caller's password after checking the current one."""
    store: CredentialStore = get_store(request)
    user = store.get_user(identity.id)
    if user is None:
        raise NotFoundError("User not found.")
    if not verify_password(body.current_password, user.password_hash):
        raise UnauthenticatedError("Current password is incorrect.", code="bad_credentials")
    store.set_password_hash(user.id, hash_password(body.new_password))
    logger.info("User %s changed password", user.id)
    return {"message": "Password updated."}


@router.put("/auth/update-profile", response_model=UserResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    identity: IdentityContext = Depends(get_identity),
) -> UserResponse:
    """Update the supplied profile fields of the caller's account. Explicit nulls clear optional fields."""
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationError("No fields to update.")
    updated = get_store(request).update_profile(identity.id, **updates)
    if updated is None:
        raise NotFoundError("User not found.")
    return UserResponse.from_user(updated)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _me_response(store: CredentialStore, user: User) -> MeResponse:
    role = store.get_role(user.role_id) if user.role_id else None
    tenant = store.get_tenant(user.tenant_id)
    return MeResponse.from_user(
        user,
        role=RoleResponse.from_role(role) if role else None,
        tenant=TenantResponse.from_tenant(tenant) if tenant else None,
    )
