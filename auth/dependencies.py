"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

get_identity() is the auth guard. Per request it walks:
  extract "Authorization: Bearer <token>" -> verify token -> load user
  -> check is_active -> IdentityContext
and raises at the first failing step. Nothing is cached between requests:
the user row is read live every time, so deactivation is effective on the
very next call even while the token is still valid.

require_super_admin() is the role guard for operator routes. It depends on
get_identity() and re-reads is_super_admin from the store; the token carries
no privilege claims.

require_permission(resource, action) checks the caller's role against its
permission matrix for tenant-scoped routes.

Failures raise core.errors.AppError subclasses; api/main.py renders them.

Layer rule: no imports from api/ or tenancy/.
  auth/dependencies.py may import from fastapi (for Depends/Request) because
  this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Depends, Request

from auth.models import Action, IdentityContext, Resource, Role, User
from auth.store import CredentialStore
from auth.tokens import TokenCodec, TokenExpired, TokenError
from core.errors import ConfigurationError, ForbiddenError, UnauthenticatedError

logger = logging.getLogger("crm.auth")

_BEARER_PREFIX = "Bearer "


def get_store(request: Request) -> CredentialStore:
    return request.app.state.store


def get_token_codec(request: Request) -> TokenCodec:
    """Return the codec built at startup, or fail with 500 if it could not be built."""
    codec = getattr(request.app.state, "token_codec", None)
    if codec is None:
        logger.error("Rejecting %s %s: token signing secret is not configured", request.method, request.url.path)
        raise ConfigurationError()
    return codec


def _extract_bearer(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        raise UnauthenticatedError("Authentication required.")
    token = header[len(_BEARER_PREFIX) :].strip()
    if not token or " " in token:
        raise UnauthenticatedError("Authentication required.")
    return token


def authenticate_request(request: Request) -> User:
    """Run the auth guard and return the live User record.

    The configuration check runs before the header is inspected so a missing
    secret is reported as 500 on every protected route, not only on requests
    that happen to carry a token.
    """
    codec = get_token_codec(request)
    token = _extract_bearer(request)
    try:
        claims = codec.verify(token)
    except TokenExpired as exc:
        raise UnauthenticatedError("Token expired.", code="token_expired") from exc
    except TokenError as exc:
        raise UnauthenticatedError("Invalid token.", code="invalid_token") from exc

    user = get_store(request).get_user(claims.id)
    if user is None:
        raise UnauthenticatedError("User not found.")
    if not user.is_active:
        raise UnauthenticatedError("Account disabled.", code="account_disabled")
    return user


def get_identity(request: Request) -> IdentityContext:
    """Require authentication. Returns the request-scoped IdentityContext.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(identity: IdentityContext = Depends(get_identity)): ...
    """
    user = authenticate_request(request)
    identity = IdentityContext.from_user(user)
    request.state.identity = identity
    return identity


def require_super_admin(request: Request, identity: IdentityContext = Depends(get_identity)) -> IdentityContext:
    """Require the super-admin flag, re-read from the store on every call."""
    user = get_store(request).get_user(identity.id)
    if user is None:
        raise UnauthenticatedError("User not found.")
    if not user.is_super_admin:
        logger.warning("Super-admin route %s denied to user %s", request.url.path, identity.id)
        raise ForbiddenError("Super admin privileges required.")
    return identity


def require_permission(resource: Resource, action: Action) -> Callable[..., IdentityContext]:
    """Build a dependency that checks the caller's role matrix for (resource, action).

    The role must exist and belong to the caller's own tenant.

        @router.get("/roles")
        async def route(identity: IdentityContext = Depends(require_permission(Resource.roles, Action.read))): ...
    """
    resource = Resource(resource)
    action = Action(action)

    def dependency(request: Request, identity: IdentityContext = Depends(get_identity)) -> IdentityContext:
        role: Role | None = get_store(request).get_role(identity.role_id) if identity.role_id else None
        if role is None or role.tenant_id != identity.tenant_id:
            raise ForbiddenError("Role not found.")
        if not role.permissions.allows(resource, action):
            raise ForbiddenError(f"You don't have permission to {action.value} {resource.value}.")
        return identity

    return dependency
