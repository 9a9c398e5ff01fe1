"""
auth/passwords.py -- Password hashing and credential checks.

Passwords: bcrypt, used directly (no passlib wrapper). Every hash carries its
own random salt, so two hashes of the same password differ. bcrypt.checkpw
compares digests in constant time. The work factor comes from
Settings.bcrypt_rounds; hashing is CPU-bound and holds no lock.

The _DUMMY_HASH constant enables timing equalization in authenticate() so
response time does not reveal whether an email exists in a tenant.

Layer rule: no imports from api/ or tenancy/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt

from core.config import get_settings
from core.errors import NotFoundError, UnauthenticatedError, ValidationError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import CredentialStore

logger = logging.getLogger("crm.auth")


# bcrypt only looks at the first 72 bytes and bcrypt>=5 refuses longer input.
MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises ValidationError when the UTF-8 encoding is longer than
    MAX_PASSWORD_BYTES. The API models reject such passwords first; this
    covers the CLI and any other direct caller.
    """
    if password_too_long(plain):
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    salt = bcrypt.gensalt(rounds=rounds or get_settings().bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash, or a password too long to have been hashed, is a
    mismatch, not an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("crm_timing_dummy")


def authenticate(store: CredentialStore, email: str, password: str, tenant_domain: str | None = None) -> User:
    """Resolve and check a login. Returns the User or raises.

    With tenant_domain the lookup is confined to that tenant. Without it the
    email must identify exactly one account; an email present in several
    tenants is rejected instead of guessing which one was meant.

    Always runs bcrypt, even for an unknown email [timing equalization].
    Password is checked before the active flag, and both failures are 401.
    """
    tenant_id: str | None = None
    if tenant_domain:
        tenant = store.get_tenant_by_domain(tenant_domain)
        if tenant is None:
            raise NotFoundError("Domain not found.")
        tenant_id = tenant.id

    if tenant_id is not None:
        user = store.get_user_by_email(email, tenant_id)
    else:
        candidates = store.find_users_by_email(email)
        if len(candidates) > 1:
            verify_password(password, _DUMMY_HASH)
            raise ValidationError("This email exists in several organizations. Provide tenantDomain.")
        user = candidates[0] if candidates else None

    if user is None:
        verify_password(password, _DUMMY_HASH)
        raise NotFoundError("User not found.")
    if not verify_password(password, user.password_hash):
        logger.info("Login rejected for user %s: bad password", user.id)
        raise UnauthenticatedError("Incorrect password.", code="bad_credentials")
    if not user.is_active:
        logger.info("Login rejected for user %s: account disabled", user.id)
        raise UnauthenticatedError("Account disabled.", code="account_disabled")
    return user
