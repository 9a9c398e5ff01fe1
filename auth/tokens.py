"""
auth/tokens.py -- Stateless session tokens.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry identity only -- id, email,
       tenantId, iat, exp. No privilege claim is ever put in a token; the
       guards in auth/dependencies.py re-read is_active and is_super_admin
       from the store on every request, so demotion and deactivation take
       effect on the next call.

  Secret: passed to TokenCodec at construction (built once in the API
       lifespan) rather than read from the environment per request. An empty
       or short secret (<32 chars) raises ConfigurationError right there.

  Failure kinds: verify() raises MalformedToken when the structure cannot be
       parsed, InvalidSignature when it was tampered with or signed with
       another key, TokenExpired when past exp. Signature is checked before
       expiry, so a tampered expired token reports InvalidSignature.

Layer rule: no imports from api/ or tenancy/. Import from core/ is allowed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from core.errors import ConfigurationError

_ALGORITHM = "HS256"
_MIN_SECRET_LENGTH = 32
# 24 hours.
DEFAULT_TTL_SECONDS = 24 * 60 * 60


class TokenError(Exception):
    """Base class for token verification failures."""


class MalformedToken(TokenError):
    pass


class InvalidSignature(TokenError):
    pass


class TokenExpired(TokenError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    id: str
    email: str
    tenant_id: str
    issued_at: datetime
    expires_at: datetime


class TokenCodec:
    """Signs and verifies session tokens with a server-held secret.

    Usage:
        codec = TokenCodec(settings.secret_key)
        token = codec.issue(user.id, user.email, user.tenant_id)
        claims = codec.verify(token)
    """

    def __init__(self, secret_key: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        if not secret_key:
            raise ConfigurationError("Token signing secret is not configured.")
        if len(secret_key) < _MIN_SECRET_LENGTH:
            raise ConfigurationError(f"Token signing secret must be at least {_MIN_SECRET_LENGTH} characters.")
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds

    def issue(self, user_id: str, email: str, tenant_id: str, now: datetime | None = None) -> str:
        """Encode a signed token valid for ttl_seconds from now."""
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "id": user_id,
            "email": email,
            "tenantId": tenant_id,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.ttl_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a token. Raises a TokenError subclass on any failure."""
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken("Token cannot be parsed.") from exc

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenExpired("Token has expired.") from exc
        except JWTError as exc:
            raise InvalidSignature("Token signature is invalid.") from exc

        try:
            return TokenClaims(
                id=str(payload["id"]),
                email=str(payload["email"]),
                tenant_id=str(payload["tenantId"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedToken("Token is missing identity claims.") from exc
