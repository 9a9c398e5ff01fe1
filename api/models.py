"""
API request and response models for the REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format is camelCase (firstName, tenantId, ...). Python attributes stay
snake_case; CamelModel supplies the aliases and accepts either spelling on
input.

No response model declares a password or password hash field. A user can
only reach the wire through UserResponse.from_user(), so the hash has no
path out of the process.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from auth.models import Role, Tenant, TenantStats, User
from auth.passwords import MAX_PASSWORD_BYTES, password_too_long


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# Identifiers and names are trimmed. Passwords are plain str and kept exactly
# as typed, so the hash matches what the CLI stores for the same input.
Stripped = Annotated[str, StringConstraints(strip_whitespace=True)]


def _check_password_bytes(value: str) -> str:
    if password_too_long(value):
        raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(CamelModel):
    """Request body for POST /api/v1/auth/register."""

    email: Stripped = Field(min_length=3, max_length=255)
    password: str = Field(min_length=6, max_length=MAX_PASSWORD_BYTES)
    first_name: Stripped = Field(default="", max_length=100)
    last_name: Stripped = Field(default="", max_length=100)
    tenant_id: Stripped = Field(min_length=1, max_length=36)
    role_id: Stripped = Field(min_length=1, max_length=36)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class LoginRequest(CamelModel):
    """Request body for POST /api/v1/auth/login."""

    email: Stripped = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)
    tenant_domain: Optional[Stripped] = Field(default=None, max_length=255)


class PasswordUpdate(CamelModel):
    """Request body for PUT /api/v1/auth/update-password."""

    current_password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)
    new_password: str = Field(min_length=6, max_length=MAX_PASSWORD_BYTES)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class ProfileUpdate(CamelModel):
    """Request body for PUT /api/v1/auth/update-profile.

    Omitted fields are left alone. An explicit null clears phone, jobTitle or
    bio; names cannot be cleared.
    """

    first_name: Optional[Stripped] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[Stripped] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[Stripped] = Field(default=None, max_length=50)
    job_title: Optional[Stripped] = Field(default=None, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("first_name", "last_name")
    @classmethod
    def names_not_null(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("cannot be null")
        return value


# ---------------------------------------------------------------------------
# Shared response models
# ---------------------------------------------------------------------------


class TenantResponse(FrozenCamelModel):
    id: str
    name: str
    domain: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "TenantResponse":
        return cls(
            id=tenant.id,
            name=tenant.name,
            domain=tenant.domain,
            created_at=tenant.created_at,
            updated_at=tenant.updated_at,
        )


class RoleResponse(FrozenCamelModel):
    id: str
    name: str
    tenant_id: str
    permissions: dict[str, dict[str, bool]]
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_role(cls, role: Role) -> "RoleResponse":
        return cls(
            id=role.id,
            name=role.name,
            tenant_id=role.tenant_id,
            permissions=role.permissions.to_dict(),
            created_at=role.created_at,
            updated_at=role.updated_at,
        )


class UserResponse(FrozenCamelModel):
    """Password-free view of a user account."""

    id: str
    email: str
    first_name: str
    last_name: str
    tenant_id: str
    role_id: Optional[str] = None
    is_active: bool
    is_super_admin: bool
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    bio: Optional[str] = None
    last_login_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User, **extra) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            tenant_id=user.tenant_id,
            role_id=user.role_id,
            is_active=user.is_active,
            is_super_admin=user.is_super_admin,
            avatar_url=user.avatar_url,
            phone=user.phone,
            job_title=user.job_title,
            bio=user.bio,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
            updated_at=user.updated_at,
            **extra,
        )


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class RegisterResponse(UserResponse):
    """Response for POST /api/v1/auth/register: the new profile plus a session token."""

    token: str


class MeResponse(UserResponse):
    """Current user with the role and tenant it belongs to."""

    role: Optional[RoleResponse] = None
    tenant: Optional[TenantResponse] = None


class LoginResponse(FrozenCamelModel):
    user: MeResponse
    token: str


# ---------------------------------------------------------------------------
# Super admin -- tenant models
# ---------------------------------------------------------------------------


class TenantCreate(CamelModel):
    """Request body for POST /api/v1/super-admin/tenants."""

    name: Stripped = Field(min_length=1, max_length=255)
    domain: Stripped = Field(min_length=1, max_length=255)
    admin_email: Stripped = Field(min_length=3, max_length=255)
    admin_password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)

    @field_validator("admin_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class TenantStatsResponse(FrozenCamelModel):
    user_count: int
    active_user_count: int
    role_count: int

    @classmethod
    def from_stats(cls, stats: TenantStats) -> "TenantStatsResponse":
        return cls(
            user_count=stats.user_count,
            active_user_count=stats.active_user_count,
            role_count=stats.role_count,
        )


class TenantWithStatsResponse(TenantResponse):
    stats: TenantStatsResponse


class ProvisionedRoles(FrozenCamelModel):
    admin: RoleResponse
    user: RoleResponse


class AdminUserSummary(FrozenCamelModel):
    id: str
    email: str


class ProvisionResponse(FrozenCamelModel):
    """Response for POST /api/v1/super-admin/tenants."""

    tenant: TenantResponse
    roles: ProvisionedRoles
    admin_user: AdminUserSummary


class DisableTenantResponse(FrozenCamelModel):
    message: str
    disabled_users: int


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    error: str
    code: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
