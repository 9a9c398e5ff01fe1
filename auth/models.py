"""
auth/models.py -- Domain dataclasses for tenants, roles, users and identity.

Pattern: Data class (pure data container, near-zero logic). The store returns
these frozen instances; routes map them onto the API response models in
api/models.py, which never declare a password field.

The permission matrix is a closed structure: one Permission per Resource
member, four booleans per Permission. A typo in a resource or action name is
an AttributeError / ValueError at the call site, never a silent "denied".

Layer rule: no imports from api/ or tenancy/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum


class Resource(str, Enum):
    users = "users"
    contacts = "contacts"
    companies = "companies"
    statuses = "statuses"
    roles = "roles"
    notes = "notes"
    reminders = "reminders"
    tenant = "tenant"


class Action(str, Enum):
    create = "create"
    read = "read"
    update = "update"
    delete = "delete"


@dataclass(frozen=True)
class Permission:
    """Capability set for one resource."""

    create: bool = False
    read: bool = False
    update: bool = False
    delete: bool = False

    @classmethod
    def full(cls) -> Permission:
        return cls(create=True, read=True, update=True, delete=True)

    @classmethod
    def read_only(cls) -> Permission:
        return cls(read=True)

    def allows(self, action: Action) -> bool:
        return getattr(self, Action(action).value)


@dataclass(frozen=True)
class PermissionMatrix:
    """Per-role mapping from every Resource to its Permission.

    Field names mirror the Resource enum one-to-one. Resources omitted from
    the constructor get no access at all.
    """

    users: Permission = field(default_factory=Permission)
    contacts: Permission = field(default_factory=Permission)
    companies: Permission = field(default_factory=Permission)
    statuses: Permission = field(default_factory=Permission)
    roles: Permission = field(default_factory=Permission)
    notes: Permission = field(default_factory=Permission)
    reminders: Permission = field(default_factory=Permission)
    tenant: Permission = field(default_factory=Permission)

    def for_resource(self, resource: Resource) -> Permission:
        return getattr(self, Resource(resource).value)

    def allows(self, resource: Resource, action: Action) -> bool:
        return self.for_resource(resource).allows(action)

    def to_dict(self) -> dict[str, dict[str, bool]]:
        return {f.name: asdict(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict | None) -> PermissionMatrix:
        """Build a matrix from its JSON form.

        Raises ValueError on an unknown resource or action name rather than
        dropping it.
        """
        if not data:
            return cls()
        unknown = set(data) - {r.value for r in Resource}
        if unknown:
            raise ValueError(f"Unknown permission resources: {sorted(unknown)!r}")
        built: dict[str, Permission] = {}
        for resource, caps in data.items():
            bad = set(caps or {}) - {a.value for a in Action}
            if bad:
                raise ValueError(f"Unknown permission actions for {resource}: {sorted(bad)!r}")
            built[resource] = Permission(**{k: bool(v) for k, v in (caps or {}).items()})
        return cls(**built)


@dataclass(frozen=True)
class Tenant:
    name: str
    domain: str
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Role:
    name: str
    tenant_id: str
    permissions: PermissionMatrix = field(default_factory=PermissionMatrix)
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class User:
    """A credentialed account inside one tenant.

    (email, tenant_id) is unique: the same email in two tenants is two
    independent accounts. role_id is None only for super admins, who are
    operators rather than members of a tenant's role matrix.
    """

    email: str
    password_hash: str
    first_name: str
    last_name: str
    tenant_id: str
    role_id: str | None = None
    id: str | None = None
    is_active: bool = True
    is_super_admin: bool = False
    avatar_url: str | None = None
    phone: str | None = None
    job_title: str | None = None
    bio: str | None = None
    last_login_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class IdentityContext:
    """Who is calling, derived fresh per request from a verified token plus a live user read."""

    id: str
    email: str
    first_name: str
    last_name: str
    tenant_id: str
    role_id: str | None

    @classmethod
    def from_user(cls, user: User) -> IdentityContext:
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            tenant_id=user.tenant_id,
            role_id=user.role_id,
        )


@dataclass(frozen=True)
class TenantStats:
    user_count: int = 0
    active_user_count: int = 0
    role_count: int = 0
