"""
auth/store.py -- SQLAlchemy Core persistence layer for tenants, roles and users.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_tenant / _row_to_role / _row_to_user are the mappers. Route, guard and
tenancy code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Constraints enforced by the database, not only by callers:
  tenants.domain                UNIQUE
  roles (name, tenant_id)       UNIQUE
  users (email, tenant_id)      UNIQUE

Transactions:
  Each public method runs in its own transaction unless the caller passes the
  connection yielded by transaction(). Multi-record operations (tenant
  provisioning) open one transaction and pass it to every write so a failure
  anywhere rolls all of them back.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine

from auth.models import PermissionMatrix, Role, Tenant, TenantStats, User
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_tenants = Table(
    "tenants",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("domain", String(255), nullable=False, unique=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_roles = Table(
    "roles",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(100), nullable=False),
    Column("tenant_id", String(36), ForeignKey("tenants.id"), nullable=False),
    Column("permissions", Text, nullable=False),  # PermissionMatrix as JSON
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("name", "tenant_id", name="uq_role_name_tenant"),
)

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("is_super_admin", Integer, nullable=False, server_default="0"),
    Column("role_id", String(36), ForeignKey("roles.id")),  # NULL only for super admins
    Column("tenant_id", String(36), ForeignKey("tenants.id"), nullable=False),
    Column("avatar_url", Text),
    Column("phone", String(50)),
    Column("job_title", String(100)),
    Column("bio", Text),
    Column("last_login_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("email", "tenant_id", name="uq_user_email_tenant"),
)

# Columns a profile update may touch. Anything else is rejected before SQL.
_PROFILE_FIELDS = frozenset({"first_name", "last_name", "avatar_url", "phone", "job_title", "bio"})


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for Tenant, Role and User entities.

    Usage:
        store = CredentialStore("sqlite:///:memory:")
        tenant = store.create_tenant(Tenant(name="Acme", domain="acme.example"))
        user = store.get_user_by_email("a@acme.example", tenant.id)
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _configure_sqlite)
        _metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection inside one transaction.

        Commits when the block exits normally, rolls back on any exception
        (which is then re-raised).
        """
        with self.engine.begin() as conn:
            yield conn

    @contextmanager
    def _use(self, conn: Connection | None) -> Iterator[Connection]:
        if conn is not None:
            yield conn
        else:
            with self.engine.begin() as own:
                yield own

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Tenants
    # ------------------------------------------------------------------

    def create_tenant(self, tenant: Tenant, conn: Connection | None = None) -> Tenant:
        """Insert a tenant and return it with id and timestamps filled in.

        Raises sqlalchemy.exc.IntegrityError if the domain is already taken.
        """
        now = _now_iso()
        values = {
            "id": tenant.id or _new_id(),
            "name": tenant.name,
            "domain": tenant.domain,
            "created_at": now,
            "updated_at": now,
        }
        with self._use(conn) as c:
            c.execute(_tenants.insert().values(**values))
        return Tenant(**values)

    def get_tenant(self, tenant_id: str, conn: Connection | None = None) -> Tenant | None:
        with self._use(conn) as c:
            row = c.execute(_tenants.select().where(_tenants.c.id == tenant_id)).fetchone()
        return _row_to_tenant(row) if row is not None else None

    def get_tenant_by_domain(self, domain: str, conn: Connection | None = None) -> Tenant | None:
        with self._use(conn) as c:
            row = c.execute(_tenants.select().where(_tenants.c.domain == domain)).fetchone()
        return _row_to_tenant(row) if row is not None else None

    def list_tenants_with_stats(self) -> list[tuple[Tenant, TenantStats]]:
        """Return every tenant with its user, active-user and role counts, ordered by name."""
        user_counts = (
            select(
                _users.c.tenant_id,
                func.count().label("user_count"),
                func.sum(_users.c.is_active).label("active_user_count"),
            )
            .group_by(_users.c.tenant_id)
            .subquery()
        )
        role_counts = (
            select(_roles.c.tenant_id, func.count().label("role_count")).group_by(_roles.c.tenant_id).subquery()
        )
        query = (
            select(
                _tenants,
                user_counts.c.user_count,
                user_counts.c.active_user_count,
                role_counts.c.role_count,
            )
            .select_from(
                _tenants.outerjoin(user_counts, user_counts.c.tenant_id == _tenants.c.id).outerjoin(
                    role_counts, role_counts.c.tenant_id == _tenants.c.id
                )
            )
            .order_by(_tenants.c.name)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [
            (
                _row_to_tenant(r),
                TenantStats(
                    user_count=r.user_count or 0,
                    active_user_count=int(r.active_user_count or 0),
                    role_count=r.role_count or 0,
                ),
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def create_role(self, role: Role, conn: Connection | None = None) -> Role:
        """Insert a role and return it with id and timestamps filled in.

        Raises sqlalchemy.exc.IntegrityError if the tenant already has a role
        with that name, or the tenant does not exist.
        """
        now = _now_iso()
        role_id = role.id or _new_id()
        with self._use(conn) as c:
            c.execute(
                _roles.insert().values(
                    id=role_id,
                    name=role.name,
                    tenant_id=role.tenant_id,
                    permissions=json.dumps(role.permissions.to_dict()),
                    created_at=now,
                    updated_at=now,
                )
            )
        return Role(
            id=role_id,
            name=role.name,
            tenant_id=role.tenant_id,
            permissions=role.permissions,
            created_at=now,
            updated_at=now,
        )

    def get_role(self, role_id: str, conn: Connection | None = None) -> Role | None:
        with self._use(conn) as c:
            row = c.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
        return _row_to_role(row) if row is not None else None

    def list_roles(self, tenant_id: str) -> list[Role]:
        """Return the roles of one tenant ordered by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _roles.select().where(_roles.c.tenant_id == tenant_id).order_by(_roles.c.name)
            ).fetchall()
        return [_row_to_role(r) for r in rows]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User, conn: Connection | None = None) -> User:
        """Insert a user and return it with id and timestamps filled in.

        Raises sqlalchemy.exc.IntegrityError if the email already exists in the
        tenant, or the tenant / role does not exist.
        """
        now = _now_iso()
        user_id = user.id or _new_id()
        with self._use(conn) as c:
            c.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    password_hash=user.password_hash,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    is_active=1 if user.is_active else 0,
                    is_super_admin=1 if user.is_super_admin else 0,
                    role_id=user.role_id,
                    tenant_id=user.tenant_id,
                    avatar_url=user.avatar_url,
                    phone=user.phone,
                    job_title=user.job_title,
                    bio=user.bio,
                    created_at=now,
                    updated_at=now,
                )
            )
            row = c.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row)

    def get_user(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_email(self, email: str, tenant_id: str) -> User | None:
        """Look up the one account with this email inside a tenant."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.email == email) & (_users.c.tenant_id == tenant_id))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_users_by_email(self, email: str) -> list[User]:
        """Return every account carrying this email, across all tenants."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.email == email)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_profile(self, user_id: str, **fields) -> User | None:
        """Update profile columns and return the fresh record (None if not found).

        Only names in _PROFILE_FIELDS are accepted; anything else raises
        ValueError before any SQL is built.
        """
        unknown = set(fields) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {sorted(unknown)!r}")
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(updated_at=_now_iso(), **fields)
            )
            if result.rowcount == 0:
                return None
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row)

    def set_password_hash(self, user_id: str, password_hash: str) -> bool:
        """Replace a user's password hash. Returns False if the user does not exist."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(password_hash=password_hash, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def set_active(self, user_id: str, is_active: bool) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(is_active=1 if is_active else 0, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def set_super_admin(self, user_id: str, is_super_admin: bool) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(is_super_admin=1 if is_super_admin else 0, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def update_last_login(self, user_id: str) -> None:
        """Stamp the current UTC timestamp as last_login_at for the given user."""
        with self.engine.begin() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login_at=_now_iso()))

    def deactivate_tenant_users(self, tenant_id: str, conn: Connection | None = None) -> int:
        """Set is_active = 0 on every non-super-admin user of a tenant in one UPDATE.

        Returns the number of rows matched.
        """
        with self._use(conn) as c:
            result = c.execute(
                _users.update()
                .where((_users.c.tenant_id == tenant_id) & (_users.c.is_super_admin == 0))
                .values(is_active=0, updated_at=_now_iso())
            )
        return result.rowcount

    def count_users(self, tenant_id: str | None = None) -> int:
        query = select(func.count()).select_from(_users)
        if tenant_id is not None:
            query = query.where(_users.c.tenant_id == tenant_id)
        with self.engine.connect() as conn:
            return conn.execute(query).scalar() or 0

    def count_tenants(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_tenants)).scalar() or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_tenant(row) -> Tenant:
    return Tenant(
        id=row.id,
        name=row.name,
        domain=row.domain,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_role(row) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        tenant_id=row.tenant_id,
        permissions=PermissionMatrix.from_dict(json.loads(row.permissions or "{}")),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        first_name=row.first_name,
        last_name=row.last_name,
        is_active=bool(row.is_active),
        is_super_admin=bool(row.is_super_admin),
        role_id=row.role_id,
        tenant_id=row.tenant_id,
        avatar_url=row.avatar_url,
        phone=row.phone,
        job_title=row.job_title,
        bio=row.bio,
        last_login_at=row.last_login_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
