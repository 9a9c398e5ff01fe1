"""
tests/conftest.py -- Shared test fixtures.

This module provides:
  - store: a fresh in-memory CredentialStore per test (unit tests)
  - seed_tenant(): helper that writes a tenant plus a role through the store
  - api_env: module-scoped TestClient wired to an isolated store, with two
    tenants, their roles, a tenant admin, a regular user and a super admin

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API fixture because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

Environment variables must be set before any project import so
get_settings() picks them up: a fixed SECRET_KEY, a low bcrypt work factor,
a permissive login rate limit and the TestClient host.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: configure settings before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef-0123456789")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Role, Tenant, User
from auth.passwords import hash_password
from auth.store import CredentialStore
from auth.tokens import TokenCodec
from tenancy.defaults import ADMIN_PERMISSIONS, USER_PERMISSIONS

TEST_SECRET = os.environ["SECRET_KEY"]


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[CredentialStore, None, None]:
    s = CredentialStore("sqlite:///:memory:")
    yield s
    s.close()


def seed_tenant(store: CredentialStore, tenant_id: str, domain: str) -> tuple[Tenant, Role, Role]:
    """Create a tenant with Admin and User roles whose ids derive from tenant_id."""
    tenant = store.create_tenant(Tenant(id=tenant_id, name=f"Tenant {tenant_id}", domain=domain))
    admin_role = store.create_role(
        Role(id=f"{tenant_id}-admin", name="Admin", tenant_id=tenant.id, permissions=ADMIN_PERMISSIONS)
    )
    user_role = store.create_role(
        Role(id=f"{tenant_id}-user", name="User", tenant_id=tenant.id, permissions=USER_PERMISSIONS)
    )
    return tenant, admin_role, user_role


def seed_user(
    store: CredentialStore,
    email: str,
    password: str,
    tenant_id: str,
    role_id: str | None,
    is_super_admin: bool = False,
    is_active: bool = True,
) -> User:
    return store.create_user(
        User(
            email=email,
            password_hash=hash_password(password),
            first_name="Test",
            last_name="User",
            tenant_id=tenant_id,
            role_id=role_id,
            is_super_admin=is_super_admin,
            is_active=is_active,
        )
    )


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


@dataclass
class ApiEnv:
    client: TestClient
    store: CredentialStore
    codec: TokenCodec
    tenant_admin: User
    member: User
    super_admin: User

    def headers_for(self, user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.codec.issue(user.id, user.email, user.tenant_id)}"}


def _patch_lifespan(store: CredentialStore, codec: TokenCodec):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.token_codec = codec
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_env(request) -> Generator[ApiEnv, None, None]:
    """Yield an ApiEnv for API integration tests.

    Tenants: T1 (t1.example) with roles R1 (Admin) and R1-user (User), and
    T2 (t2.example) with its own pair. Users: admin@t1.example (Admin role),
    member@t1.example (User role), ops@t1.example (super admin, no role).
    All passwords are "password1".
    """
    db_name = request.module.__name__.replace(".", "_")
    store = CredentialStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    codec = TokenCodec(TEST_SECRET)

    t1 = store.create_tenant(Tenant(id="T1", name="Tenant One", domain="t1.example"))
    store.create_role(Role(id="R1", name="Admin", tenant_id=t1.id, permissions=ADMIN_PERMISSIONS))
    store.create_role(Role(id="R1-user", name="User", tenant_id=t1.id, permissions=USER_PERMISSIONS))
    seed_tenant(store, "T2", "t2.example")

    tenant_admin = seed_user(store, "admin@t1.example", "password1", "T1", "R1")
    member = seed_user(store, "member@t1.example", "password1", "T1", "R1-user")
    super_admin = seed_user(store, "ops@t1.example", "password1", "T1", None, is_super_admin=True)

    app.router.lifespan_context = _patch_lifespan(store, codec)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiEnv(
            client=client,
            store=store,
            codec=codec,
            tenant_admin=tenant_admin,
            member=member,
            super_admin=super_admin,
        )

    store.close()
