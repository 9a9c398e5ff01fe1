"""
tests/test_auth_routes.py -- Integration tests for /api/v1/auth/*.

Covers:
  - register -> token -> /me end to end, no password field on the wire
  - login: wrong password, unknown domain, disabled account, ambiguous email
  - auth guard: missing header, garbage, expired token, deactivated user,
    missing signing secret
  - register: duplicate email, cross-tenant role, unknown tenant
  - update-password and update-profile, null clears optional profile fields
  - passwords: 72-byte limit, never trimmed
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from conftest import seed_user

from api.main import app

PASSWORD = "password1"


def _login(client, email, password=PASSWORD, domain="t1.example"):
    body = {"email": email, "password": password}
    if domain is not None:
        body["tenantDomain"] = domain
    return client.post("/api/v1/auth/login", json=body)


class TestRegisterThenMe:
    def test_end_to_end(self, api_env):
        client = api_env.client
        resp = client.post(
            "/api/v1/auth/register",
            json={"email": "a@x.com", "password": "secret1", "tenantId": "T1", "roleId": "R1"},
        )
        assert resp.status_code == 201
        assert resp.headers["Cache-Control"] == "no-store"
        data = resp.json()
        assert data["token"]
        assert data["email"] == "a@x.com"
        assert data["tenantId"] == "T1"
        assert "password" not in data and "passwordHash" not in data

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert me.status_code == 200
        body = me.json()
        assert body["email"] == "a@x.com"
        assert body["role"]["id"] == "R1"
        assert body["tenant"]["domain"] == "t1.example"
        assert "password" not in body and "passwordHash" not in body

    def test_duplicate_email_in_same_tenant(self, api_env):
        resp = api_env.client.post(
            "/api/v1/auth/register",
            json={"email": "member@t1.example", "password": "secret1", "tenantId": "T1", "roleId": "R1-user"},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "conflict"

    def test_same_email_in_other_tenant_is_allowed(self, api_env):
        resp = api_env.client.post(
            "/api/v1/auth/register",
            json={"email": "member@t1.example", "password": "secret1", "tenantId": "T2", "roleId": "T2-user"},
        )
        assert resp.status_code == 201
        assert resp.json()["tenantId"] == "T2"

    def test_role_from_other_tenant_rejected(self, api_env):
        resp = api_env.client.post(
            "/api/v1/auth/register",
            json={"email": "x@t1.example", "password": "secret1", "tenantId": "T1", "roleId": "T2-admin"},
        )
        assert resp.status_code == 400
        assert api_env.store.get_user_by_email("x@t1.example", "T1") is None

    def test_unknown_tenant(self, api_env):
        resp = api_env.client.post(
            "/api/v1/auth/register",
            json={"email": "y@t1.example", "password": "secret1", "tenantId": "nope", "roleId": "R1"},
        )
        assert resp.status_code == 404

    def test_missing_fields(self, api_env):
        resp = api_env.client.post("/api/v1/auth/register", json={"email": "z@x.com"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert "password" in body["error"]

    def test_multibyte_password_over_72_bytes(self, api_env):
        resp = api_env.client.post(
            "/api/v1/auth/register",
            json={"email": "long@t1.example", "password": "é" * 40, "tenantId": "T1", "roleId": "R1-user"},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"
        assert api_env.store.get_user_by_email("long@t1.example", "T1") is None

    def test_password_stored_as_typed(self, api_env):
        resp = api_env.client.post(
            "/api/v1/auth/register",
            json={"email": "spaces@t1.example", "password": "  secret1  ", "tenantId": "T1", "roleId": "R1-user"},
        )
        assert resp.status_code == 201
        assert _login(api_env.client, "spaces@t1.example", password="secret1").status_code == 401
        assert _login(api_env.client, "spaces@t1.example", password="  secret1  ").status_code == 200

    def test_identifiers_are_trimmed(self, api_env):
        resp = api_env.client.post(
            "/api/v1/auth/register",
            json={"email": "  trim@t1.example ", "password": "secret1", "tenantId": " T1 ", "roleId": "R1-user"},
        )
        assert resp.status_code == 201
        assert resp.json()["email"] == "trim@t1.example"


class TestLogin:
    def test_success_returns_user_and_token(self, api_env):
        resp = _login(api_env.client, "admin@t1.example")
        assert resp.status_code == 200
        assert resp.headers["Cache-Control"] == "no-store"
        data = resp.json()
        assert data["token"]
        assert data["user"]["email"] == "admin@t1.example"
        assert data["user"]["role"]["name"] == "Admin"
        assert data["user"]["lastLoginAt"] is not None
        assert "passwordHash" not in data["user"]

    def test_wrong_password(self, api_env):
        resp = _login(api_env.client, "admin@t1.example", password="wrong-one")
        assert resp.status_code == 401
        assert resp.json()["error"] == "Incorrect password."

    def test_unknown_domain(self, api_env):
        resp = _login(api_env.client, "admin@t1.example", domain="nowhere.example")
        assert resp.status_code == 404

    def test_unknown_user(self, api_env):
        resp = _login(api_env.client, "ghost@t1.example")
        assert resp.status_code == 404

    def test_without_domain_for_unique_email(self, api_env):
        resp = _login(api_env.client, "admin@t1.example", domain=None)
        assert resp.status_code == 200

    def test_without_domain_for_shared_email(self, api_env):
        seed_user(api_env.store, "twice@x.com", PASSWORD, "T1", "R1-user")
        seed_user(api_env.store, "twice@x.com", PASSWORD, "T2", "T2-user")
        resp = _login(api_env.client, "twice@x.com", domain=None)
        assert resp.status_code == 400
        assert _login(api_env.client, "twice@x.com", domain="t2.example").status_code == 200

    def test_disabled_account(self, api_env):
        seed_user(api_env.store, "off@t1.example", PASSWORD, "T1", "R1-user", is_active=False)
        resp = _login(api_env.client, "off@t1.example")
        assert resp.status_code == 401
        assert resp.json()["code"] == "account_disabled"


class TestAuthGuard:
    def test_missing_header(self, api_env):
        resp = api_env.client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["code"] == "unauthenticated"

    def test_non_bearer_scheme(self, api_env):
        resp = api_env.client.get("/api/v1/auth/me", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401

    def test_garbage_token(self, api_env):
        resp = api_env.client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "invalid_token"

    def test_expired_token(self, api_env):
        user = api_env.member
        token = api_env.codec.issue(
            user.id, user.email, user.tenant_id, now=datetime.now(timezone.utc) - timedelta(days=2)
        )
        resp = api_env.client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "token_expired"

    def test_token_for_deleted_user(self, api_env):
        token = api_env.codec.issue("no-such-user", "ghost@t1.example", "T1")
        resp = api_env.client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_deactivation_is_effective_immediately(self, api_env):
        user = seed_user(api_env.store, "soon-off@t1.example", PASSWORD, "T1", "R1-user")
        headers = api_env.headers_for(user)
        assert api_env.client.get("/api/v1/auth/me", headers=headers).status_code == 200

        api_env.store.set_active(user.id, False)
        resp = api_env.client.get("/api/v1/auth/me", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["code"] == "account_disabled"

    def test_missing_secret_is_server_error(self, api_env):
        saved = app.state.token_codec
        app.state.token_codec = None
        try:
            me = api_env.client.get("/api/v1/auth/me", headers=api_env.headers_for(api_env.member))
            login = _login(api_env.client, "member@t1.example")
        finally:
            app.state.token_codec = saved
        assert me.status_code == 500
        assert me.json()["code"] == "configuration_error"
        assert login.status_code == 500


class TestSelfService:
    @pytest.fixture
    def account(self, api_env):
        user = seed_user(api_env.store, f"self-{uuid.uuid4().hex[:8]}@t1.example", PASSWORD, "T1", "R1-user")
        return user, api_env.headers_for(user)

    def test_update_password(self, api_env, account):
        user, headers = account
        resp = api_env.client.put(
            "/api/v1/auth/update-password",
            json={"currentPassword": PASSWORD, "newPassword": "brand-new-pw"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert _login(api_env.client, user.email, password="brand-new-pw").status_code == 200
        assert _login(api_env.client, user.email).status_code == 401

    def test_update_password_wrong_current(self, api_env, account):
        _user, headers = account
        resp = api_env.client.put(
            "/api/v1/auth/update-password",
            json={"currentPassword": "not-it", "newPassword": "brand-new-pw"},
            headers=headers,
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == "bad_credentials"

    def test_update_profile(self, api_env, account):
        user, headers = account
        resp = api_env.client.put(
            "/api/v1/auth/update-profile",
            json={"jobTitle": "Account Manager", "phone": "+1 555 0100"},
            headers=headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["jobTitle"] == "Account Manager"
        assert data["firstName"] == user.first_name
        assert "passwordHash" not in data

    def test_update_profile_empty_body(self, api_env, account):
        _user, headers = account
        resp = api_env.client.put("/api/v1/auth/update-profile", json={}, headers=headers)
        assert resp.status_code == 400

    def test_update_password_over_72_bytes(self, api_env, account):
        user, headers = account
        resp = api_env.client.put(
            "/api/v1/auth/update-password",
            json={"currentPassword": PASSWORD, "newPassword": "é" * 40},
            headers=headers,
        )
        assert resp.status_code == 400
        assert _login(api_env.client, user.email).status_code == 200

    def test_update_profile_null_clears_field(self, api_env, account):
        _user, headers = account
        api_env.client.put("/api/v1/auth/update-profile", json={"phone": "+1 555 0100"}, headers=headers)
        resp = api_env.client.put("/api/v1/auth/update-profile", json={"phone": None}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["phone"] is None

    def test_update_profile_name_cannot_be_null(self, api_env, account):
        user, headers = account
        resp = api_env.client.put("/api/v1/auth/update-profile", json={"firstName": None}, headers=headers)
        assert resp.status_code == 400
        assert api_env.store.get_user(user.id).first_name == user.first_name
