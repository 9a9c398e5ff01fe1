"""Unit tests for the permission matrix in auth/models.py and the tenant defaults.

Covers:
- allows() per resource/action, unknown names rejected
- from_dict(): omitted resources get no access, unknown keys raise
- default Admin and User matrices given to new tenants
"""

import pytest

from auth.models import Action, Permission, PermissionMatrix, Resource
from tenancy.defaults import ADMIN_PERMISSIONS, USER_PERMISSIONS


class TestPermissionMatrix:
    def test_empty_matrix_denies_everything(self) -> None:
        matrix = PermissionMatrix()
        assert not any(matrix.allows(r, a) for r in Resource for a in Action)

    def test_allows_accepts_plain_strings(self) -> None:
        matrix = PermissionMatrix(notes=Permission(read=True))
        assert matrix.allows("notes", "read")
        assert not matrix.allows("notes", "delete")

    def test_unknown_resource_name_raises(self) -> None:
        with pytest.raises(ValueError):
            PermissionMatrix().allows("invoices", "read")

    def test_from_dict_fills_missing_resources_with_no_access(self) -> None:
        matrix = PermissionMatrix.from_dict({"contacts": {"read": True, "create": True}})
        assert matrix.contacts == Permission(create=True, read=True)
        assert matrix.users == Permission()

    def test_from_dict_rejects_unknown_resource(self) -> None:
        with pytest.raises(ValueError, match="invoices"):
            PermissionMatrix.from_dict({"invoices": {"read": True}})

    def test_from_dict_rejects_unknown_action(self) -> None:
        with pytest.raises(ValueError, match="export"):
            PermissionMatrix.from_dict({"contacts": {"export": True}})

    def test_to_dict_lists_every_resource(self) -> None:
        assert set(ADMIN_PERMISSIONS.to_dict()) == {r.value for r in Resource}
        assert PermissionMatrix.from_dict(USER_PERMISSIONS.to_dict()) == USER_PERMISSIONS


class TestDefaultMatrices:
    def test_admin_has_full_access_except_tenant_create_delete(self) -> None:
        for resource in Resource:
            if resource is Resource.tenant:
                continue
            assert ADMIN_PERMISSIONS.for_resource(resource) == Permission.full()
        assert ADMIN_PERMISSIONS.tenant == Permission(create=False, read=True, update=True, delete=False)

    def test_user_cannot_touch_roles(self) -> None:
        assert USER_PERMISSIONS.roles == Permission()

    def test_user_reads_users_statuses_tenant(self) -> None:
        for resource in (Resource.users, Resource.statuses, Resource.tenant):
            assert USER_PERMISSIONS.for_resource(resource) == Permission.read_only()

    def test_user_cannot_delete_contacts_or_companies(self) -> None:
        for resource in (Resource.contacts, Resource.companies):
            perm = USER_PERMISSIONS.for_resource(resource)
            assert perm.create and perm.read and perm.update
            assert not perm.delete

    def test_user_has_full_notes_and_reminders(self) -> None:
        assert USER_PERMISSIONS.notes == Permission.full()
        assert USER_PERMISSIONS.reminders == Permission.full()
