"""
tenancy/defaults.py -- Permission matrices given to every new tenant.

A tenant admin can do everything inside the tenant except create or delete
tenants. A regular user works on contacts, companies, notes and reminders,
reads users, statuses and its own tenant, and has no access to roles.
"""

from auth.models import Permission, PermissionMatrix

ADMIN_ROLE_NAME = "Admin"
USER_ROLE_NAME = "User"

ADMIN_PERMISSIONS = PermissionMatrix(
    users=Permission.full(),
    contacts=Permission.full(),
    companies=Permission.full(),
    statuses=Permission.full(),
    roles=Permission.full(),
    notes=Permission.full(),
    reminders=Permission.full(),
    tenant=Permission(create=False, read=True, update=True, delete=False),
)

# Create/read/update without delete.
_WORK_NO_DELETE = Permission(create=True, read=True, update=True, delete=False)

USER_PERMISSIONS = PermissionMatrix(
    users=Permission.read_only(),
    contacts=_WORK_NO_DELETE,
    companies=_WORK_NO_DELETE,
    statuses=Permission.read_only(),
    roles=Permission(),
    notes=Permission.full(),
    reminders=Permission.full(),
    tenant=Permission.read_only(),
)
