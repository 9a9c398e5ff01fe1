#!/usr/bin/env python3
"""
Operator CLI for the CRM core.

There is no HTTP route that grants the super-admin flag. The first operator
is created here, against the same database the API uses (DATABASE_URL).

Usage:
  python main.py provision-tenant --name Acme --domain acme.example \\
      --admin-email root@acme.example --admin-password 's3cret!'
  python main.py create-super-admin --tenant-domain acme.example \\
      --email ops@acme.example --password 'long-pass' --first-name Ops --last-name Team
  python main.py disable-tenant TENANT_ID
  python main.py list-tenants

Environment variables:
  DATABASE_URL    SQLAlchemy URL of the store (default: SQLite file in the repo root)
  BCRYPT_ROUNDS   Password hashing work factor (default 12)
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.passwords import hash_password
from auth.store import CredentialStore
from core.config import get_settings
from core.errors import AppError
from tenancy.lifecycle import disable_tenant
from tenancy.provisioning import TenantProvisioner

logger = logging.getLogger("crm.cli")


def _password(value: Optional[str], prompt: str) -> str:
    """Return the flag value, or prompt without echo when it was omitted."""
    if value:
        return value
    return getpass.getpass(prompt)


def cmd_provision_tenant(store: CredentialStore, args: argparse.Namespace) -> int:
    bundle = TenantProvisioner(store).provision(
        name=args.name,
        domain=args.domain,
        admin_email=args.admin_email,
        admin_password=_password(args.admin_password, "Admin password: "),
    )
    print(f"Tenant      {bundle.tenant.id}  {bundle.tenant.name} ({bundle.tenant.domain})")
    print(f"Admin role  {bundle.admin_role.id}")
    print(f"User role   {bundle.user_role.id}")
    print(f"Admin user  {bundle.admin_user.id}  {bundle.admin_user.email}")
    return 0


def cmd_create_super_admin(store: CredentialStore, args: argparse.Namespace) -> int:
    tenant = store.get_tenant_by_domain(args.tenant_domain)
    if tenant is None:
        print(f"  [!] No tenant with domain '{args.tenant_domain}'.", file=sys.stderr)
        return 1
    try:
        user = store.create_user(
            User(
                email=args.email,
                password_hash=hash_password(_password(args.password, "Super admin password: ")),
                first_name=args.first_name,
                last_name=args.last_name,
                tenant_id=tenant.id,
                role_id=None,
                is_active=True,
                is_super_admin=True,
            )
        )
    except IntegrityError:
        print(f"  [!] '{args.email}' already exists in tenant {args.tenant_domain}.", file=sys.stderr)
        return 1
    logger.info("Created super admin %s in tenant %s", user.id, tenant.id)
    print(f"Super admin {user.id}  {user.email}")
    return 0


def cmd_disable_tenant(store: CredentialStore, args: argparse.Namespace) -> int:
    count = disable_tenant(store, args.tenant_id)
    print(f"Disabled {count} user(s) in tenant {args.tenant_id}.")
    return 0


def cmd_list_tenants(store: CredentialStore, args: argparse.Namespace) -> int:
    rows = store.list_tenants_with_stats()
    if not rows:
        print("No tenants.")
        return 0
    print(f"{'ID':36}  {'DOMAIN':30}  {'USERS':>5}  {'ACTIVE':>6}  {'ROLES':>5}  NAME")
    for tenant, stats in rows:
        print(
            f"{tenant.id:36}  {tenant.domain:30}  {stats.user_count:>5}  "
            f"{stats.active_user_count:>6}  {stats.role_count:>5}  {tenant.name}"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crm-core",
        description="Tenant and operator administration for the CRM core.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--database-url", metavar="URL", help="Override DATABASE_URL for this run")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("provision-tenant", help="Create a tenant with its default roles and first admin")
    p.add_argument("--name", required=True)
    p.add_argument("--domain", required=True)
    p.add_argument("--admin-email", required=True)
    p.add_argument("--admin-password", help="Prompted for when omitted")
    p.set_defaults(func=cmd_provision_tenant)

    p = sub.add_parser("create-super-admin", help="Create a cross-tenant operator account")
    p.add_argument("--tenant-domain", required=True, help="Home tenant of the operator account")
    p.add_argument("--email", required=True)
    p.add_argument("--password", help="Prompted for when omitted")
    p.add_argument("--first-name", default="Super")
    p.add_argument("--last-name", default="Admin")
    p.set_defaults(func=cmd_create_super_admin)

    p = sub.add_parser("disable-tenant", help="Deactivate every non-super-admin user of a tenant")
    p.add_argument("tenant_id", metavar="TENANT_ID")
    p.set_defaults(func=cmd_disable_tenant)

    p = sub.add_parser("list-tenants", help="Show tenants with user and role counts")
    p.set_defaults(func=cmd_list_tenants)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    args = build_parser().parse_args(argv)
    store = CredentialStore(args.database_url or get_settings().database_url)
    try:
        return args.func(store, args)
    except AppError as exc:
        print(f"  [!] {exc.message}", file=sys.stderr)
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
