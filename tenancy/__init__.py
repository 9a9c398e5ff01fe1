"""tenancy/ -- Tenant provisioning and lifecycle operations for super admins.

Layer rule: tenancy/ imports from auth/ and core/ only. api/ and the CLI call
into tenancy/; tenancy/ knows nothing about HTTP.
"""
