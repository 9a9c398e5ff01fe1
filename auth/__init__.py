"""auth/ -- Authentication and authorization package.

Credential store, password hashing, session tokens, and the request guards.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or tenancy/.
api/ and tenancy/ import from auth/, not the other way around.
"""
