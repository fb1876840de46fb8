"""auth/ -- Accounts, password hashing, access tokens and refresh-token sessions.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or reports/.
api/ imports from auth/, not the other way around.
"""
