"""auth/ -- Credentials, bearer tokens, and authorization for Surveyor.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or survey/.
api/ imports from auth/, not the other way around.
"""
