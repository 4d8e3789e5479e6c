"""auth/ -- Session credentials, OAuth2 login, and the request identity gate for SessionGate.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/.
api/ imports from auth/, not the other way around.
"""
