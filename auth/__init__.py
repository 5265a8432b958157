"""auth/ -- Credential and session-authentication engine.

Layer rule: auth/ imports only stdlib + third-party libraries (plus core/ for
SigningKeySet.from_settings). It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
