"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The only accepted credential is an `Authorization: Bearer <token>` header
carrying a session token minted by SessionTokenIssuer. Tokens live in the
response body, never in cookies.

A token issued before the user's last password change is refused, so
changing or resetting a password logs out every other session.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
require_admin() wraps get_current_user() and raises HTTP 403 if not admin.

The issuer and store are looked up on request.app.state, where the lifespan
in api/main.py put them, so tests can swap either one.

Layer rule: auth/dependencies.py may import from fastapi (for
HTTPException/Request) because this module is part of the FastAPI dependency
injection system. No imports from api/.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import HTTPException, Request

from auth.models import Role, UserRecord
from auth.store import CredentialStore
from auth.tokens import SessionTokenIssuer


def _issued_before_password_change(user: UserRecord, issued_at: datetime) -> bool:
    # iat has whole-second precision, so compare at that precision.
    if user.password_changed_at is None:
        return False
    return int(issued_at.timestamp()) < int(user.password_changed_at.timestamp())


def try_get_current_user(request: Request) -> UserRecord | None:
    """Authenticate the request from its Bearer header.

    Returns the UserRecord (default projection, no password hash) on success,
    None on any failure. Never raises for a bad token.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    issuer: SessionTokenIssuer = request.app.state.issuer
    claims = issuer.decode(auth_header[7:].strip())
    if claims is None:
        return None
    try:
        user_id = int(claims.subject)
    except ValueError:
        return None
    store: CredentialStore = request.app.state.credential_store
    user = store.get_by_id(user_id)
    if user is None or _issued_before_password_change(user, claims.issued_at):
        return None
    return user


def get_current_user(request: Request) -> UserRecord:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: UserRecord = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="You are not logged in. Please log in to get access.")
    return user


def require_admin(request: Request) -> UserRecord:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    user = get_current_user(request)
    if user.role != Role.admin.value:
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action.")
    return user
