"""api/deps.py -- FastAPI Depends() accessors for objects created in the lifespan."""

from __future__ import annotations

from fastapi import Request

from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service
