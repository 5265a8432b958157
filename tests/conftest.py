"""
tests/conftest.py -- Shared test fixtures for the campus auth test suite.

This module provides:
  - hasher / store / service: an isolated AuthService over a fresh in-memory DB
  - clock: a controllable clock driving reset token expiry
  - api_client: TestClient over the real FastAPI app with the patched lifespan
  - admin_headers: Authorization header for a pre-created admin account

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process. Each
fixture instance gets its own name so tests never see each other's users.

bcrypt runs with rounds=4 (the minimum) to keep the suite fast.

DEBUG and RATE_LIMIT_ENABLED must be set before any app import so
get_settings() auto-generates SECRET_KEY and the limiter is created disabled.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timedelta, timezone

# CRITICAL: Set these before any auth/core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app, attach_auth_state
from auth.models import Role, UserRecord
from auth.passwords import PasswordHasher
from auth.reset_tokens import ResetTokenManager
from auth.service import AuthService
from auth.store import CredentialStore
from auth.tokens import SessionTokenIssuer, SigningKeySet

TEST_SECRET = "test-signing-key-0123456789abcdef0123456789"


class FakeClock:
    """Callable clock whose time only moves when a test advances it."""

    def __init__(self) -> None:
        self.current = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def _memory_db_url() -> str:
    return f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def store(hasher: PasswordHasher) -> Generator[CredentialStore, None, None]:
    s = CredentialStore(hasher, db_url=_memory_db_url())
    yield s
    s.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def signing_keys() -> SigningKeySet:
    return SigningKeySet.from_secrets(TEST_SECRET)


@pytest.fixture
def issuer(signing_keys: SigningKeySet) -> SessionTokenIssuer:
    return SessionTokenIssuer(signing_keys, expire_seconds=3600)


@pytest.fixture
def service(store: CredentialStore, hasher: PasswordHasher, issuer: SessionTokenIssuer, clock: FakeClock) -> AuthService:
    return AuthService(store, hasher, ResetTokenManager(clock=clock), issuer)


def _patch_lifespan(service: AuthService, store: CredentialStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the test AuthService into app.state so routes hit the isolated DB.
    The purge_task is a long-sleeping coroutine (a real asyncio.Task is
    required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        attach_auth_state(app, service, store)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()
        with suppress(asyncio.CancelledError):
            await app.state.purge_task

    return test_lifespan


@pytest.fixture
def api_client(service: AuthService, store: CredentialStore) -> Generator[TestClient, None, None]:
    """TestClient over the real app, wired to the per-test service and store."""
    app.router.lifespan_context = _patch_lifespan(service, store)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture
def admin_headers(store: CredentialStore, issuer: SessionTokenIssuer) -> dict[str, str]:
    uid = store.create_user(UserRecord(email="admin@campus.edu", role=Role.admin.value), "adminpass123")
    return {"Authorization": f"Bearer {issuer.issue(uid)}"}
