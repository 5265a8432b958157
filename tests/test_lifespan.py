"""
tests/test_lifespan.py -- Startup/shutdown wiring and the background purge task.

Covers:
  - lifespan publishes the auth components on app.state and closes them on shutdown
  - the purge task is awaited to completion on shutdown
  - one failing purge pass is logged and the loop keeps running
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from types import SimpleNamespace

from fastapi import FastAPI

from api.main import _purge_loop, lifespan
from auth.reset_tokens import ResetTokenManager
from auth.service import AuthService
from auth.store import CredentialStore
from core.config import get_settings


class FlakyStore:
    """Purge stand-in: the first call blows up, later calls succeed."""

    def __init__(self) -> None:
        self.calls = 0

    def purge_expired_reset_tokens(self, now) -> int:
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("table is gone")
        return 1


def test_lifespan_wires_state_and_stops_purge_task(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "database_url", f"sqlite:///{tmp_path / 'campusauth.db'}")
    app = FastAPI()

    async def run() -> asyncio.Task:
        async with lifespan(app):
            assert isinstance(app.state.auth_service, AuthService)
            assert isinstance(app.state.credential_store, CredentialStore)
            assert app.state.issuer is app.state.auth_service.issuer
            assert app.state.credential_store.ping()
        return app.state.purge_task

    task = asyncio.run(run())
    assert task.done()
    assert task.cancelled()


def test_purge_loop_survives_a_failed_pass(caplog) -> None:
    store = FlakyStore()
    app = SimpleNamespace(state=SimpleNamespace(credential_store=store, reset_tokens=ResetTokenManager()))

    async def run() -> None:
        task = asyncio.create_task(_purge_loop(app, 0))
        while store.calls < 2:
            await asyncio.sleep(0.01)
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    with caplog.at_level(logging.ERROR, logger="campusauth.api"):
        asyncio.run(asyncio.wait_for(run(), timeout=5))

    assert store.calls >= 2
    assert "Reset token purge failed" in caplog.text
