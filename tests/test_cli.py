"""Tests for main.py -- the administrative CLI."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

import main
from auth.models import UserRecord
from auth.passwords import PasswordHasher
from auth.store import CredentialStore


@pytest.fixture
def db_url():
    """Named shared-memory DB kept alive by a holder connection for the test's duration."""
    url = f"sqlite:///file:test_cli_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    holder = CredentialStore(PasswordHasher(rounds=4), db_url=url)
    yield url
    holder.close()


def test_create_user_with_role(db_url: str, capsys) -> None:
    args = ["--db-url", db_url, "create-user", "--email", "Dean@Campus.edu", "--role", "admin", "--password", "Secret123"]
    code = main.main(args)
    assert code == 0
    assert "Created admin account" in capsys.readouterr().out

    store = CredentialStore(PasswordHasher(rounds=4), db_url=db_url)
    user = store.get_by_email("dean@campus.edu")
    assert user.role == "admin"


def test_create_user_duplicate_fails(db_url: str, capsys) -> None:
    args = ["--db-url", db_url, "create-user", "--email", "prof@campus.edu", "--password", "Secret123"]
    assert main.main(args) == 0
    assert main.main(args) == 1
    assert "already exists" in capsys.readouterr().out


def test_create_user_prompts_for_password(db_url: str, monkeypatch) -> None:
    answers = iter(["Secret123", "Secret123"])
    monkeypatch.setattr(main.getpass, "getpass", lambda prompt: next(answers))
    assert main.main(["--db-url", db_url, "create-user", "--email", "prof@campus.edu"]) == 0


def test_create_user_password_mismatch(db_url: str, monkeypatch) -> None:
    answers = iter(["Secret123", "Secret124"])
    monkeypatch.setattr(main.getpass, "getpass", lambda prompt: next(answers))
    with pytest.raises(SystemExit):
        main.main(["--db-url", db_url, "create-user", "--email", "prof@campus.edu"])


def test_purge_reset_tokens(db_url: str, capsys) -> None:
    store = CredentialStore(PasswordHasher(rounds=4), db_url=db_url)
    uid = store.create_user(UserRecord(email="a@x.com"), "Secret123")
    store.set_reset_token(uid, "a" * 64, datetime.now(timezone.utc) - timedelta(minutes=1))

    assert main.main(["--db-url", db_url, "purge-reset-tokens"]) == 0
    assert "Purged 1 expired reset token(s)" in capsys.readouterr().out
    assert store.get_by_id(uid).password_reset_digest is None
