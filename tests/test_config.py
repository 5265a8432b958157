"""Unit tests for core/config.py -- SECRET_KEY policy and defaults."""

from __future__ import annotations

import pytest

from auth.tokens import SigningKeySet
from core.config import Settings

GOOD_KEY = "k" * 32


def test_production_requires_secret_key() -> None:
    with pytest.raises(ValueError, match="SECRET_KEY is required"):
        Settings(debug=False, secret_key="")


def test_debug_generates_secret_key() -> None:
    settings = Settings(debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_short_secret_key_rejected() -> None:
    with pytest.raises(ValueError, match="at least 32 characters"):
        Settings(debug=True, secret_key="too-short")


def test_short_previous_key_rejected() -> None:
    with pytest.raises(ValueError, match="PREVIOUS_SECRET_KEYS"):
        Settings(secret_key=GOOD_KEY, previous_secret_keys=["short"])


def test_defaults() -> None:
    settings = Settings(secret_key=GOOD_KEY)
    assert settings.reset_token_expire_minutes == 10
    assert settings.jwt_algorithm == "HS256"
    assert settings.reset_hides_unknown_email is False


def test_previous_keys_from_env(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", GOOD_KEY)
    monkeypatch.setenv("PREVIOUS_SECRET_KEYS", '["' + "p" * 32 + '"]')
    settings = Settings()
    keys = SigningKeySet.from_settings(settings)
    assert keys.active.secret == GOOD_KEY
    assert [k.secret for k in keys.previous] == ["p" * 32]
