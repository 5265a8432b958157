"""Unit tests for auth/passwords.py -- bcrypt hashing and verification."""

import bcrypt
import pytest

from auth.passwords import PasswordHasher


def test_verify_accepts_matching_password(hasher: PasswordHasher) -> None:
    digest = hasher.hash("Secret123")
    assert hasher.verify("Secret123", digest) is True


def test_verify_rejects_different_password(hasher: PasswordHasher) -> None:
    digest = hasher.hash("Secret123")
    assert hasher.verify("Secret124", digest) is False


def test_same_password_hashes_differently(hasher: PasswordHasher) -> None:
    """Each hash embeds its own salt."""
    first = hasher.hash("Secret123")
    second = hasher.hash("Secret123")
    assert first != second
    assert hasher.verify("Secret123", first)
    assert hasher.verify("Secret123", second)


def test_digest_does_not_contain_plaintext(hasher: PasswordHasher) -> None:
    assert "Secret123" not in hasher.hash("Secret123")


@pytest.mark.parametrize("bad_digest", ["", None, "not-a-bcrypt-hash", "$2b$04$short"])
def test_malformed_digest_is_false_not_error(hasher: PasswordHasher, bad_digest) -> None:
    assert hasher.verify("Secret123", bad_digest) is False


def test_empty_plaintext_never_verifies(hasher: PasswordHasher) -> None:
    assert hasher.verify("", hasher.hash("Secret123")) is False


def test_overlong_password_rejected(hasher: PasswordHasher) -> None:
    """bcrypt would truncate past 72 bytes; refuse instead."""
    with pytest.raises(ValueError):
        hasher.hash("x" * 73)


def test_multibyte_password_counted_in_bytes(hasher: PasswordHasher) -> None:
    # 25 three-byte characters = 75 bytes
    with pytest.raises(ValueError):
        hasher.hash("€" * 25)


def test_verify_dummy_returns_nothing(hasher: PasswordHasher) -> None:
    assert hasher.verify_dummy("whatever") is None


def test_dummy_hash_built_on_first_use_only(monkeypatch) -> None:
    calls = []
    real_hashpw = bcrypt.hashpw

    def counting_hashpw(password, salt):
        calls.append(password)
        return real_hashpw(password, salt)

    monkeypatch.setattr(bcrypt, "hashpw", counting_hashpw)
    hasher = PasswordHasher(rounds=4)
    assert calls == []
    hasher.verify_dummy("first")
    hasher.verify_dummy("second")
    assert len(calls) == 1
