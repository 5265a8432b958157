"""Unit tests for auth/reset_tokens.py -- reset token issuance and checking."""

import hashlib
import re
from datetime import timedelta

from auth.reset_tokens import ResetTokenManager


def test_issue_returns_64_hex_chars(clock) -> None:
    issued = ResetTokenManager(clock=clock).issue()
    assert re.fullmatch(r"[0-9a-f]{64}", issued.token)


def test_digest_is_sha256_of_token(clock) -> None:
    issued = ResetTokenManager(clock=clock).issue()
    assert issued.digest == hashlib.sha256(issued.token.encode()).hexdigest()
    assert issued.digest != issued.token


def test_expiry_is_ten_minutes_after_issue(clock) -> None:
    issued = ResetTokenManager(clock=clock).issue()
    assert issued.expires_at == clock.current + timedelta(minutes=10)


def test_tokens_are_unique(clock) -> None:
    manager = ResetTokenManager(clock=clock)
    assert len({manager.issue().token for _ in range(50)}) == 50


def test_verify_true_before_expiry(clock) -> None:
    manager = ResetTokenManager(clock=clock)
    issued = manager.issue()
    assert manager.verify(issued.token, issued.digest, issued.expires_at, clock.current + timedelta(minutes=9))


def test_verify_false_at_and_after_expiry(clock) -> None:
    manager = ResetTokenManager(clock=clock)
    issued = manager.issue()
    assert not manager.verify(issued.token, issued.digest, issued.expires_at, issued.expires_at)
    assert not manager.verify(issued.token, issued.digest, issued.expires_at, issued.expires_at + timedelta(seconds=1))


def test_verify_uses_clock_when_now_omitted(clock) -> None:
    manager = ResetTokenManager(clock=clock)
    issued = manager.issue()
    assert manager.verify(issued.token, issued.digest, issued.expires_at)
    clock.advance(minutes=11)
    assert not manager.verify(issued.token, issued.digest, issued.expires_at)


def test_verify_rejects_other_token(clock) -> None:
    manager = ResetTokenManager(clock=clock)
    issued = manager.issue()
    other = manager.issue()
    assert not manager.verify(other.token, issued.digest, issued.expires_at, clock.current)


def test_verify_rejects_missing_digest_or_expiry(clock) -> None:
    manager = ResetTokenManager(clock=clock)
    issued = manager.issue()
    assert not manager.verify(issued.token, None, issued.expires_at, clock.current)
    assert not manager.verify(issued.token, issued.digest, None, clock.current)


def test_repr_hides_plaintext(clock) -> None:
    issued = ResetTokenManager(clock=clock).issue()
    assert issued.token not in repr(issued)


def test_custom_window(clock) -> None:
    issued = ResetTokenManager(window=timedelta(minutes=30), clock=clock).issue()
    assert issued.expires_at - clock.current == timedelta(minutes=30)
