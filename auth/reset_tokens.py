"""
auth/reset_tokens.py -- Password reset token issuance and verification.

Security design:
  secrets.token_hex(32) gives 256 bits of entropy as 64 hex characters. The
  plaintext is handed to the requester once; the store keeps only
  sha256(token). A read-only leak of the user table therefore cannot be turned
  into a working reset link.

  sha256 rather than bcrypt: the token is already high-entropy, so slow hashing
  buys nothing, and a deterministic digest lets the store find the owning user
  with a single indexed lookup.

  Expiry is lazy. An expired digest is never matched; the background purge in
  api/main.py (and `main.py purge-reset-tokens`) only tidies the rows.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

RESET_TOKEN_BYTES = 32
DEFAULT_RESET_WINDOW = timedelta(minutes=10)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedResetToken:
    """A freshly minted reset token.

    token is the bearer secret for the user. digest and expires_at are what
    the store persists.
    """

    token: str
    digest: str
    expires_at: datetime

    def __repr__(self) -> str:
        # Keep the plaintext out of tracebacks and debug logs.
        return f"IssuedResetToken(digest={self.digest[:8]}..., expires_at={self.expires_at.isoformat()})"


class ResetTokenManager:
    """Mint and check time-bounded password reset tokens.

    Usage:
        manager = ResetTokenManager()
        issued = manager.issue()
        store.set_reset_token(user.id, issued.digest, issued.expires_at)
        ...
        manager.verify(presented, user.password_reset_digest, user.password_reset_expires_at)
    """

    def __init__(
        self,
        window: timedelta = DEFAULT_RESET_WINDOW,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.window = window
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    @staticmethod
    def digest(token: str) -> str:
        """Return the hex sha256 digest stored in place of the token."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    def issue(self) -> IssuedResetToken:
        token = secrets.token_hex(RESET_TOKEN_BYTES)
        return IssuedResetToken(
            token=token,
            digest=self.digest(token),
            expires_at=self.now() + self.window,
        )

    def verify(
        self,
        token: str,
        stored_digest: str | None,
        stored_expires_at: datetime | None,
        now: datetime | None = None,
    ) -> bool:
        """Return True only if token hashes to stored_digest and the expiry is still ahead.

        Absent digest or expiry means no reset is outstanding.
        """
        if not token or not stored_digest or stored_expires_at is None:
            return False
        now = now or self.now()
        if not hmac.compare_digest(self.digest(token), stored_digest):
            return False
        return stored_expires_at > now
