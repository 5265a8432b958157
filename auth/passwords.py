"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

bcrypt embeds its per-call salt in the output, so two hashes of the same
password differ and verification needs nothing but the stored digest.

Nothing in this module logs. Plaintext and digests must never reach a log line.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import bcrypt

# bcrypt silently ignores everything past 72 bytes (newer releases raise).
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted one-way hashing and constant-time verification of passwords.

    Usage:
        hasher = PasswordHasher()
        digest = hasher.hash("Secret123")
        hasher.verify("Secret123", digest)   # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password.

        Raises ValueError for passwords longer than 72 UTF-8 bytes instead of
        letting bcrypt truncate them.
        """
        encoded = plain.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        A missing or malformed hash is a mismatch, never an exception.
        """
        if not plain or not hashed:
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except Exception:
            return False

    def verify_dummy(self, plain: str) -> None:
        """Spend one bcrypt check on a throwaway hash.

        Called when the account does not exist so the response takes as long
        as a wrong-password check and does not reveal which case occurred.
        """
        if self._dummy_hash is None:
            # Built on first use at this hasher's cost, so callers that never
            # check an unknown account never pay for it.
            self._dummy_hash = self.hash("campusauth_timing_dummy")
        self.verify(plain or "x", self._dummy_hash)
