"""
auth/tokens.py -- Session (bearer) token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry only the subject id plus iat/exp.
       Role and profile data are re-read from the store on every request, so a
       role change takes effect without waiting for old tokens to expire.

  Keys: the issuer is handed an explicit SigningKeySet at construction. It
       never reads configuration at call time, which keeps tests free to
       inject their own keys and leaves room for rotation: the active key
       signs, previous keys only verify. Every token names its key in the
       `kid` header so verification does not have to try each key.

  Failure: decode() and verify() return None on any parse, signature, expiry, or claim
       problem. There is no partial trust -- callers turn None into a 401.

Layer rule: no imports from api/. Import from core/ is allowed for
SigningKeySet.from_settings() only.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

if TYPE_CHECKING:
    from core.config import Settings

_DEFAULT_ALGORITHM = "HS256"


def _key_id(secret: str) -> str:
    """Stable, non-reversible identifier for a signing secret."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class SigningKey:
    secret: str = field(repr=False)
    kid: str = ""

    def __post_init__(self) -> None:
        if not self.kid:
            object.__setattr__(self, "kid", _key_id(self.secret))


@dataclass(frozen=True)
class SigningKeySet:
    """The active signing key plus any keys that are still accepted for verification."""

    active: SigningKey
    previous: tuple[SigningKey, ...] = ()
    algorithm: str = _DEFAULT_ALGORITHM

    @classmethod
    def from_secrets(
        cls,
        active: str,
        previous: list[str] | tuple[str, ...] = (),
        algorithm: str = _DEFAULT_ALGORITHM,
    ) -> "SigningKeySet":
        return cls(
            active=SigningKey(active),
            previous=tuple(SigningKey(secret) for secret in previous),
            algorithm=algorithm,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "SigningKeySet":
        return cls.from_secrets(settings.secret_key, settings.previous_secret_keys, settings.jwt_algorithm)

    def lookup(self, kid: str | None) -> list[SigningKey]:
        """Return the keys to try for a token carrying this kid.

        A kid that matches nothing yields an empty list. A token without a kid
        (issued before kids were added) is tried against every key.
        """
        keys = [self.active, *self.previous]
        if kid is None:
            return keys
        return [key for key in keys if key.kid == kid]


@dataclass(frozen=True)
class SessionClaims:
    subject: str
    issued_at: datetime


class SessionTokenIssuer:
    """Issue and verify signed, time-limited identity assertions.

    Usage:
        issuer = SessionTokenIssuer(SigningKeySet.from_settings(get_settings()), expire_seconds=3600)
        token = issuer.issue("42")
        issuer.verify(token)   # "42"
    """

    def __init__(self, keys: SigningKeySet, expire_seconds: int = 3600) -> None:
        if expire_seconds <= 0:
            raise ValueError("expire_seconds must be positive")
        self._keys = keys
        self.expire_seconds = expire_seconds

    def issue(self, subject_id: str | int, expire_seconds: int = 0) -> str:
        """Encode a signed JWT binding subject_id.

        Args:
            subject_id:     Stored as the `sub` claim (always a string).
            expire_seconds: Override for the configured lifetime. 0 uses the default.
        """
        duration = expire_seconds if expire_seconds > 0 else self.expire_seconds
        issued_at = datetime.now(timezone.utc)
        payload = {
            "sub": str(subject_id),
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=duration),
        }
        key = self._keys.active
        return jwt.encode(payload, key.secret, algorithm=self._keys.algorithm, headers={"kid": key.kid})

    def verify(self, token: str | None) -> str | None:
        """Return the subject id of a valid token, or None on any failure."""
        claims = self.decode(token)
        return claims.subject if claims is not None else None

    def decode(self, token: str | None) -> SessionClaims | None:
        """Return the verified claims of a token, or None on any failure."""
        if not token:
            return None
        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            return None
        for key in self._keys.lookup(header.get("kid")):
            try:
                payload = jwt.decode(token, key.secret, algorithms=[self._keys.algorithm])
            except JWTError:
                continue
            subject = payload.get("sub")
            if not subject or "exp" not in payload:
                return None
            issued_at = payload.get("iat")
            if not isinstance(issued_at, (int, float)):
                return None
            return SessionClaims(subject=subject, issued_at=datetime.fromtimestamp(issued_at, timezone.utc))
        return None
