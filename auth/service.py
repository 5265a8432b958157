"""
auth/service.py -- Registration, login and password recovery use cases.

AuthService wires PasswordHasher, ResetTokenManager, SessionTokenIssuer and
CredentialStore together. Each method is one request-scoped use case: it
validates input, makes one or two store round-trips, and returns a result
object. Nothing here keeps state between calls.

Failure policy:
  Each entry point raises an AuthError subclass from auth/errors.py. Store
  outages surface as StoreUnavailable; the store's DuplicateKey is turned into
  RegistrationFailed here. No raw exception text crosses this boundary.

  login() answers unknown email and wrong password with the same
  AuthenticationFailed message and the same bcrypt cost, so neither the body
  nor the timing reveals whether the account exists.

Logging: user ids only. Emails, passwords, tokens and digests are never logged.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from auth.errors import (
    AuthenticationFailed,
    DuplicateKey,
    NotFound,
    RegistrationFailed,
    RoleEscalationDenied,
    TokenInvalidOrExpired,
    ValidationError,
)
from auth.models import AuthResult, LoginResult, PublicUser, Registration, Role, UserRecord
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from auth.reset_tokens import ResetTokenManager
from auth.store import CredentialStore
from auth.tokens import SessionTokenIssuer

logger = logging.getLogger("campusauth.auth")

MIN_PASSWORD_LENGTH = 8


def _check_new_password(password: str | None) -> str:
    if not password:
        raise ValidationError("Please provide a password")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return password


class AuthService:
    """Orchestrates the credential use cases.

    Usage:
        service = AuthService(store, hasher, ResetTokenManager(), issuer)
        result = service.register(Registration(email="a@x.com", password="Secret123"))
        result.token, result.user
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        reset_tokens: ResetTokenManager,
        issuer: SessionTokenIssuer,
        hide_unknown_reset_email: bool = False,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._reset_tokens = reset_tokens
        self._issuer = issuer
        self._hide_unknown_reset_email = hide_unknown_reset_email

    @property
    def issuer(self) -> SessionTokenIssuer:
        return self._issuer

    @property
    def reset_tokens(self) -> ResetTokenManager:
        return self._reset_tokens

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, registration: Registration) -> AuthResult:
        """Self-register a student account and log it in.

        Only students may self-register. A client that asks for any other role
        is refused outright rather than silently downgraded.
        """
        if registration.role not in (None, "", Role.student.value):
            logger.warning("Self-registration refused for role=%s", registration.role)
            raise RoleEscalationDenied()
        record = self._create(registration, Role.student)
        return self._session_for(record)

    def create_account(self, registration: Registration, role: Role) -> PublicUser:
        """Provision an account with any role. Admin route and CLI only."""
        record = self._create(registration, role)
        return PublicUser.from_record(record)

    def _create(self, registration: Registration, role: Role) -> UserRecord:
        if not registration.email or not registration.password:
            raise ValidationError("Please provide email and password")
        password = _check_new_password(registration.password)
        record = UserRecord(
            email=registration.email.strip().lower(),
            role=role.value,
            user_name=registration.user_name,
            phone_number=registration.phone_number,
            branch_id=registration.branch_id if role is Role.student else None,
            year=registration.year if role is Role.student else None,
            student_code=registration.student_code if role is Role.student else None,
        )
        try:
            user_id = self._store.create_user(record, password)
        except DuplicateKey as exc:
            raise RegistrationFailed("A user with that email already exists.") from exc
        created = self._store.get_by_id(user_id)
        if created is None:
            raise RegistrationFailed()
        logger.info("Created user id=%s role=%s", created.id, created.role)
        return created

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str | None, password: str | None) -> LoginResult:
        """Check credentials and return a session token with the user's role."""
        if not email or not password:
            raise ValidationError("Please provide email and password")
        user = self._store.get_by_email(email, with_password=True)
        if user is None or user.password_hash is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self._hasher.verify_dummy(password)
            logger.info("Failed login attempt (unknown account)")
            raise AuthenticationFailed()
        if not self._hasher.verify(password, user.password_hash):
            logger.info("Failed login attempt for user id=%s", user.id)
            raise AuthenticationFailed()
        logger.info("User id=%s logged in", user.id)
        return LoginResult(token=self._issuer.issue(user.id), role=user.role)

    # ------------------------------------------------------------------
    # Password recovery
    # ------------------------------------------------------------------

    def forgot_password(self, email: str | None) -> str | None:
        """Start a reset: persist the token digest and return the plaintext token.

        Returning the token stands in for emailing it. A second request before
        expiry overwrites the first, so only the newest token works.

        Unknown email raises NotFound, or returns None when the service was
        built with hide_unknown_reset_email=True.
        """
        if not email:
            raise ValidationError("Please provide an email address")
        user = self._store.get_by_email(email)
        if user is None:
            if self._hide_unknown_reset_email:
                logger.info("Password reset requested for unknown account")
                return None
            raise NotFound()
        issued = self._reset_tokens.issue()
        self._store.set_reset_token(user.id, issued.digest, issued.expires_at)
        logger.info("Password reset token issued for user id=%s", user.id)
        return issued.token

    def reset_password(self, token: str | None, new_password: str | None) -> AuthResult:
        """Consume a reset token, set the new password, and log the user in."""
        if not token:
            raise TokenInvalidOrExpired()
        now = self._reset_tokens.now()
        digest = self._reset_tokens.digest(token)
        user = self._store.find_by_reset_digest(digest, now)
        if user is None or not self._reset_tokens.verify(
            token, user.password_reset_digest, user.password_reset_expires_at, now
        ):
            raise TokenInvalidOrExpired()
        password = _check_new_password(new_password)
        if not self._store.reset_password(user.id, digest, password):
            # Consumed by a concurrent reset between lookup and update.
            raise TokenInvalidOrExpired()
        logger.info("Password reset completed for user id=%s", user.id)
        return self._session_for(user)

    # ------------------------------------------------------------------
    # Authenticated password changes
    # ------------------------------------------------------------------

    def update_password(
        self, user_id: int, current_password: str | None, new_password: str | None
    ) -> AuthResult:
        """Change the password of an already-authenticated user.

        user_id must come from a verified session token, never from the request body.
        """
        user = self._store.get_by_id(user_id, with_password=True)
        if user is None:
            raise AuthenticationFailed("Your current password is wrong")
        if not current_password or not self._hasher.verify(current_password, user.password_hash):
            logger.info("Rejected password change for user id=%s", user.id)
            raise AuthenticationFailed("Your current password is wrong")
        password = _check_new_password(new_password)
        self._store.set_password(user.id, password)
        logger.info("Password changed for user id=%s", user.id)
        return self._session_for(user)

    def admin_set_password(self, user_id: int, new_password: str | None) -> PublicUser:
        """Overwrite a user's password on an admin's behalf.

        Any outstanding reset token is cancelled in the same update.
        """
        password = _check_new_password(new_password)
        if not self._store.set_password(user_id, password, clear_reset=True):
            raise NotFound("User not found")
        user = self._store.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        logger.info("Admin reset password for user id=%s", user_id)
        return PublicUser.from_record(user)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _session_for(self, user: UserRecord) -> AuthResult:
        return AuthResult(token=self._issuer.issue(user.id), user=PublicUser.from_record(user))
