"""
auth/errors.py -- Exception taxonomy for the authentication engine.

Every AuthService entry point raises one of these (or lets StoreUnavailable
propagate). Each class carries the HTTP status the API layer should use and a
message that is safe to show to the client. Messages never include a
password, a token, or a token digest.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class. Subclasses set status_code and a default message."""

    status_code: int = 400
    default_message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Malformed or missing input."""

    status_code = 400
    default_message = "Invalid input."


class AuthenticationFailed(AuthError):
    """Bad credentials. The message stays generic so it does not reveal which part was wrong."""

    status_code = 401
    default_message = "Incorrect email or password"


class RoleEscalationDenied(AuthError):
    """Self-registration asked for a role other than student."""

    status_code = 400
    default_message = "Only students can register. Teachers and admins must be created by an admin."


class NotFound(AuthError):
    status_code = 404
    default_message = "There is no user with this email address"


class TokenInvalidOrExpired(AuthError):
    status_code = 400
    default_message = "Token is invalid or has expired"


class RegistrationFailed(AuthError):
    status_code = 400
    default_message = "Registration failed."


class StoreUnavailable(AuthError):
    """The credential store could not be reached. Retry policy belongs to the caller."""

    status_code = 500
    default_message = "Internal Server Error"


class DuplicateKey(Exception):
    """Raised by the credential store when a unique field (email) already exists.

    Not an AuthError: AuthService translates it into RegistrationFailed at its
    own boundary.
    """
