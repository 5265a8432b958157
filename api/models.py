"""
API request and response models for the auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

No response model has a password, password hash, or reset digest field, so
none can leak through serialization.

Field names follow the client contract (user_name, phone_number, ...; camelCase
for currentPassword / newPassword / resetToken).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import PublicUser

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# bcrypt only reads the first 72 bytes; AuthService re-checks the byte length.
_PASSWORD_MAX = 72


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/users/register.

    role is accepted so that a non-student value can be refused explicitly
    (AuthService raises RoleEscalationDenied) instead of being dropped.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=_PASSWORD_MAX)
    user_name: Optional[str] = Field(default=None, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=30)
    branch_id: Optional[str] = Field(default=None, max_length=64)
    year: Optional[int] = Field(default=None, ge=1, le=10)
    student_code: Optional[str] = Field(default=None, max_length=64)
    role: Optional[str] = Field(default=None, max_length=20)


class AccountCreate(RegisterRequest):
    """Request body for POST /api/admin/users. Role is required and may be any role."""

    role: str = Field(pattern=r"^(student|faculty|admin)$")


class LoginRequest(BaseModel):
    """Request body for POST /api/users/login.

    Both fields are optional at the schema level so a missing one produces the
    "Please provide email and password" message from AuthService.
    """

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/password/forgotPassword."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[str] = Field(default=None, max_length=255)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/password/resetPassword/{token}."""

    password: Optional[str] = Field(default=None, max_length=_PASSWORD_MAX)


class UpdatePasswordRequest(BaseModel):
    """Request body for PATCH /api/users/updatePassword."""

    currentPassword: Optional[str] = Field(default=None, max_length=255)
    newPassword: Optional[str] = Field(default=None, max_length=_PASSWORD_MAX)


class AdminPasswordSet(BaseModel):
    """Request body for PATCH /api/admin/users/{user_id}/password."""

    password: str = Field(min_length=8, max_length=_PASSWORD_MAX)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    role: str
    user_name: Optional[str] = None
    phone_number: Optional[str] = None
    branch_id: Optional[str] = None
    year: Optional[int] = None
    student_code: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserResponse":
        """Build a UserResponse from the domain PublicUser projection."""
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            user_name=user.user_name,
            phone_number=user.phone_number,
            branch_id=user.branch_id,
            year=user.year,
            student_code=user.student_code,
            created_at=user.created_at,
        )


class UserData(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse


class UserEnvelope(BaseModel):
    """{success, data:{user}} -- admin and /me responses (no token)."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    data: UserData


class AuthResponse(BaseModel):
    """{success, token, data:{user}} -- register, reset and update password."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    token: str
    data: UserData


class LoginResponse(BaseModel):
    """{success, token, role} -- login deliberately returns no user object."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    token: str
    role: str


class ForgotPasswordResponse(BaseModel):
    """Response for POST /api/password/forgotPassword.

    resetToken stands in for the email that would carry it. It is None when
    RESET_HIDES_UNKNOWN_EMAIL is on and the email matched no account.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool = True
    message: str
    reset_token: Optional[str] = Field(default=None, serialization_alias="resetToken")


class FieldError(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Envelope returned on every 4xx/5xx response.

    errors is set only for request validation failures. stack is set only on
    500s while DEBUG is on.
    """

    model_config = ConfigDict(frozen=True)

    success: bool = False
    message: str
    errors: Optional[list[FieldError]] = None
    stack: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    database: str = "ok"
