"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond projection).
Dataclasses own domain shape; the store and the service do the work.

UserRecord is the persisted shape and is the only type that can carry a
password hash. Everything that leaves the auth package goes through
PublicUser.from_record(), a separate frozen projection -- the persisted
object is never mutated to strip secrets.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    student = "student"
    faculty = "faculty"
    admin = "admin"


@dataclass
class UserRecord:
    """A user row as held by the credential store.

    password_hash is None unless the record was loaded with the password
    projection (store.get_by_email(..., with_password=True)). The reset
    digest and expiry are either both set or both None.

    branch_id, year and student_code only apply to students.
    """

    email: str
    role: str = Role.student.value
    id: int | None = None
    user_name: str | None = None
    phone_number: str | None = None
    branch_id: str | None = None
    year: int | None = None
    student_code: str | None = None
    password_hash: str | None = None
    password_reset_digest: str | None = None
    password_reset_expires_at: datetime | None = None
    password_changed_at: datetime | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class PublicUser:
    """Outward-facing view of a user. Has no password or reset fields at all."""

    id: int
    email: str
    role: str
    user_name: str | None = None
    phone_number: str | None = None
    branch_id: str | None = None
    year: int | None = None
    student_code: str | None = None
    created_at: str | None = None

    @classmethod
    def from_record(cls, record: UserRecord) -> "PublicUser":
        return cls(
            id=record.id,
            email=record.email,
            role=record.role,
            user_name=record.user_name,
            phone_number=record.phone_number,
            branch_id=record.branch_id,
            year=record.year,
            student_code=record.student_code,
            created_at=record.created_at,
        )


@dataclass
class Registration:
    """Input to AuthService.register() and AuthService.create_account().

    role is whatever the client sent (None when omitted). Self-registration
    refuses anything but None or "student".
    """

    email: str | None
    password: str | None
    user_name: str | None = None
    phone_number: str | None = None
    branch_id: str | None = None
    year: int | None = None
    student_code: str | None = None
    role: str | None = None


@dataclass(frozen=True)
class AuthResult:
    """Session token plus the public view of the user it was issued for."""

    token: str
    user: PublicUser


@dataclass(frozen=True)
class LoginResult:
    """Login returns the token and role only, not the full user."""

    token: str
    role: str
