"""
api/routes/admin.py -- Account provisioning for administrators.

Self-registration only ever creates students. Faculty and admin accounts are
created here (or with `python main.py create-user`).

Routes:
  POST  /api/admin/users                  -- create an account with any role (admin only)
  PATCH /api/admin/users/{user_id}/password -- set a user's password (admin only)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import get_auth_service
from api.models import AccountCreate, AdminPasswordSet, UserData, UserEnvelope, UserResponse
from auth.dependencies import require_admin
from auth.models import Registration, Role, UserRecord
from auth.service import AuthService

# Auth policy: every route requires admin (require_admin).
router = APIRouter()


@router.post("/users", response_model=UserEnvelope, status_code=201)
def create_account(
    body: AccountCreate,
    current_user: UserRecord = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> UserEnvelope:
    """Create a student, faculty or admin account. No session token is issued."""
    user = service.create_account(
        Registration(
            email=body.email,
            password=body.password,
            user_name=body.user_name,
            phone_number=body.phone_number,
            branch_id=body.branch_id,
            year=body.year,
            student_code=body.student_code,
        ),
        Role(body.role),
    )
    return UserEnvelope(data=UserData(user=UserResponse.from_public(user)))


@router.patch("/users/{user_id}/password", response_model=UserEnvelope)
def set_password(
    user_id: int,
    body: AdminPasswordSet,
    current_user: UserRecord = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> UserEnvelope:
    """Overwrite a user's password and cancel any pending reset token."""
    user = service.admin_set_password(user_id, body.password)
    return UserEnvelope(data=UserData(user=UserResponse.from_public(user)))
