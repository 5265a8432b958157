"""
api/routes/users.py -- Account registration, login and password change.

Routes:
  POST  /api/users/register        -- student self-registration; 201 with token
  POST  /api/users/login           -- email/password login; 200 with token + role
  GET   /api/users/me              -- current user (requires auth)
  PATCH /api/users/updatePassword  -- change own password (requires auth)

Security:
  POST /login is rate-limited per IP (LOGIN_RATE_LIMIT).
  Cache-Control: no-store on every response that carries a token.
  updatePassword takes the user id from the verified bearer token, never from the body.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.deps import get_auth_service
from api.limiter import limiter
from api.models import (
    AuthResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UpdatePasswordRequest,
    UserData,
    UserEnvelope,
    UserResponse,
)
from auth.dependencies import get_current_user
from auth.models import AuthResult, PublicUser, Registration, UserRecord
from auth.service import AuthService
from core.config import get_settings

# Auth policy:
# - POST  /register:        public
# - POST  /login:           public, rate-limited
# - GET   /me:              requires auth (get_current_user)
# - PATCH /updatePassword:  requires auth (get_current_user)
router = APIRouter()


def _auth_response(result: AuthResult, response: Response) -> AuthResponse:
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(token=result.token, data=UserData(user=UserResponse.from_public(result.user)))


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    body: RegisterRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create a student account and return a session token.

    Any role other than "student" in the body is rejected with 400.
    """
    result = service.register(
        Registration(
            email=body.email,
            password=body.password,
            user_name=body.user_name,
            phone_number=body.phone_number,
            branch_id=body.branch_id,
            year=body.year,
            student_code=body.student_code,
            role=body.role,
        )
    )
    return _auth_response(result, response)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(get_settings().login_rate_limit)  # inner: the router registers the limited function
def login(
    request: Request,
    body: LoginRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """Authenticate with email and password.

    Returns the same 401 message for an unknown email and a wrong password.
    The response carries the role, not the user object.
    """
    result = service.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(token=result.token, role=result.role)


@router.get("/me", response_model=UserEnvelope)
def me(current_user: UserRecord = Depends(get_current_user)) -> UserEnvelope:
    """Return the public profile of the authenticated user."""
    user = UserResponse.from_public(PublicUser.from_record(current_user))
    return UserEnvelope(data=UserData(user=user))


@router.patch("/updatePassword", response_model=AuthResponse)
def update_password(
    body: UpdatePasswordRequest,
    response: Response,
    current_user: UserRecord = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Change the caller's password after re-checking the current one; returns a fresh token."""
    result = service.update_password(current_user.id, body.currentPassword, body.newPassword)
    return _auth_response(result, response)
