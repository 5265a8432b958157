"""
api/routes/password.py -- Forgot-password and reset-password endpoints.

Routes (canonical prefix /api/password, alias /api/auth):
  POST /forgotPassword          -- issue a reset token for an email
  POST /resetPassword/{token}   -- consume the token, set a new password, log in

The alias is a second include_router() of this same router in api/main.py.
There is one handler per operation.

Security:
  POST /forgotPassword is rate-limited per IP (RESET_RATE_LIMIT).
  The plaintext reset token is only ever in the forgotPassword response body
  (stand-in for email delivery). The store keeps its sha256 digest.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.deps import get_auth_service
from api.limiter import limiter
from api.models import (
    AuthResponse,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    ResetPasswordRequest,
    UserData,
    UserResponse,
)
from auth.service import AuthService
from core.config import get_settings

# Auth policy: both routes are public -- the reset token is the credential.
router = APIRouter()

_SENT_MESSAGE = "Token sent to email"


@router.post("/forgotPassword", response_model=ForgotPasswordResponse, response_model_exclude_none=True)
@limiter.limit(get_settings().reset_rate_limit)  # inner: the router registers the limited function
def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> ForgotPasswordResponse:
    """Issue a 10-minute reset token and return it in place of sending an email.

    Unknown email: 404, or 200 without a token when RESET_HIDES_UNKNOWN_EMAIL is on.
    """
    token = service.forgot_password(body.email)
    response.headers["Cache-Control"] = "no-store"
    return ForgotPasswordResponse(message=_SENT_MESSAGE, reset_token=token)


@router.post("/resetPassword/{token}", response_model=AuthResponse)
def reset_password(
    token: str,
    body: ResetPasswordRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Set a new password using a reset token. Logs the user in on success.

    A token works once and only within its window; otherwise 400.
    """
    result = service.reset_password(token, body.password)
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(token=result.token, data=UserData(user=UserResponse.from_public(result.user)))
