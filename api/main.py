"""
api/main.py -- FastAPI application entry point for the campus auth service.

Run with:  uvicorn api.main:app --reload

Middleware stack:
  1. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter
  2. log_requests      -- one log line per request with status and latency

Lifespan handles startup (credential store, hasher, reset token manager,
session token issuer, AuthService, reset-digest purge task) and shutdown
(cancel purge task, close DB connection) symmetrically.

Routers:
  /api/users     -- register, login, me, updatePassword
  /api/password  -- forgotPassword, resetPassword/{token}
  /api/auth      -- alias of /api/password (same router, hidden from the schema)
  /api/admin     -- account provisioning (admin only)

CORS, security headers and TLS are the hosting environment's concern and are
not configured here.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, FieldError, HealthResponse
from api.routes.admin import router as admin_router
from api.routes.password import router as password_router
from api.routes.users import router as users_router
from auth.errors import AuthError
from auth.passwords import PasswordHasher
from auth.reset_tokens import ResetTokenManager
from auth.service import AuthService
from auth.store import CredentialStore
from auth.tokens import SessionTokenIssuer, SigningKeySet
from core.config import Settings, get_settings

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("campusauth.api")

# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_auth_service(settings: Settings, store: CredentialStore, hasher: PasswordHasher) -> AuthService:
    """Assemble AuthService from settings. The signing keys are bound here, once."""
    issuer = SessionTokenIssuer(SigningKeySet.from_settings(settings), expire_seconds=settings.token_expire_seconds)
    reset_tokens = ResetTokenManager(window=timedelta(minutes=settings.reset_token_expire_minutes))
    return AuthService(
        store,
        hasher,
        reset_tokens,
        issuer,
        hide_unknown_reset_email=settings.reset_hides_unknown_email,
    )


def attach_auth_state(app: FastAPI, service: AuthService, store: CredentialStore) -> None:
    """Publish the auth components on app.state for routes and dependencies."""
    app.state.credential_store = store
    app.state.auth_service = service
    app.state.issuer = service.issuer
    app.state.reset_tokens = service.reset_tokens


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval_seconds: int) -> None:
    """Clear expired reset digests every interval_seconds.

    Expired digests are already unusable; this only keeps the table tidy.
    A failed pass is logged and the loop carries on. CancelledError from
    task.cancel() during shutdown propagates out and ends the task.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        store: CredentialStore = app.state.credential_store
        reset_tokens: ResetTokenManager = app.state.reset_tokens
        try:
            purged = await asyncio.to_thread(store.purge_expired_reset_tokens, reset_tokens.now())
        except AuthError:
            logger.warning("Reset token purge skipped: credential store unavailable")
            continue
        except Exception:
            logger.exception("Reset token purge failed; retrying next interval")
            continue
        if purged:
            logger.info("Purged %d expired reset token(s)", purged)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    settings = get_settings()
    logger.info("Campus auth API starting up")
    hasher = PasswordHasher()
    # Build the dummy hash now so the first unknown-email login is not slower.
    hasher.verify_dummy("")
    store = CredentialStore(hasher, db_url=settings.database_url)
    attach_auth_state(app, build_auth_service(settings, store, hasher), store)
    logger.info("Auth initialized (users=%d)", store.count_users())
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.reset_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await app.state.purge_task
    app.state.credential_store.close()
    logger.info("Campus auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Campus Auth API",
    description="Registration, login and password recovery for the campus library.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(users_router, prefix="/api/users", tags=["Users"])
app.include_router(password_router, prefix="/api/password", tags=["Password"])
app.include_router(password_router, prefix="/api/auth", include_in_schema=False)
app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {success: false, message} envelope. Stack
# traces are attached to 500 responses only while DEBUG is on.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    body = ErrorResponse(message=message, **extra).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def _stack(exc: BaseException) -> str | None:
    if not get_settings().debug:
        return None
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map the auth error taxonomy onto its HTTP status and safe message."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s", type(exc).__name__, request.method, request.url.path, exc_info=exc)
        return _error(exc.status_code, exc.message, stack=_stack(exc))
    return _error(exc.status_code, exc.message)


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded.

    Plain def: SlowAPIMiddleware calls this directly for sync endpoints.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "Too many requests. Please try again later.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one entry per invalid field."""
    errors = [
        FieldError(field=".".join(str(part) for part in err.get("loc", ())[1:]) or "body", message=err.get("msg", ""))
        for err in exc.errors()
    ]
    return _error(400, "Invalid request", errors=errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap FastAPI/Starlette HTTP exceptions (401/403 from dependencies, 404, 405) in the envelope."""
    response = _error(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log. The client gets a generic message and,
    in DEBUG mode only, the stack trace.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "Internal Server Error", stack=_stack(exc))


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    store: CredentialStore = request.app.state.credential_store
    return HealthResponse(version=__version__, database="ok" if store.ping() else "error")
