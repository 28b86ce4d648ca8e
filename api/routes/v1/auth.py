"""
api/routes/v1/auth.py -- Account and session REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create a USER account; returns a token
  POST /api/v1/auth/login      -- password login; returns a token
  POST /api/v1/auth/logout     -- revoke the caller's session (requires auth)
  PUT  /api/v1/auth/password   -- change the caller's password (requires auth)
  GET  /api/v1/auth/me         -- current user info (requires auth)

Security:
  register and login are rate-limited per client IP (Settings.login_rate_limit).
  login returns one generic error for unknown username and wrong password.
  Token responses carry Cache-Control: no-store.

Handlers are plain def: every one of them blocks on SQLite, so FastAPI runs
them in its thread pool instead of on the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import ChangePasswordRequest, LoginRequest, MessageResponse, RegisterRequest, TokenResponse, UserResponse
from auth.dependencies import get_current_user, require_access
from auth.models import PUBLIC, User
from auth.service import AuthService

# Access policy:
# - POST /api/v1/auth/register:  PUBLIC (require_access(PUBLIC))
# - POST /api/v1/auth/login:     PUBLIC (require_access(PUBLIC))
# - POST /api/v1/auth/logout:    AUTHENTICATED (get_current_user)
# - PUT  /api/v1/auth/password:  AUTHENTICATED (get_current_user)
# - GET  /api/v1/auth/me:        AUTHENTICATED (get_current_user)
router = APIRouter()

_public = [Depends(require_access(PUBLIC))]


def _token_response(service: AuthService, token: str, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=TokenResponse(access_token=token, expires_in=service.session_ttl_seconds).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=TokenResponse, status_code=201, dependencies=_public)
@limiter.limit(login_rate_limit)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and log it in.

    DuplicateUsername (409) and PasswordMismatch (400) propagate to the
    AuthError handler in api/main.py.
    """
    service: AuthService = request.app.state.auth_service
    token = service.register(body.username, body.password, body.confirm_password)
    return _token_response(service, token, status_code=201)


@router.post("/auth/login", response_model=TokenResponse, dependencies=_public)
@limiter.limit(login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password.

    Any session previously opened for this user is replaced; its token stops
    working immediately.
    """
    service: AuthService = request.app.state.auth_service
    token = service.login(body.username, body.password)
    return _token_response(service, token)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, current_user: User = Depends(get_current_user)) -> MessageResponse:
    """Delete the caller's session record. The presented token is dead afterwards."""
    service: AuthService = request.app.state.auth_service
    service.logout(current_user.id)
    return MessageResponse(message="Logged out.")


@router.put("/auth/password", response_model=MessageResponse)
def update_password(
    request: Request,
    body: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Change the caller's password.

    When session revocation on password change is enabled (the default) the
    caller must log in again with the new password.
    """
    service: AuthService = request.app.state.auth_service
    service.update_password(current_user.id, body.old_password, body.new_password, body.confirm_password)
    return MessageResponse(message="Password updated.")


@router.get("/auth/me", response_model=UserResponse)
def me(request: Request, current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the account record of the authenticated caller."""
    service: AuthService = request.app.state.auth_service
    return UserResponse.from_user(service.me(current_user.id))
