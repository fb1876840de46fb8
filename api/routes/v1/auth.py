"""
api/routes/v1/auth.py -- Authentication and session REST endpoints.

Routes:
  POST /api/auth/register    -- create account; 201 with both tokens
  POST /api/auth/login       -- password login; 200 with both tokens
  POST /api/auth/refresh     -- refresh token -> new access token
  POST /api/auth/logout      -- delete one refresh token (idempotent)
  POST /api/auth/logout-all  -- delete every refresh token of the caller
  GET  /api/auth/me          -- identity from the access token

All protocol logic lives in AuthService (app.state.auth_service). Handlers
only translate between the wire models and the service. ServiceError raised
by the service is rendered by the exception handler in api/main.py.

Handlers are plain `def`: FastAPI runs them in its thread pool, so bcrypt's
deliberate CPU cost and the blocking DB calls never stall the event loop.

Security:
  POST /login and /register are rate-limited per IP (Settings.login_rate_limit,
  Settings.register_rate_limit).
  Cache-Control: no-store on every response that carries a token.
  logout-all derives the user from the verified access token. A user id in
  the request body is ignored, so one user cannot sign another out.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter, login_limit, register_limit
from api.models import (
    AuthResponse,
    LoginRequest,
    RefreshResponse,
    RefreshTokenRequest,
    RegisterRequest,
    SuccessResponse,
    UserView,
)
from auth.dependencies import get_current_claims
from auth.models import AccessTokenClaims
from auth.service import AuthService

# Auth policy:
# - POST /api/auth/register:   public
# - POST /api/auth/login:      public
# - POST /api/auth/refresh:    public -- the refresh token in the body is the credential
# - POST /api/auth/logout:     public -- the refresh token in the body is the credential
# - POST /api/auth/logout-all: requires Bearer access token (get_current_claims)
# - GET  /api/auth/me:         requires Bearer access token (get_current_claims)
router = APIRouter()


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


# Route decorator outermost: FastAPI must register the limiter-wrapped
# function, otherwise the per-route limit is never checked.
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(register_limit)
def register(request: Request, response: Response, body: RegisterRequest) -> AuthResponse:
    """Create an account and return an access token, a refresh token and the public user view."""
    service: AuthService = request.app.state.auth_service
    result = service.register(body.email, body.password, body.full_name)
    _no_store(response)
    return AuthResponse.from_result(result)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(login_limit)
def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with email and password.

    Unknown email and wrong password return the same 401 so the endpoint
    cannot be used to discover which emails are registered.
    """
    service: AuthService = request.app.state.auth_service
    result = service.login(body.email, body.password)
    _no_store(response)
    return AuthResponse.from_result(result)


@router.post("/auth/refresh", response_model=RefreshResponse, response_model_exclude_none=True)
def refresh(request: Request, response: Response, body: RefreshTokenRequest) -> RefreshResponse:
    """Exchange a refresh token for a new access token."""
    service: AuthService = request.app.state.auth_service
    result = service.refresh(body.refresh_token)
    _no_store(response)
    return RefreshResponse(access_token=result.access_token, refresh_token=result.refresh_token)


@router.post("/auth/logout", response_model=SuccessResponse)
def logout(request: Request, body: RefreshTokenRequest) -> SuccessResponse:
    """End the session identified by the refresh token. Always succeeds."""
    service: AuthService = request.app.state.auth_service
    service.logout(body.refresh_token)
    return SuccessResponse(message="Logged out successfully")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout-all", response_model=SuccessResponse)
def logout_all(request: Request, claims: AccessTokenClaims = Depends(get_current_claims)) -> SuccessResponse:
    """Sign the caller out on every device."""
    service: AuthService = request.app.state.auth_service
    service.logout_all(claims.user_id)
    return SuccessResponse(message="Logged out from all devices")


@router.get("/auth/me", response_model=UserView)
def me(request: Request, claims: AccessTokenClaims = Depends(get_current_claims)) -> UserView:
    """Return the current user's public profile."""
    service: AuthService = request.app.state.auth_service
    return UserView.from_public(service.get_profile(claims.user_id))
