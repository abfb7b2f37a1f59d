"""
api/routes/v1/auth.py -- Registration, verification and session endpoints.

Routes:
  POST  /auth/register      -- create a pending account; OTP is mailed in the background
  POST  /auth/verify        -- confirm the OTP; pending -> active
  POST  /auth/login         -- password login; access + refresh pair for active accounts
  POST  /auth/access-token  -- exchange a refresh token for a new access token
  GET   /auth/me            -- current account (requires auth)
  PATCH /auth/me            -- self-service profile update (requires auth)

Security:
  [H2] register, verify and login are rate-limited per IP (Settings.*_rate_limit).
  [C1] AuthFlow.login() equalizes timing for unknown emails -- never inline the lookup.
  [M5] Cache-Control: no-store on every response that carries a token.
  OTP codes only ever leave the process through the mailer.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse

from api.deps import auth_flow, check_region, directory_store, patch_changes
from api.limiter import limiter
from api.models import (
    AccessTokenResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfilePatch,
    RefreshRequest,
    RegisterRequest,
    UserResponse,
    VerifyRequest,
)
from auth.dependencies import authenticate
from auth.flow import AuthFlow
from auth.models import Identity, Principal
from auth.store import IdentityStore
from core.config import get_settings
from directory.store import DirectoryStore

_settings = get_settings()

# Auth policy:
# - POST  /auth/register, /auth/verify, /auth/login, /auth/access-token: public
# - GET   /auth/me, PATCH /auth/me: requires auth (authenticate)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.register_rate_limit)  # [H2]
@router.post("/auth/register", response_model=MessageResponse)
def register(
    request: Request,
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    flow: AuthFlow = Depends(auth_flow),
    directory: DirectoryStore = Depends(directory_store),
) -> MessageResponse:
    """Create a pending account and mail its OTP after the response is sent."""
    check_region(directory, body.region_id)
    message = flow.register(
        email=body.email,
        phone=body.phone,
        password=body.password,
        full_name=body.full_name,
        role=body.role,
        region_id=body.region_id,
        year=body.year,
        image=body.image,
        schedule=background_tasks.add_task,
    )
    return MessageResponse(message=message)


@limiter.limit(_settings.verify_rate_limit)  # [H2]
@router.post("/auth/verify", response_model=MessageResponse)
def verify(request: Request, body: VerifyRequest, flow: AuthFlow = Depends(auth_flow)) -> MessageResponse:
    return MessageResponse(message=flow.verify(body.email, body.otp))


@limiter.limit(_settings.login_rate_limit)  # [H2]
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest, flow: AuthFlow = Depends(auth_flow)) -> JSONResponse:
    """Authenticate with email and password.

    A pending account passes the password check but gets only a message
    telling it to verify, with status 200 and no tokens.
    """
    result = flow.login(body.email, body.password)
    content = LoginResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        message=result.message,
    ).model_dump(exclude_none=True)
    resp = JSONResponse(status_code=200, content=content)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/access-token", response_model=AccessTokenResponse)
def access_token(body: RefreshRequest, flow: AuthFlow = Depends(auth_flow)) -> JSONResponse:
    """Mint a fresh access token from a refresh token."""
    token = flow.refresh(body.refresh_token)
    resp = JSONResponse(status_code=200, content=AccessTokenResponse(access_token=token).model_dump())
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
def me(principal: Principal = Depends(authenticate), flow: AuthFlow = Depends(auth_flow)) -> UserResponse:
    """Return the current account, re-read from the store."""
    return user_to_response(flow.who_am_i(principal.id))


@router.patch("/auth/me", response_model=UserResponse)
def update_me(
    body: ProfilePatch,
    principal: Principal = Depends(authenticate),
    flow: AuthFlow = Depends(auth_flow),
    directory: DirectoryStore = Depends(directory_store),
) -> UserResponse:
    changes = patch_changes(body, IdentityStore.table)
    check_region(directory, changes.get("region_id"))
    return user_to_response(flow.update_profile(principal.id, changes))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def user_to_response(identity: Identity) -> UserResponse:
    return UserResponse(
        id=identity.id,
        email=identity.email,
        phone=identity.phone,
        full_name=identity.full_name,
        role=identity.role,
        status=identity.status,
        region_id=identity.region_id,
        year=identity.year,
        image=identity.image,
        created_at=identity.created_at,
        last_login=identity.last_login,
    )
