"""
api/routes/v1/auth.py -- Account and session REST endpoints.

Routes:
  POST  /api/v1/auth/register          -- create customer/provider account; returns token
  POST  /api/v1/auth/login             -- email + password login; returns token
  GET   /api/v1/auth/me                -- current user record (any role)
  PUT   /api/v1/auth/me                -- update name / avatar / location (any role)
  POST  /api/v1/auth/forgot-password   -- issue a one-hour reset token (uniform reply)
  POST  /api/v1/auth/reset-password    -- consume reset token, set new password
  POST  /api/v1/auth/verify-email      -- consume verification token
  GET   /api/v1/auth/users             -- list users (admin, ops)
  PATCH /api/v1/auth/users/{id}        -- change role/status (admin)

Security:
  [H2] POST /login is rate-limited per IP.
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on responses that carry a token.
  Forgot-password answers the same way whether or not the email exists.
  Session tokens are not revoked on role/status change; GET and PUT /me re-read
  the store so a suspended account sees 403 there even with a live token.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter, login_rate_limit
from api.models import (
    AuthResponse,
    ErrorDetail,
    ErrorResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ProfileUpdate,
    RegisterRequest,
    ResetPasswordRequest,
    RoleEnum,
    UserPatch,
    UserResponse,
    VerifyEmailRequest,
)
from auth.dependencies import get_current_identity, require_roles
from auth.models import Role, SessionPayload, User, UserStatus
from auth.password_policy import ensure_strong
from auth.store import UserStore
from auth.tokens import TokenService, authenticate_user, hash_password, issue_opaque_token

logger = logging.getLogger("servicehub.api.auth")

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."

# Auth policy:
# - register, login, forgot-password, reset-password, verify-email: public
# - GET/PUT /auth/me:          any authenticated role (get_current_identity)
# - GET /auth/users:           admin, ops
# - PATCH /auth/users/{id}:    admin
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _store(request: Request) -> UserStore:
    return request.app.state.user_store


def _tokens(request: Request) -> TokenService:
    return request.app.state.token_service


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _session_response(request: Request, user: User, status_code: int = 200) -> JSONResponse:
    settings = request.app.state.settings
    token = _tokens(request).issue(str(user.id), user.email, user.role)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            user=UserResponse.from_user(user),
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=settings.jwt_expire_seconds,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _load_user(request: Request, identity: SessionPayload) -> User:
    """Re-read the token's subject from the store.

    404 if it no longer exists (or was never a numeric id), 403 if the account
    has been suspended or banned since the token was issued.
    """
    try:
        user_id = int(identity.sub)
    except ValueError:
        user = None
    else:
        user = _store(request).get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=403,
            detail={"code": "account_inactive", "message": "Account is suspended or banned."},
        )
    return user


def _issue_verification_token(request: Request, user: User) -> None:
    settings = request.app.state.settings
    raw = issue_opaque_token()
    expires_at = _now() + timedelta(seconds=settings.verification_token_ttl_seconds)
    _store(request).set_verification_token(user.id, _tokens(request).hash_opaque_token(raw), expires_at)
    if settings.debug:
        # No mail delivery in this service; expose the link to developers only.
        logger.info("Email verification link for user_id=%s: %s/verify-email?token=%s", user.id, settings.app_base_url, raw)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a customer or provider account and return a session token.

    Password strength is enforced here with every violated rule listed.
    Staff roles cannot be self-assigned; RegisterRequest only accepts
    customer and provider.
    """
    ensure_strong(body.password)

    store = _store(request)
    if store.email_or_phone_taken(body.email, body.phone):
        return _error(409, "conflict", "User with this email or phone already exists.")

    new_user = User(
        name=body.name,
        email=body.email,
        phone=body.phone,
        role=Role(body.role.value),
        hashed_password=hash_password(body.password),
        location_address=body.location_address,
    )
    try:
        user_id = store.create_user(new_user)
    except IntegrityError:
        return _error(409, "conflict", "User with this email or phone already exists.")

    user = store.get_by_id(user_id)
    _issue_verification_token(request, user)
    logger.info("Registered user_id=%s role=%s", user.id, user.role.value)
    return _session_response(request, user, status_code=201)


@limiter.limit(login_rate_limit)  # must stay above @router so FastAPI sees the original signature
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Wrong email and wrong password get the same 401 so the response does not
    reveal which accounts exist. A suspended or banned account gets 403, but
    only once the password has been proven.
    """
    user = authenticate_user(_store(request), body.email, body.password)
    if user is None:
        return _error(401, "bad_credentials", "Invalid email or password.")
    if not user.is_active:
        logger.info("Login refused for user_id=%s status=%s", user.id, user.status.value)
        return _error(403, "account_inactive", "Account is suspended or banned.")
    return _session_response(request, user)


@router.post("/auth/forgot-password", response_model=MessageResponse)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    """Issue a one-hour, single-use reset token when the email is registered.

    The reply is identical either way. Any older reset token for the user is
    replaced.
    """
    settings = request.app.state.settings
    store = _store(request)
    user = store.get_by_email(body.email)
    if user is not None:
        raw = issue_opaque_token()
        expires_at = _now() + timedelta(seconds=settings.reset_token_ttl_seconds)
        store.set_reset_token(user.id, _tokens(request).hash_opaque_token(raw), expires_at)
        logger.info("Password reset token issued for user_id=%s", user.id)
        if settings.debug:
            logger.info("Password reset link: %s/reset-password?token=%s", settings.app_base_url, raw)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(request: Request, body: ResetPasswordRequest) -> MessageResponse:
    """Consume a reset token and set a new password.

    Unknown, expired and already-used tokens all get the same 400.
    """
    ensure_strong(body.password)

    store = _store(request)
    token_hash = _tokens(request).hash_opaque_token(body.token)
    user = store.get_by_reset_token(token_hash, _now())
    if user is None or not store.consume_reset_token(user.id, token_hash, hash_password(body.password)):
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_reset_token", "message": "Invalid or expired reset token."},
        )
    logger.info("Password reset completed for user_id=%s", user.id)
    return MessageResponse(message="Password has been reset successfully.")


@router.post("/auth/verify-email", response_model=MessageResponse)
def verify_email(request: Request, body: VerifyEmailRequest) -> MessageResponse:
    token_hash = _tokens(request).hash_opaque_token(body.token)
    user = _store(request).consume_verification_token(token_hash, _now())
    if user is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_verification_token", "message": "Invalid or expired verification token."},
        )
    return MessageResponse(message="Email verified successfully.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
def me(request: Request, identity: SessionPayload = Depends(get_current_identity)) -> UserResponse:
    """Return the current user's record, re-read from the store.

    The token's role may be stale; the record returned here is not.
    """
    return UserResponse.from_user(_load_user(request, identity))


@router.put("/auth/me", response_model=UserResponse)
def update_me(
    request: Request,
    body: ProfileUpdate,
    identity: SessionPayload = Depends(get_current_identity),
) -> UserResponse:
    user = _load_user(request, identity)
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No valid fields to update."},
        )
    _store(request).update_user(user.id, **updates)
    return UserResponse.from_user(_store(request).get_by_id(user.id))


# ---------------------------------------------------------------------------
# User management (staff)
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(
    request: Request,
    role: Optional[RoleEnum] = None,
    identity: SessionPayload = Depends(require_roles(Role.admin, Role.ops)),
) -> list[UserResponse]:
    users = _store(request).list_users(Role(role.value) if role is not None else None)
    return [UserResponse.from_user(u) for u in users]


@router.patch("/auth/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    identity: SessionPayload = Depends(require_roles(Role.admin)),
) -> UserResponse:
    """Change a user's role or status. Admin only.

    Existing tokens keep their old role until they expire; there is no
    revocation list. An admin cannot suspend or ban themselves.
    """
    store = _store(request)
    target = store.get_by_id(user_id)
    if target is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )

    updates: dict = {}
    if body.role is not None:
        updates["role"] = Role(body.role.value)
    if body.status is not None:
        if body.status.value != UserStatus.active.value and str(target.id) == identity.sub:
            raise HTTPException(
                status_code=400,
                detail={"code": "self_deactivation", "message": "You cannot suspend your own account."},
            )
        updates["status"] = UserStatus(body.status.value)
    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )

    store.update_user(user_id, **updates)
    logger.info("user_id=%s updated by admin sub=%s: %s", user_id, identity.sub, sorted(updates))
    return UserResponse.from_user(store.get_by_id(user_id))
