"""
api/routes/v1/auth.py -- Account and session REST endpoints.

Routes:
  POST  /api/v1/auth/register         -- start registration; emails a verification link
  GET   /api/v1/auth/verify-email     -- redeem the link; creates the account; 302 to /login
  GET   /api/v1/auth/check-username   -- is this username free to register?
  POST  /api/v1/auth/login            -- email/password login; sets session cookie
  POST  /api/v1/auth/logout           -- clears session cookie
  GET   /api/v1/auth/session          -- who am I (never 401)
  GET   /api/v1/auth/profile          -- signed-in account details (requires session)
  PATCH /api/v1/auth/profile          -- set or clear the avatar (requires session)
  POST  /api/v1/auth/forgot-password  -- emails a reset link if the account exists
  POST  /api/v1/auth/reset-password   -- redeem a reset token with a new password
  POST  /api/v1/auth/change-password  -- change password (requires session)

Security:
  Every POST/PATCH lists require_same_origin first, so the CSRF gate runs
      before any cookie, token or password is examined.
  POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  authenticate_user() provides timing equalization -- use it, never inline.
  Login and forgot-password answer the same way for unknown and known emails.
  Cache-Control: no-store on login responses.
  Blocking work runs on the worker thread pool: login is a sync route (FastAPI
      runs it off the event loop); async routes call the *_async KDF helpers
      and wrap UserStore calls in run_in_threadpool.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter, login_rate_limit
from api.models import (
    USERNAME_PATTERN,
    ChangePasswordRequest,
    CheckUsernameResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    OkResponse,
    ProfileResponse,
    RegisterRequest,
    ResetPasswordRequest,
    SessionResponse,
    UpdateProfileRequest,
    is_valid_avatar_data_url,
)
from auth.dependencies import get_current_user, require_same_origin, try_get_session
from auth.mailer import Mailer, MailNotConfiguredError
from auth.models import User
from auth.passwords import (
    authenticate_user,
    hash_password_async,
    is_strong_password,
    verify_password_async,
)
from auth.store import UserExistsError, UserNotFoundError, UserStore
from auth.tokens import (
    clear_session_cookie,
    create_email_verification_token,
    create_reset_password_token,
    create_session_token,
    normalize_identifier,
    set_session_cookie,
    verify_email_verification_token,
    verify_reset_password_token,
)
from auth.username_policy import evaluate_username_policy
from core.config import get_settings

logger = logging.getLogger("livestation.auth")

router = APIRouter()

_WEAK_PASSWORD_MESSAGE = "Password must be at least 8 characters and contain letters and numbers."
_USERNAME_RE = re.compile(USERNAME_PATTERN)


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


def _mail_unavailable() -> HTTPException:
    return _error(503, "mail_not_configured", "Email delivery is not configured.")


def _profile(user: User) -> ProfileResponse:
    return ProfileResponse(
        email=user.email,
        username=user.username,
        display_name=user.display_name or user.username,
        avatar_data_url=user.avatar_data_url,
    )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=OkResponse, dependencies=[Depends(require_same_origin)])
async def register(request: Request, body: RegisterRequest) -> OkResponse:
    """Validate the sign-up and email a verification link.

    No account is written yet. The pending registration (including the
    password record) rides inside the signed verification token, so an
    abandoned sign-up leaves nothing behind.
    """
    if not is_strong_password(body.password):
        raise _error(400, "weak_password", _WEAK_PASSWORD_MESSAGE)
    if not evaluate_username_policy(body.username).allowed:
        raise _error(400, "username_reserved", "This username is reserved. Choose another one.")

    user_store: UserStore = request.app.state.user_store
    if await run_in_threadpool(user_store.find_by_email, body.email) is not None:
        raise _error(409, "email_exists", "This email is already registered.")
    if await run_in_threadpool(user_store.find_by_username, body.username) is not None:
        raise _error(409, "username_exists", "This username is already taken.")

    mailer: Mailer = request.app.state.mailer
    if not mailer.available:
        raise _mail_unavailable()

    password_hash = await hash_password_async(body.password)
    token = create_email_verification_token(body.email, body.username, password_hash)
    verify_url = f"{get_settings().public_site_url}/api/v1/auth/verify-email?token={quote(token)}"
    try:
        await mailer.send_verification_email_async(body.email, body.username, verify_url)
    except MailNotConfiguredError:
        logger.error("Registration blocked: SMTP is not configured")
        raise _mail_unavailable()
    return OkResponse()


@router.get("/auth/verify-email")
async def verify_email(request: Request, token: str = "") -> RedirectResponse:
    """Redeem a verification link and create the account.

    Always redirects to /login with verify=success|invalid|already|error.
    Bad, expired and wrong-kind tokens all map to "invalid".
    """
    payload = verify_email_verification_token(token)
    if payload is None or not evaluate_username_policy(payload.username).allowed:
        return _login_redirect("invalid")

    user_store: UserStore = request.app.state.user_store
    try:
        await run_in_threadpool(user_store.create_user, payload.email, payload.username, payload.password_hash)
    except UserExistsError:
        # Link clicked twice, or the email/username was claimed meanwhile.
        return _login_redirect("already")
    except Exception:
        logger.exception("Account creation failed during email verification")
        return _login_redirect("error")
    logger.info("Account created via email verification")
    return _login_redirect("success")


def _login_redirect(result: str) -> RedirectResponse:
    return RedirectResponse(f"/login?{urlencode({'verify': result})}", status_code=302)


@router.get("/auth/check-username", response_model=CheckUsernameResponse)
async def check_username(request: Request, username: str = "") -> JSONResponse:
    """Report whether a username could be registered right now.

    reason: EMPTY (400), INVALID (bad characters or length), RESERVED,
    TAKEN, or OK. Advisory only; register re-checks everything.
    """
    normalized = normalize_identifier(username)
    if not normalized:
        return JSONResponse(
            status_code=400,
            content=CheckUsernameResponse(available=False, reason="EMPTY").model_dump(),
        )
    if not _USERNAME_RE.match(normalized):
        result = CheckUsernameResponse(available=False, reason="INVALID")
    elif not evaluate_username_policy(normalized).allowed:
        result = CheckUsernameResponse(available=False, reason="RESERVED")
    else:
        user_store: UserStore = request.app.state.user_store
        existing = await run_in_threadpool(user_store.find_by_username, normalized)
        result = CheckUsernameResponse(
            available=existing is None,
            reason="OK" if existing is None else "TAKEN",
        )
    return JSONResponse(content=result.model_dump())


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse, dependencies=[Depends(require_same_origin)])
@limiter.limit(login_rate_limit)  # must be BELOW @router so the route registers the limited wrapper
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Returns the same generic error for unknown email and wrong password
    ("bad_credentials") to avoid leaking account existence.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = create_session_token(user.email)
    resp = JSONResponse(status_code=200, content=LoginResponse(email=user.email).model_dump())
    set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", dependencies=[Depends(require_same_origin)])
async def logout() -> JSONResponse:
    """Clear the session cookie. Stateless tokens cannot be revoked; the cookie is all there is."""
    resp = JSONResponse(content=OkResponse().model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/auth/session", response_model=SessionResponse)
async def session(request: Request) -> SessionResponse:
    """Report whether the session cookie is valid. Never 401s."""
    payload = try_get_session(request)
    if payload is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(authenticated=True, email=payload.email)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=ProfileResponse)
async def get_profile(current_user: User = Depends(get_current_user)) -> ProfileResponse:
    return _profile(current_user)


@router.patch("/auth/profile", response_model=ProfileResponse, dependencies=[Depends(require_same_origin)])
async def update_profile(
    request: Request,
    body: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
) -> ProfileResponse:
    """Set (data:image/ URL) or clear (null) the avatar. An omitted field is left as is."""
    if "avatar_data_url" not in body.model_fields_set:
        return _profile(current_user)

    avatar = body.avatar_data_url
    if avatar is not None:
        if not is_valid_avatar_data_url(avatar):
            raise _error(400, "avatar_invalid", "Avatar must be an image data URL.")
        avatar = avatar.strip()

    user_store: UserStore = request.app.state.user_store
    try:
        updated = await run_in_threadpool(user_store.update_avatar, current_user.email, avatar)
    except UserNotFoundError:
        raise _error(401, "unauthorized", "Authentication required.")
    return _profile(updated)


# ---------------------------------------------------------------------------
# Password recovery and change
# ---------------------------------------------------------------------------


@router.post("/auth/forgot-password", response_model=OkResponse, dependencies=[Depends(require_same_origin)])
async def forgot_password(request: Request, body: ForgotPasswordRequest) -> OkResponse:
    """Email a reset link if the account exists. The response never says whether it does."""
    mailer: Mailer = request.app.state.mailer
    if not mailer.available:
        raise _mail_unavailable()

    user_store: UserStore = request.app.state.user_store
    user = await run_in_threadpool(user_store.find_by_email, body.email)
    if user is not None:
        token = create_reset_password_token(user.email)
        reset_url = f"{get_settings().public_site_url}/reset-password?token={quote(token)}"
        try:
            await mailer.send_reset_password_email_async(user.email, user.display_name or user.username, reset_url)
        except MailNotConfiguredError:
            logger.error("Password reset blocked: SMTP is not configured")
            raise _mail_unavailable()
    return OkResponse(message="If the email exists, you will receive a link to reset your password.")


@router.post("/auth/reset-password", response_model=OkResponse, dependencies=[Depends(require_same_origin)])
async def reset_password(request: Request, body: ResetPasswordRequest) -> OkResponse:
    """Set a new password using a reset token."""
    if not is_strong_password(body.password):
        raise _error(400, "weak_password", _WEAK_PASSWORD_MESSAGE)

    payload = verify_reset_password_token(body.token)
    if payload is None:
        raise _error(400, "token_invalid", "Invalid or expired link.")

    password_hash = await hash_password_async(body.password)
    user_store: UserStore = request.app.state.user_store
    try:
        await run_in_threadpool(user_store.update_password, payload.email, password_hash)
    except UserNotFoundError:
        raise _error(404, "account_not_found", "Account not found.")
    logger.info("Password reset completed")
    return OkResponse()


@router.post("/auth/change-password", response_model=OkResponse, dependencies=[Depends(require_same_origin)])
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> OkResponse:
    """Change the password of the signed-in account after re-checking the current one."""
    if not is_strong_password(body.new_password):
        raise _error(400, "weak_password", _WEAK_PASSWORD_MESSAGE)
    if body.current_password == body.new_password:
        raise _error(400, "same_password", "The new password must differ from the current one.")

    if not await verify_password_async(body.current_password, current_user.password_hash):
        raise _error(401, "current_password_invalid", "Current password is incorrect.")

    password_hash = await hash_password_async(body.new_password)
    user_store: UserStore = request.app.state.user_store
    await run_in_threadpool(user_store.update_password, current_user.email, password_hash)
    return OkResponse()
