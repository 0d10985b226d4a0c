"""
auth/tokens.py -- Session, email-verification and reset-password tokens.

Security design decisions:
  One codec, one secret, three token kinds. All three are HMAC-signed by
       auth/codec.py with the same key, so a valid signature alone says
       nothing about what the token is for. Every validator therefore
       re-checks the kind tag and every field it needs before returning a
       typed payload:
         - session tokens carry no tag, and verify_session_token() rejects
           any payload that has one;
         - verification and reset tokens carry "typ" and must match exactly.
       This is what stops a reset link from being pasted into the session
       cookie, or a session token from completing a registration.

  Expiry is checked after, and independently of, the signature. A correctly
       signed token whose exp is not in the future is rejected.

  Failures are undifferentiated. Tampered, malformed, expired and wrong-kind
       tokens all return None -- route code turns that into one generic
       "invalid" response.

  No revocation. Tokens stay valid until exp; verifying does not consume them.

Every function takes an optional `now` (epoch seconds) so tests can move the
clock without patching time.time().

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import time
from typing import Any

from auth.codec import get_codec
from auth.models import EmailVerificationPayload, ResetPasswordPayload, SessionPayload
from core.config import get_settings

SESSION_COOKIE_NAME = "livestation_session"
SESSION_TTL_SECONDS = 60 * 60 * 24 * 7
EMAIL_VERIFICATION_TTL_SECONDS = 60 * 30
RESET_PASSWORD_TTL_SECONDS = 60 * 30

_KIND_FIELD = "typ"


def _now(now: int | None) -> int:
    return int(time.time()) if now is None else int(now)


def normalize_identifier(value: str) -> str:
    """Trim and lowercase an email address or username."""
    return value.strip().lower()


def _present(payload: dict[str, Any], key: str) -> bool:
    value = payload.get(key)
    return isinstance(value, str) and bool(value)


def _live_expiry(payload: dict[str, Any], now: int) -> int | None:
    """Return exp if it is an integer in the future, else None."""
    exp = payload.get("exp")
    # bool is an int subclass; a forged {"exp": true} must not pass
    if isinstance(exp, bool) or not isinstance(exp, int):
        return None
    if exp <= now:
        return None
    return exp


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def create_session_token(email: str, *, now: int | None = None) -> str:
    """Issue a 7-day session token for email."""
    payload = {"email": email, "exp": _now(now) + SESSION_TTL_SECONDS}
    return get_codec().encode(payload)


def verify_session_token(token: str | None, *, now: int | None = None) -> SessionPayload | None:
    """Return the SessionPayload for a valid, unexpired session token, else None."""
    payload = get_codec().decode(token)
    if payload is None:
        return None
    if _KIND_FIELD in payload:
        return None
    if not _present(payload, "email"):
        return None
    exp = _live_expiry(payload, _now(now))
    if exp is None:
        return None
    return SessionPayload(email=payload["email"], expires_at=exp)


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------


def create_email_verification_token(
    email: str,
    username: str,
    password_hash: str,
    *,
    now: int | None = None,
) -> str:
    """Issue a 30-minute token that completes a pending registration."""
    payload = {
        _KIND_FIELD: EmailVerificationPayload.KIND,
        "email": normalize_identifier(email),
        "username": normalize_identifier(username),
        "passwordHash": password_hash,
        "exp": _now(now) + EMAIL_VERIFICATION_TTL_SECONDS,
    }
    return get_codec().encode(payload)


def verify_email_verification_token(
    token: str | None,
    *,
    now: int | None = None,
) -> EmailVerificationPayload | None:
    payload = get_codec().decode(token)
    if payload is None:
        return None
    if payload.get(_KIND_FIELD) != EmailVerificationPayload.KIND:
        return None
    if not all(_present(payload, key) for key in ("email", "username", "passwordHash")):
        return None
    exp = _live_expiry(payload, _now(now))
    if exp is None:
        return None
    return EmailVerificationPayload(
        email=payload["email"],
        username=payload["username"],
        password_hash=payload["passwordHash"],
        expires_at=exp,
    )


# ---------------------------------------------------------------------------
# Reset password
# ---------------------------------------------------------------------------


def create_reset_password_token(email: str, *, now: int | None = None) -> str:
    """Issue a 30-minute password reset token for email."""
    payload = {
        _KIND_FIELD: ResetPasswordPayload.KIND,
        "email": normalize_identifier(email),
        "exp": _now(now) + RESET_PASSWORD_TTL_SECONDS,
    }
    return get_codec().encode(payload)


def verify_reset_password_token(token: str | None, *, now: int | None = None) -> ResetPasswordPayload | None:
    payload = get_codec().decode(token)
    if payload is None:
        return None
    if payload.get(_KIND_FIELD) != ResetPasswordPayload.KIND:
        return None
    if not _present(payload, "email"):
        return None
    exp = _live_expiry(payload, _now(now))
    if exp is None:
        return None
    return ResetPasswordPayload(email=payload["email"], expires_at=exp)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests, including top-level
        navigations -- CSRF mitigation alongside the origin guard.
    secure: only sent over HTTPS in production (DEBUG=false).
    max_age: matches the token expiry so both expire together.
    """
    response.set_cookie(
        SESSION_COOKIE_NAME,
        value=token,
        max_age=SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        samesite="strict",
        secure=get_settings().is_production,
    )


def clear_session_cookie(response) -> None:
    """Expire the session cookie: empty value, max_age=0, same attributes."""
    response.set_cookie(
        SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        samesite="strict",
        secure=get_settings().is_production,
    )
