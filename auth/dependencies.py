"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

require_same_origin() is the CSRF gate. Every state-mutating route lists it
first in its dependencies, so it runs before any cookie, token or password
is looked at.

try_get_session() is the soft variant (returns None on failure).
get_current_user() wraps it, loads the account, and raises HTTP 401 if
either step fails.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import SessionPayload, User
from auth.origin import is_same_origin
from auth.tokens import SESSION_COOKIE_NAME, verify_session_token


def require_same_origin(request: Request) -> None:
    """Raise HTTP 403 when the Origin header names a different host.

    Use as a FastAPI dependency:
        @router.post("/auth/logout", dependencies=[Depends(require_same_origin)])
    """
    if not is_same_origin(request.headers):
        raise HTTPException(
            status_code=403,
            detail={"code": "origin_invalid", "message": "Invalid request origin."},
        )


def try_get_session(request: Request) -> SessionPayload | None:
    """Return the verified session from the session cookie, None on any failure.

    Never raises -- callers that need a hard 401 should use get_current_user().
    """
    return verify_session_token(request.cookies.get(SESSION_COOKIE_NAME))


def get_current_user(request: Request) -> User:
    """Require a valid session for an existing account. Raises HTTP 401 otherwise.

    A session for an account that no longer exists is treated exactly like a
    missing cookie.
    """
    session = try_get_session(request)
    user = request.app.state.user_store.find_by_email(session.email) if session else None
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
