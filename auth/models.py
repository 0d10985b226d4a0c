"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; tokens.py, the store and routes do the work.

Token payloads form a tagged union. Each variant maps to one issuer/validator
pair in auth/tokens.py, and the validator is the only place a wire dict is
turned into one of these types -- so a reset-password token can never come
back out of verify_session_token() as a SessionPayload.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Literal, Union


@dataclass(frozen=True)
class SessionPayload:
    """Identity carried by the session cookie. No kind tag on the wire."""

    email: str
    expires_at: int  # epoch seconds


@dataclass(frozen=True)
class EmailVerificationPayload:
    """Pending registration carried in the emailed verification link.

    The account is not created until this token comes back, so the payload
    holds everything create_user() needs, including the password record.
    """

    KIND: ClassVar[str] = "verify_email"

    email: str
    username: str
    password_hash: str
    expires_at: int
    kind: Literal["verify_email"] = "verify_email"


@dataclass(frozen=True)
class ResetPasswordPayload:
    KIND: ClassVar[str] = "reset_password"

    email: str
    expires_at: int
    kind: Literal["reset_password"] = "reset_password"


TokenPayload = Union[SessionPayload, EmailVerificationPayload, ResetPasswordPayload]


@dataclass
class User:
    """A registered account.

    email and username are stored normalized (trimmed, lowercased) and are
    each unique. password_hash is a "<salt-hex>:<key-hex>" record from
    auth/passwords.py and is replaced wholesale on every password change.
    """

    email: str
    username: str
    password_hash: str
    id: int | None = None
    display_name: str | None = None
    avatar_data_url: str | None = None
    created_at: str | None = None
