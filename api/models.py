"""
API request and response models for LiveStation auth endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
USERNAME_PATTERN = r"^[a-zA-Z0-9_]{3,20}$"
MAX_AVATAR_DATA_URL_LENGTH = 8_000_000


def _normalize_email(value):
    return value.strip().lower() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Strength of the password is checked in the route (is_strong_password) so
    the failure carries its own error code rather than a generic 422.
    """

    email: str = Field(max_length=320, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=256)
    username: str = Field(pattern=USERNAME_PATTERN)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return _normalize_email(value)

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, value):
        return value.strip() if isinstance(value, str) else value


class LoginRequest(BaseModel):
    email: str = Field(max_length=320, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=256)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return _normalize_email(value)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(max_length=320, pattern=EMAIL_PATTERN)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return _normalize_email(value)


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=4096)
    password: str = Field(min_length=1, max_length=256)

    @field_validator("token", mode="before")
    @classmethod
    def strip_token(cls, value):
        return value.strip() if isinstance(value, str) else value


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=256)
    new_password: str = Field(min_length=1, max_length=256)


class UpdateProfileRequest(BaseModel):
    """Request body for PATCH /api/v1/auth/profile.

    Omitting avatar_data_url leaves the avatar untouched; null clears it. The
    route checks the data URL with is_valid_avatar_data_url() so a
    bad image gets its own error code.
    """

    avatar_data_url: Optional[str] = None


def is_valid_avatar_data_url(value: str) -> bool:
    normalized = value.strip()
    return normalized.startswith("data:image/") and len(normalized) <= MAX_AVATAR_DATA_URL_LENGTH


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class OkResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    message: Optional[str] = None


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login. The token itself travels only in the cookie."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    email: str


class SessionResponse(BaseModel):
    """Response for GET /api/v1/auth/session."""

    model_config = ConfigDict(frozen=True)

    authenticated: bool
    email: Optional[str] = None


class CheckUsernameResponse(BaseModel):
    """Response for GET /api/v1/auth/check-username.

    reason is one of EMPTY, INVALID, RESERVED, TAKEN, OK.
    """

    model_config = ConfigDict(frozen=True)

    available: bool
    reason: Literal["EMPTY", "INVALID", "RESERVED", "TAKEN", "OK"]


class ProfileResponse(BaseModel):
    """Response for GET and PATCH /api/v1/auth/profile."""

    model_config = ConfigDict(frozen=True)

    email: str
    username: str
    display_name: str
    avatar_data_url: Optional[str] = None


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
