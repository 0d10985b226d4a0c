"""
tests/test_tokens.py -- Issuers and validators for the three token kinds.

Coverage:
  - Session token lifecycle: valid now, invalid once exp is reached
  - Email-verification token returns exactly the issued fields, normalized
  - Any single-character change anywhere in a token invalidates it
  - Kind-tag enforcement across all three validators (shared secret)
  - Field presence and type checks on signed-but-malformed payloads
  - Session cookie attributes
"""

from __future__ import annotations

import pytest
from fastapi.responses import JSONResponse

from auth.codec import get_codec
from auth.models import EmailVerificationPayload, ResetPasswordPayload, SessionPayload
from auth.tokens import (
    EMAIL_VERIFICATION_TTL_SECONDS,
    RESET_PASSWORD_TTL_SECONDS,
    SESSION_COOKIE_NAME,
    SESSION_TTL_SECONDS,
    clear_session_cookie,
    create_email_verification_token,
    create_reset_password_token,
    create_session_token,
    set_session_cookie,
    verify_email_verification_token,
    verify_reset_password_token,
    verify_session_token,
)

NOW = 1_750_000_000


def _flip(text: str, index: int) -> str:
    replacement = "A" if text[index] != "A" else "B"
    return text[:index] + replacement + text[index + 1 :]


def test_ttls() -> None:
    assert SESSION_TTL_SECONDS == 604800
    assert EMAIL_VERIFICATION_TTL_SECONDS == 1800
    assert RESET_PASSWORD_TTL_SECONDS == 1800


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class TestSessionToken:
    def test_verifies_immediately(self) -> None:
        token = create_session_token("user@example.com", now=NOW)
        payload = verify_session_token(token, now=NOW)
        assert payload == SessionPayload(email="user@example.com", expires_at=NOW + 604800)

    def test_rejected_after_ttl(self) -> None:
        token = create_session_token("user@example.com", now=NOW)
        assert verify_session_token(token, now=NOW + 604799) is not None
        assert verify_session_token(token, now=NOW + 604800) is None
        assert verify_session_token(token, now=NOW + 604801) is None

    def test_reverifiable(self) -> None:
        token = create_session_token("user@example.com", now=NOW)
        for _ in range(3):
            assert verify_session_token(token, now=NOW + 10) is not None

    def test_default_clock(self) -> None:
        assert verify_session_token(create_session_token("user@example.com")).email == "user@example.com"

    def test_missing_token(self) -> None:
        assert verify_session_token(None) is None
        assert verify_session_token("") is None

    def test_rejects_reset_token(self) -> None:
        token = create_reset_password_token("user@example.com", now=NOW)
        assert verify_session_token(token, now=NOW) is None

    def test_rejects_verification_token(self) -> None:
        token = create_email_verification_token("user@example.com", "user", "s:k", now=NOW)
        assert verify_session_token(token, now=NOW) is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"exp": NOW + 100},
            {"email": "", "exp": NOW + 100},
            {"email": 42, "exp": NOW + 100},
            {"email": "user@example.com"},
            {"email": "user@example.com", "exp": str(NOW + 100)},
            {"email": "user@example.com", "exp": True},
            {"email": "user@example.com", "exp": float(NOW + 100)},
            {"email": "user@example.com", "exp": NOW + 100, "typ": "session"},
        ],
    )
    def test_rejects_malformed_signed_payloads(self, payload: dict) -> None:
        assert verify_session_token(get_codec().encode(payload), now=NOW) is None


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------


class TestEmailVerificationToken:
    def test_returns_issued_fields(self) -> None:
        token = create_email_verification_token("a@b.com", "abc", "h", now=NOW)
        payload = verify_email_verification_token(token, now=NOW)
        assert payload == EmailVerificationPayload(
            email="a@b.com",
            username="abc",
            password_hash="h",
            expires_at=NOW + 1800,
        )
        assert payload.kind == "verify_email"

    def test_any_single_character_change_invalidates(self) -> None:
        token = create_email_verification_token("a@b.com", "abc", "h", now=NOW)
        for i in range(len(token)):
            assert verify_email_verification_token(_flip(token, i), now=NOW) is None, f"index {i}"

    def test_normalizes_email_and_username(self) -> None:
        token = create_email_verification_token("  A@B.Com ", " AbC ", "h", now=NOW)
        payload = verify_email_verification_token(token, now=NOW)
        assert payload.email == "a@b.com"
        assert payload.username == "abc"

    def test_password_hash_not_normalized(self) -> None:
        token = create_email_verification_token("a@b.com", "abc", "SaLt:KeY", now=NOW)
        assert verify_email_verification_token(token, now=NOW).password_hash == "SaLt:KeY"

    def test_expired(self) -> None:
        token = create_email_verification_token("a@b.com", "abc", "h", now=NOW)
        assert verify_email_verification_token(token, now=NOW + 1800) is None

    def test_rejects_session_token(self) -> None:
        token = create_session_token("a@b.com", now=NOW)
        assert verify_email_verification_token(token, now=NOW) is None

    def test_rejects_reset_token(self) -> None:
        token = create_reset_password_token("a@b.com", now=NOW)
        assert verify_email_verification_token(token, now=NOW) is None

    @pytest.mark.parametrize("missing", ["email", "username", "passwordHash", "exp", "typ"])
    def test_rejects_missing_field(self, missing: str) -> None:
        payload = {
            "typ": "verify_email",
            "email": "a@b.com",
            "username": "abc",
            "passwordHash": "h",
            "exp": NOW + 100,
        }
        del payload[missing]
        assert verify_email_verification_token(get_codec().encode(payload), now=NOW) is None

    def test_rejects_kind_with_different_case(self) -> None:
        payload = {"typ": "VERIFY_EMAIL", "email": "a@b.com", "username": "abc", "passwordHash": "h", "exp": NOW + 9}
        assert verify_email_verification_token(get_codec().encode(payload), now=NOW) is None


# ---------------------------------------------------------------------------
# Reset password
# ---------------------------------------------------------------------------


class TestResetPasswordToken:
    def test_round_trip(self) -> None:
        token = create_reset_password_token(" User@Example.com ", now=NOW)
        assert verify_reset_password_token(token, now=NOW) == ResetPasswordPayload(
            email="user@example.com",
            expires_at=NOW + 1800,
        )

    def test_expired(self) -> None:
        token = create_reset_password_token("user@example.com", now=NOW)
        assert verify_reset_password_token(token, now=NOW + 1799) is not None
        assert verify_reset_password_token(token, now=NOW + 1801) is None

    def test_rejects_session_token(self) -> None:
        token = create_session_token("user@example.com", now=NOW)
        assert verify_reset_password_token(token, now=NOW) is None

    def test_rejects_verification_token(self) -> None:
        token = create_email_verification_token("user@example.com", "user", "h", now=NOW)
        assert verify_reset_password_token(token, now=NOW) is None

    def test_rejects_tampered_token(self) -> None:
        token = create_reset_password_token("user@example.com", now=NOW)
        assert verify_reset_password_token(_flip(token, 3), now=NOW) is None


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def _set_cookie_header(response: JSONResponse) -> str:
    headers = [v.decode("latin-1") for k, v in response.raw_headers if k == b"set-cookie"]
    assert len(headers) == 1
    return headers[0]


def test_set_session_cookie_attributes() -> None:
    resp = JSONResponse(content={})
    set_session_cookie(resp, "tok.sig")
    header = _set_cookie_header(resp)
    assert header.startswith(f"{SESSION_COOKIE_NAME}=tok.sig")
    assert "HttpOnly" in header
    assert "Max-Age=604800" in header
    assert "Path=/" in header
    assert "samesite=strict" in header.lower()
    # DEBUG=true in tests -> not production -> no Secure flag
    assert "Secure" not in header


def test_clear_session_cookie() -> None:
    resp = JSONResponse(content={})
    clear_session_cookie(resp)
    header = _set_cookie_header(resp)
    assert header.startswith(f'{SESSION_COOKIE_NAME}="";') or header.startswith(f"{SESSION_COOKIE_NAME}=;")
    assert "Max-Age=0" in header
