"""
auth/codec.py -- Signed, self-contained token envelope.

Wire format:  <base64url(json payload)>.<base64url(HMAC-SHA256 signature)>

Both segments are unpadded base64url, so tokens are ASCII-only and safe in
cookie values and URL query parameters. The MAC covers the exact payload
segment as received; decode() never re-serializes before checking it.

decode() returns None for every failure -- missing segment, wrong signature,
bad base64, bad JSON, non-object JSON. Callers cannot tell the cases apart,
and neither can an attacker probing the endpoint.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from collections.abc import Callable
from typing import Any

from auth.secret import get_signing_secret

_SEPARATOR = "."


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


class TokenCodec:
    """Sign/encode and verify/decode JSON-object payloads.

    secret_provider is called on every operation; the default is the
    process-wide memoized resolver, so the call is a cheap attribute read
    after the first token.
    """

    def __init__(self, secret_provider: Callable[[], str] = get_signing_secret) -> None:
        self._secret_provider = secret_provider

    def _sign(self, segment: str) -> str:
        key = self._secret_provider().encode("utf-8")
        digest = hmac.new(key, segment.encode("ascii"), hashlib.sha256).digest()
        return _b64encode(digest)

    def encode(self, payload: dict[str, Any]) -> str:
        """Serialize payload to canonical JSON and return the signed token."""
        body = json.dumps(payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
        segment = _b64encode(body.encode("utf-8"))
        return f"{segment}{_SEPARATOR}{self._sign(segment)}"

    def decode(self, token: Any) -> dict[str, Any] | None:
        """Verify token and return its payload dict, or None if it is not valid."""
        if not isinstance(token, str) or not token:
            return None
        parts = token.split(_SEPARATOR)
        if len(parts) != 2:
            return None
        segment, signature = parts
        if not segment or not signature:
            return None
        if not segment.isascii():
            return None

        expected = self._sign(segment).encode("ascii")
        received = signature.encode("utf-8")
        if len(received) != len(expected):
            return None
        if not hmac.compare_digest(received, expected):
            return None

        try:
            payload = json.loads(_b64decode(segment).decode("utf-8"))
        except (ValueError, binascii.Error):
            # json.JSONDecodeError and UnicodeDecodeError are both ValueError
            return None
        if not isinstance(payload, dict):
            return None
        return payload


_codec = TokenCodec()


def get_codec() -> TokenCodec:
    """Return the codec bound to the process-wide signing secret."""
    return _codec
