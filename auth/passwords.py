"""
auth/passwords.py -- Password hashing, verification and strength policy.

Security design decisions:
  KDF: scrypt from hashlib (N=2**14, r=8, p=1, 64-byte key). scrypt is
       memory-hard, so a GPU farm pays in RAM as well as cycles per guess.

  Record format: "<salt-hex>:<key-hex>" in one column. The 16-byte random
       salt is stored as 32 hex characters and those characters (not the raw
       bytes) are the scrypt salt input. Records written by earlier
       deployments use the same convention and stay verifiable.

  Comparison: hmac.compare_digest on equal-length keys. The KDF dominates
       timing anyway, but the final equality check must not add a leak.

  Failures: a malformed stored record verifies as False. A failure inside
       scrypt itself (MemoryError, OpenSSL ValueError) propagates -- that is a
       server fault, not a wrong password.

  Event loop: scrypt takes tens of milliseconds of CPU. Async route handlers
       call hash_password_async()/verify_password_async(), which run on
       Starlette's worker thread pool so other requests keep moving.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets
from typing import TYPE_CHECKING

from starlette.concurrency import run_in_threadpool

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

SALT_BYTES = 16
KEY_LENGTH = 64

_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1
# 128 * N * r = 16 MiB working set; leave headroom over OpenSSL's 32 MiB default.
_SCRYPT_MAXMEM = 64 * 1024 * 1024

_SEPARATOR = ":"

_HAS_LETTER = re.compile(r"[a-zA-Z]")
_HAS_DIGIT = re.compile(r"[0-9]")


def _derive(password: str, salt: str) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=_SCRYPT_N,
        r=_SCRYPT_R,
        p=_SCRYPT_P,
        maxmem=_SCRYPT_MAXMEM,
        dklen=KEY_LENGTH,
    )


def format_password_record(salt: str, key: bytes) -> str:
    return f"{salt}{_SEPARATOR}{key.hex()}"


def parse_password_record(record: str) -> tuple[str, bytes] | None:
    """Split a stored record into (salt, key). Returns None if malformed."""
    if not isinstance(record, str):
        return None
    salt, sep, key_hex = record.partition(_SEPARATOR)
    if not sep or not salt or not key_hex:
        return None
    try:
        key = bytes.fromhex(key_hex)
    except ValueError:
        return None
    return salt, key


def hash_password(password: str) -> str:
    """Return a fresh "<salt-hex>:<key-hex>" record for password."""
    if not isinstance(password, str):
        raise TypeError("password must be a string")
    salt = secrets.token_hex(SALT_BYTES)
    return format_password_record(salt, _derive(password, salt))


def verify_password(password: str, record: str) -> bool:
    """Return True if password matches the stored record."""
    parsed = parse_password_record(record)
    if parsed is None or not isinstance(password, str):
        return False
    salt, expected = parsed
    candidate = _derive(password, salt)
    if len(candidate) != len(expected):
        return False
    return hmac.compare_digest(candidate, expected)


async def hash_password_async(password: str) -> str:
    return await run_in_threadpool(hash_password, password)


async def verify_password_async(password: str, record: str) -> bool:
    return await run_in_threadpool(verify_password, password, record)


def is_strong_password(password: str) -> bool:
    """8+ characters with at least one ASCII letter and one ASCII digit."""
    if len(password) < 8:
        return False
    return bool(_HAS_LETTER.search(password)) and bool(_HAS_DIGIT.search(password))


# Timing equalization dummy record.
# Computed once at module load. Login always runs a KDF -- against this record
# when the email is unknown -- so response time does not reveal whether an
# account exists.
DUMMY_PASSWORD_RECORD: str = hash_password("livestation_timing_dummy")


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate an email/password login with timing equalization.

    Always runs scrypt whether or not the account exists:
    - Unknown email: scrypt runs against DUMMY_PASSWORD_RECORD (same cost)
    - Wrong password: scrypt runs against the real record (same cost)

    Returns the User on success, None on any failure. Blocking -- call from a
    sync route (FastAPI runs those on the thread pool) or via run_in_threadpool.
    """
    user = store.find_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running scrypt
        verify_password(password, DUMMY_PASSWORD_RECORD)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user
