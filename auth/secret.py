"""
auth/secret.py -- Process-wide signing secret for session, verification and reset tokens.

Resolution order:
  1. AUTH_SECRET (non-empty after trimming).
  2. Development mode (DEBUG=true): a fixed placeholder. Tokens signed with it
     are forgeable by anyone who reads this file -- never use it in production.
  3. Production with no AUTH_SECRET: SHA-256 of "livestation:" + the joined
     deployment identity values. Deterministic per deployment, so every worker
     of one deployment signs with the same key. Logged as a warning because
     deployment ids are not secret -- set AUTH_SECRET.
  4. Nothing available: ConfigurationError.

The resolved value is memoized on a SecretResolver instance for the process
lifetime. First access takes a lock; because resolution is a pure function of
Settings, a second resolver instance can only ever compute the same value.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Callable

from core.config import Settings, get_settings
from core.exceptions import ConfigurationError

logger = logging.getLogger("livestation.auth")

DEV_PLACEHOLDER_SECRET = "change-this-secret-in-production"  # nosec B105 -- dev-only placeholder

_FALLBACK_PREFIX = "livestation:"
_MIN_SECRET_LENGTH = 32


class SecretResolver:
    """Owns the memoized signing secret.

    Usage:
        resolver = SecretResolver(get_settings)
        key = resolver.resolve()
    """

    def __init__(self, settings_factory: Callable[[], Settings] = get_settings) -> None:
        self._settings_factory = settings_factory
        self._secret: str | None = None
        self._lock = threading.Lock()

    def resolve(self) -> str:
        """Return the signing secret, resolving it on first call.

        Raises ConfigurationError in production when neither AUTH_SECRET nor
        any deployment identity value is available.
        """
        secret = self._secret
        if secret is not None:
            return secret
        with self._lock:
            if self._secret is None:
                self._secret = self._compute(self._settings_factory())
            return self._secret

    def reset(self) -> None:
        """Forget the memoized secret. Tests only -- production never rotates."""
        with self._lock:
            self._secret = None

    @staticmethod
    def _compute(settings: Settings) -> str:
        explicit = settings.auth_secret.strip()
        if explicit:
            if len(explicit) < _MIN_SECRET_LENGTH:
                logger.warning("AUTH_SECRET is shorter than %d characters.", _MIN_SECRET_LENGTH)
            return explicit

        if not settings.is_production:
            return DEV_PLACEHOLDER_SECRET

        identity = settings.deployment_identity
        if identity:
            logger.warning("AUTH_SECRET is missing in production. Using derived deployment fallback secret.")
            joined = "|".join(identity)
            return hashlib.sha256(f"{_FALLBACK_PREFIX}{joined}".encode("utf-8")).hexdigest()

        raise ConfigurationError(
            "AUTH_SECRET must be set in production. "
            "Set AUTH_SECRET in your environment or .env file. "
            "To run in development mode, set DEBUG=true."
        )


_resolver = SecretResolver()


def get_signing_secret() -> str:
    """Return the process-wide signing secret (see module docstring)."""
    return _resolver.resolve()


def reset_signing_secret() -> None:
    """Drop the process-wide memoized secret. Tests only."""
    _resolver.reset()
