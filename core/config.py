"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for LiveStation happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. auth_secret -> AUTH_SECRET). Type coercion and validation are built in.

Signing secret:
  Settings only carries the raw inputs (AUTH_SECRET, DEBUG and the deployment
  identity values). Turning them into the process signing key is the job of
  auth/secret.py, which resolves lazily on first use and raises
  ConfigurationError when production has neither a secret nor fallback entropy.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from functools import lru_cache
from urllib.parse import urlsplit

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOCAL_FALLBACK_URL = "http://localhost:3000"
_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_site_url(value: str) -> str:
    """Reduce a configured site URL to its origin (scheme://host[:port]).

    A bare host ("example.com") is assumed to be HTTPS. Blank or unparsable
    values fall back to the local development URL so link building never fails.
    """
    trimmed = (value or "").strip()
    if not trimmed:
        return LOCAL_FALLBACK_URL
    if not trimmed.lower().startswith(("http://", "https://")):
        trimmed = f"https://{trimmed}"
    try:
        parts = urlsplit(trimmed)
        port = parts.port
    except ValueError:
        return LOCAL_FALLBACK_URL
    if not parts.hostname:
        return LOCAL_FALLBACK_URL
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    scheme = parts.scheme.lower()
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    return f"{scheme}://{host}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `auth_secret` reads from AUTH_SECRET, `debug` reads from DEBUG.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # DEBUG=false (the default) means production: Secure cookies, and the
    # signing secret must come from AUTH_SECRET or deployment identity.
    debug: bool = False
    # Empty string is the sentinel for "not configured".
    auth_secret: str = ""

    # ------------------------------------------------------------------
    # Deployment identity -- last-resort entropy for the signing secret
    # ------------------------------------------------------------------

    vercel_deployment_id: str = ""
    vercel_git_commit_sha: str = ""
    vercel_url: str = ""
    vercel_project_production_url: str = ""
    vercel_project_id: str = ""
    vercel_org_id: str = ""

    # ------------------------------------------------------------------
    # Site / storage
    # ------------------------------------------------------------------

    # Base for links in verification and reset emails.
    site_url: str = ""
    auth_db_url: str = ""

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Outbound mail (optional -- empty host means delivery is disabled)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 0
    smtp_secure: bool = False
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_from: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("smtp_host", "smtp_user", "smtp_pass", "smtp_from", mode="before")
    @classmethod
    def strip_smtp_values(cls, value):
        return value.strip() if isinstance(value, str) else value

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        return not self.debug

    @property
    def deployment_identity(self) -> list[str]:
        """Non-blank deployment identity values in a fixed order.

        The order never changes, so the derived fallback secret is the same
        for every process of one deployment.
        """
        values = [
            self.vercel_deployment_id,
            self.vercel_git_commit_sha,
            self.vercel_url,
            self.vercel_project_production_url,
            self.vercel_project_id,
            self.vercel_org_id,
        ]
        return [v.strip() for v in values if v and v.strip()]

    @property
    def public_site_url(self) -> str:
        """Origin used when building absolute links for outbound mail.

        SITE_URL wins; otherwise the production URL of the deployment, then
        the per-deployment URL, then localhost.
        """
        configured = self.site_url or self.vercel_project_production_url or self.vercel_url
        return normalize_site_url(configured)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_port > 0 and self.smtp_from)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings() directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
