"""
auth/origin.py -- Same-origin check used as the CSRF gate on mutating routes.

Rules, in order:
  1. No Origin header                  -> allowed (non-browser clients, same-origin GET-style posts).
  2. Origin not a URL with scheme+host -> rejected ("null", garbage, bad port).
  3. Allowed hosts = Host + every comma-separated X-Forwarded-Host value,
     trimmed and lowercased. Empty set -> allowed.
  4. Otherwise the Origin's host[:port] must be in the set.

Rules 1 and 3 fail open. See DESIGN.md (Open Questions) before hardening.

The Origin host is compared the way a browser renders URL.host: lowercase,
default port (80 for http, 443 for https) omitted, IPv6 in brackets.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import urlsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _origin_host(origin: str) -> str | None:
    """Return the comparable host[:port] of an Origin value, or None if unparsable."""
    try:
        parts = urlsplit(origin.strip())
        port = parts.port
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    hostname = parts.hostname
    if not scheme or not hostname:
        return None
    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        host = f"{host}:{port}"
    return host


def allowed_hosts(headers: Mapping[str, str]) -> set[str]:
    hosts: set[str] = set()
    host = headers.get("host")
    if host and host.strip():
        hosts.add(host.strip().lower())
    forwarded = headers.get("x-forwarded-host")
    if forwarded:
        for value in forwarded.split(","):
            normalized = value.strip().lower()
            if normalized:
                hosts.add(normalized)
    return hosts


def is_same_origin(headers: Mapping[str, str]) -> bool:
    """Return True if the request's Origin matches the host serving it.

    headers must be case-insensitive on lookup (Starlette Headers is).
    Never raises.
    """
    origin = headers.get("origin")
    if not origin:
        return True
    origin_host = _origin_host(origin)
    if origin_host is None:
        return False
    hosts = allowed_hosts(headers)
    if not hosts:
        return True
    return origin_host in hosts
