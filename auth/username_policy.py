"""
auth/username_policy.py -- Reserved and impersonation-prone usernames.

Checked at registration and again when the verification link is redeemed,
since the list can change while a link is in flight.
"""

from __future__ import annotations

from dataclasses import dataclass

RESERVED_EXACT = frozenset(
    {
        "admin",
        "administrator",
        "root",
        "owner",
        "mod",
        "moderator",
        "staff",
        "support",
        "suporte",
        "official",
        "oficial",
        "system",
        "sys",
        "help",
        "contact",
        "contato",
        "security",
        "verificado",
        "verified",
        "rizzer",
    }
)

FAMOUS_EXACT = frozenset(
    {
        "elonmusk",
        "billgates",
        "jeffbezos",
        "markzuckerberg",
        "cristianoronaldo",
        "leomessi",
        "neymar",
        "taylorswift",
        "selenagomez",
        "beyonce",
    }
)

RESERVED_PARTS = ("admin", "support", "suporte", "official", "oficial", "mod", "staff", "rizzer")


@dataclass(frozen=True)
class UsernamePolicyResult:
    allowed: bool
    reason: str | None = None  # "reserved_keyword" | "famous_name"


def evaluate_username_policy(username: str) -> UsernamePolicyResult:
    normalized = username.strip().lower()
    if not normalized:
        return UsernamePolicyResult(allowed=True)
    if normalized in RESERVED_EXACT:
        return UsernamePolicyResult(allowed=False, reason="reserved_keyword")
    if normalized in FAMOUS_EXACT:
        return UsernamePolicyResult(allowed=False, reason="famous_name")
    for part in RESERVED_PARTS:
        if part in normalized:
            return UsernamePolicyResult(allowed=False, reason="reserved_keyword")
    return UsernamePolicyResult(allowed=True)
