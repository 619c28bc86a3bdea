"""Best-effort email extraction from verified identity claims."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Final

EmailRule = Callable[[Mapping[str, Any]], str | None]


def claim_rule(name: str) -> EmailRule:
    """Rule returning the claim ``name`` when it is a well-formed address."""

    def _rule(claims: Mapping[str, Any]) -> str | None:
        value = claims.get(name)
        if isinstance(value, str):
            value = value.strip()
            if value and "@" in value:
                return value
        return None

    _rule.__name__ = f"claim:{name}"
    return _rule


DEFAULT_EMAIL_RULES: Final[tuple[EmailRule, ...]] = (
    claim_rule("email"),
    claim_rule("email_address"),
    claim_rule("primary_email_address"),
    claim_rule("preferred_username"),
)


def placeholder_email(
    external_id: str, *, prefix: str = "idp", domain: str = "example.invalid"
) -> str:
    """Non-routable address embedding the external id (RFC 2606 ``.invalid``)."""
    local = "".join(ch if ch.isalnum() or ch in "._-" else "_" for ch in external_id)
    return f"{prefix}+{local}@{domain}"


def extract_email(
    claims: Mapping[str, Any], rules: Sequence[EmailRule] = DEFAULT_EMAIL_RULES
) -> str | None:
    """Return the first value produced by ``rules``, in order."""
    for rule in rules:
        email = rule(claims)
        if email:
            return email
    return None
