"""Turns raw failure text into operator-facing explanations."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from src.bridge.core.errors import redact


@dataclass(frozen=True)
class ExplainedError:
    code: str
    message: str
    hint: str


@dataclass(frozen=True)
class _Rule:
    code: str
    matches: Callable[[str], bool]
    message: str
    hint: str


def _any(*needles: str) -> Callable[[str], bool]:
    return lambda text: any(n in text for n in needles)


_FUNCTION_MISSING = re.compile(r"function .* does not exist")

_RULES: tuple[_Rule, ...] = (
    _Rule(
        "platform_unreachable",
        _any("enotfound", "econnrefused", "network", "timeout", "connecterror"),
        "The data platform could not be reached.",
        "Check SUPABASE_URL and that the project is running.",
    ),
    _Rule(
        "rpc_missing",
        lambda t: "bootstrap_rpc_missing" in t or bool(_FUNCTION_MISSING.search(t)),
        "The bootstrap procedures are not installed.",
        "Run the setup command to push the procedures, then retry.",
    ),
    _Rule(
        "edge_not_deployed",
        _any("404", "not_deployed", "not found"),
        "The bridge endpoints are not deployed.",
        "Deploy the bridge service and set BRIDGE_URL to its base URL.",
    ),
    _Rule(
        "invalid_issuer",
        lambda t: "issuer" in t and "not a valid url" in t,
        "The identity provider issuer is not a valid URL.",
        "Set CLERK_JWT_ISSUER to the issuer's https URL.",
    ),
    _Rule(
        "jwt_signature_mismatch",
        lambda t: "jwt" in t and any(n in t for n in ("signature", "jwks", "kid")),
        "The token signature could not be verified.",
        "Check CLERK_JWT_ISSUER/CLERK_JWKS_URL and SUPABASE_JWT_SECRET.",
    ),
)


def explain(text: str, secrets: Iterable[str | None] = ()) -> ExplainedError:
    """Map failure text to the first matching rule, or ``unknown``."""
    lowered = text.lower()
    for rule in _RULES:
        if rule.matches(lowered):
            return ExplainedError(rule.code, rule.message, rule.hint)
    return ExplainedError("unknown", redact(text, secrets), "See the service logs.")
