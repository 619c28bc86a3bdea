"""Stable error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from enum import Enum

from fastapi import HTTPException


class ErrorCode(str, Enum):
    """Machine-readable failure kinds returned to callers."""

    INVALID_BODY = "invalid_body"
    ENV_MISSING = "env_missing"
    JWT_INVALID = "jwt_invalid"
    JWT_ISSUER_INVALID = "jwt_issuer_invalid"
    JWT_AUDIENCE_INVALID = "jwt_audience_invalid"
    RATE_LIMITED = "rate_limited"
    USER_CREATE_FAILED = "user_create_failed"
    SESSION_CREATE_FAILED = "session_create_failed"
    BOOTSTRAP_FAILED = "bootstrap_failed"
    BOOTSTRAP_RPC_MISSING = "bootstrap_rpc_missing"
    STATUS_FAILED = "status_failed"
    INTERNAL_ERROR = "internal_error"


ERROR_STATUS: Mapping[ErrorCode, int] = {
    ErrorCode.INVALID_BODY: 400,
    ErrorCode.ENV_MISSING: 500,
    ErrorCode.JWT_INVALID: 401,
    ErrorCode.JWT_ISSUER_INVALID: 401,
    ErrorCode.JWT_AUDIENCE_INVALID: 401,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.USER_CREATE_FAILED: 500,
    ErrorCode.SESSION_CREATE_FAILED: 500,
    ErrorCode.BOOTSTRAP_FAILED: 500,
    ErrorCode.BOOTSTRAP_RPC_MISSING: 500,
    ErrorCode.STATUS_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}

JWT_ERROR_CODES = frozenset(
    {ErrorCode.JWT_INVALID, ErrorCode.JWT_ISSUER_INVALID, ErrorCode.JWT_AUDIENCE_INVALID}
)

# Every verification failure carries the same human text.
INVALID_TOKEN_MESSAGE = "Invalid token"


class FederationError(HTTPException):
    """HTTPException carrying a stable :class:`ErrorCode`."""

    def __init__(
        self,
        code: ErrorCode,
        message: str | None = None,
        *,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(
            status_code=status_code or ERROR_STATUS[code],
            detail=message or code.value,
            headers=headers,
        )
        self.code = code

    @property
    def message(self) -> str:
        return str(self.detail)


def invalid_token(code: ErrorCode = ErrorCode.JWT_INVALID) -> FederationError:
    if code not in JWT_ERROR_CODES:
        raise ValueError(f"{code} is not a token verification error")
    return FederationError(code, INVALID_TOKEN_MESSAGE)


_CONNECTION_STRING = re.compile(r"\b([a-z][a-z0-9+.-]*://)[^\s:/@]+:[^\s@]+@", re.IGNORECASE)
_JWT_LIKE = re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")
_PROVIDER_KEY = re.compile(r"\b(?:(?:pk|sk)_(?:live|test)|sb_secret)_[A-Za-z0-9_-]+")


def redact(text: str, secrets: Iterable[str | None] = ()) -> str:
    """Strip credentials, token- and key-shaped strings, and known secrets from text."""
    out = _CONNECTION_STRING.sub(r"\1***@", text)
    out = _JWT_LIKE.sub("***JWT***", out)
    out = _PROVIDER_KEY.sub("***KEY***", out)
    for secret in secrets:
        if secret:
            out = out.replace(secret, "***")
    return out
