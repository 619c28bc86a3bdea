import base64
import time
from typing import Any

from authlib.jose import jwt


def oct_jwk(key: bytes, kid: str) -> dict[str, str]:
    return {
        "kty": "oct",
        "k": base64.urlsafe_b64encode(key).rstrip(b"=").decode("ascii"),
        "alg": "HS256",
        "kid": kid,
    }


def sign_token(
    key: bytes,
    *,
    kid: str | None,
    issuer: str,
    audience: str | list[str],
    subject: str = "user_test_123",
    expires_in: int = 300,
    alg: str = "HS256",
    **extra: Any,
) -> str:
    """HS-signed identity token shaped like the provider's."""
    now = int(time.time())
    header: dict[str, Any] = {"alg": alg, "typ": "JWT"}
    if kid:
        header["kid"] = kid
    payload: dict[str, Any] = {
        "iss": issuer,
        "aud": audience,
        "sub": subject,
        "iat": now,
        "nbf": now,
        "exp": now + expires_in,
        **extra,
    }
    token = jwt.encode(header, payload, key)
    return token.decode() if isinstance(token, bytes) else token


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")
