import time
from typing import Any

from authlib.jose import JoseError, jwt
from loguru import logger

from src.bridge.core.errors import ErrorCode, FederationError
from src.bridge.core.models.federation import MintedToken
from src.bridge.runtime.config.config_data import ConfigData
from src.bridge.runtime.context import get_config

SYMMETRIC_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})
_REGISTERED = frozenset({"iss", "sub", "aud", "exp", "iat", "nbf", "jti"})


class JwtGeneratorService:
    """Issues HMAC-signed tokens the data platform trusts."""

    def generate_jwt(
        self,
        subject: str,
        claims: dict[str, Any] | None = None,
        expires_in_seconds: int = 3600,
        issuer: str | None = None,
        audience: str | list[str] | None = None,
        algorithm: str = "HS256",
        include_jti: bool = False,
        secret: str | None = None,
        kid: str | None = None,
        issued_at: int | None = None,
    ) -> str:
        """Generate a signed JWT using authlib.

        Args:
            subject: Subject (sub) claim
            claims: Additional claims; registered claim names are ignored
            expires_in_seconds: Token lifetime in seconds (default: 1 hour)
            issuer: Issuer (iss) claim, omitted when None
            audience: Audience (aud) claim (defaults to the platform audience)
            algorithm: HMAC signing algorithm (default: HS256)
            include_jti: Whether to include a unique JWT ID claim
            secret: Signing secret (defaults to the platform JWT secret)
            kid: Optional Key ID for the JWT header
            issued_at: Fixed ``iat`` (defaults to now)

        Returns:
            Signed JWT token string

        Raises:
            FederationError: ``env_missing`` when no secret is configured,
                ``session_create_failed`` when signing fails.
        """
        from authlib.common.security import generate_token

        config: ConfigData = get_config()

        if not secret:
            secret = config.platform.jwt_secret
        if not secret:
            raise FederationError(ErrorCode.ENV_MISSING, "JWT signing secret not configured")

        if algorithm not in SYMMETRIC_ALGORITHMS:
            logger.debug("Attempted to mint with disallowed algorithm {}", algorithm)
            raise FederationError(
                ErrorCode.SESSION_CREATE_FAILED, f"Algorithm {algorithm} not allowed"
            )

        now = int(time.time()) if issued_at is None else issued_at

        payload: dict[str, Any] = {
            "sub": subject,
            "aud": audience or config.platform.token_audience,
            "iat": now,
            "exp": now + expires_in_seconds,
        }
        if issuer:
            payload["iss"] = issuer
        if include_jti:
            payload["jti"] = generate_token(16)

        if claims:
            payload.update({k: v for k, v in claims.items() if k not in _REGISTERED})

        header = {"alg": algorithm, "typ": "JWT"}
        if kid:
            header["kid"] = kid

        try:
            token = jwt.encode(header, payload, secret)
        except JoseError as e:
            raise FederationError(
                ErrorCode.SESSION_CREATE_FAILED, "JWT encoding failed"
            ) from e

        # authlib returns bytes
        return token.decode() if isinstance(token, bytes) else token

    def mint_access_token(self, internal_id: str, email: str | None = None) -> MintedToken:
        """Mint the platform access token for a mapped identity.

        The token carries ``sub = internal_id`` and the fixed
        ``aud``/``role`` of ``authenticated`` that row policies rely on.
        """
        config = get_config()
        platform = config.platform
        now = int(time.time())

        claims: dict[str, Any] = {"role": platform.token_role}
        if email:
            claims["email"] = email

        access_token = self.generate_jwt(
            subject=internal_id,
            claims=claims,
            expires_in_seconds=platform.token_ttl_seconds,
            audience=platform.token_audience,
            issued_at=now,
        )
        return MintedToken(
            access_token=access_token,
            subject=internal_id,
            issued_at=now,
            expires_at=now + platform.token_ttl_seconds,
        )
