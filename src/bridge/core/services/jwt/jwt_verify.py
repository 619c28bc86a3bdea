"""Inbound identity token verification."""

from authlib.jose import JoseError, JsonWebKey, jwt
from authlib.jose.errors import InvalidClaimError
from loguru import logger

from src.bridge.core.errors import ErrorCode, FederationError, invalid_token
from src.bridge.core.models.federation import VerifiedClaims
from src.bridge.core.services.jwt.jwks import JwksFetchError, JwksService
from src.bridge.core.services.jwt.jwt_utils import JwtPreview, as_list, preview_jwt
from src.bridge.runtime.context import get_config


def _select_keys(jwks: dict, kid: str | None) -> dict:
    if not kid:
        return jwks
    return {"keys": [k for k in jwks.get("keys", []) if k.get("kid") == kid]}


class JwtVerificationService:
    def __init__(self, jwks_service: JwksService):
        self._jwks_service = jwks_service

    async def _key_set_for(self, jwks_url: str, kid: str | None) -> dict:
        """Fetch the key set, re-fetching once when ``kid`` is not in the cached copy."""
        jwks = await self._jwks_service.fetch_jwks(jwks_url)
        selected = _select_keys(jwks, kid)
        if kid and not selected["keys"]:
            logger.info("No JWK matches kid={}; refreshing key set", kid)
            jwks = await self._jwks_service.fetch_jwks(jwks_url, force_refresh=True)
            selected = _select_keys(jwks, kid)
        if not selected.get("keys"):
            logger.debug("No JWK matches kid={}", kid)
            raise invalid_token()
        return selected

    async def verify_jwt(
        self,
        token: str,
        *,
        expected_issuer: str | None = None,
        expected_audience: str | list[str] | None = None,
        preview: JwtPreview | None = None,
    ) -> VerifiedClaims:
        """Verify an identity-provider token and return its trusted claims.

        Args:
            token: Compact JWS from the identity provider
            expected_issuer: Issuer to require (defaults to config)
            expected_audience: Audience(s) to require (defaults to config)
            preview: Already decoded header/payload, if the caller has one

        Returns:
            VerifiedClaims for a token that passed every check

        Raises:
            FederationError: ``jwt_issuer_invalid``, ``jwt_audience_invalid``
                or ``jwt_invalid`` (always 401), or ``env_missing`` when no
                issuer/audience is configured.
        """
        cfg = get_config()
        issuer = (expected_issuer or cfg.federation.issuer or "").rstrip("/")
        audiences = as_list(expected_audience or cfg.federation.audience)
        jwks_url = cfg.federation.jwks_url or (
            f"{issuer}/.well-known/jwks.json" if issuer else None
        )
        if not issuer or not audiences or not jwks_url:
            raise FederationError(ErrorCode.ENV_MISSING, "Token verification is not configured")

        pv = preview or preview_jwt(token)

        # alg allowlist
        if pv.alg not in cfg.jwt.allowed_algorithms:
            logger.debug("Disallowed JWT algorithm {}", pv.alg)
            raise invalid_token()

        # Cheap rejection before any key set download.
        if pv.iss != issuer:
            logger.debug("Unexpected issuer {} (expected {})", pv.iss, issuer)
            raise invalid_token(ErrorCode.JWT_ISSUER_INVALID)

        try:
            key_set = await self._key_set_for(jwks_url, pv.kid)
        except JwksFetchError as exc:
            logger.error("Key set unavailable for {}: {}", issuer, exc)
            raise invalid_token() from exc

        # The comparison above ignores a trailing slash; the raw claim may carry one.
        claims_options = {
            "iss": {"essential": True, "values": [issuer, f"{issuer}/"]},
            "aud": {"essential": True, "values": audiences},
            "exp": {"essential": True},
            "sub": {"essential": True},
        }

        try:
            logger.debug(
                "Verifying JWT from issuer {} with expected audience {}", issuer, audiences
            )
            claims = jwt.decode(
                token, JsonWebKey.import_key_set(key_set), claims_options=claims_options
            )
            claims.validate(leeway=cfg.jwt.clock_skew)
        except InvalidClaimError as exc:
            claim = getattr(exc, "claim_name", None)
            logger.debug("JWT claim check failed: {}", exc)
            if claim == "aud":
                raise invalid_token(ErrorCode.JWT_AUDIENCE_INVALID) from exc
            if claim == "iss":
                raise invalid_token(ErrorCode.JWT_ISSUER_INVALID) from exc
            raise invalid_token() from exc
        except (JoseError, ValueError) as exc:
            logger.debug("JWT verification failed: {}", exc)
            raise invalid_token() from exc

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            logger.debug("JWT has an empty subject")
            raise invalid_token()

        return VerifiedClaims.from_jwt_payload(dict(claims))
