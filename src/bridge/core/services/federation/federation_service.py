"""Token federation: verify, map, provision, mint."""

from __future__ import annotations

from loguru import logger

from src.bridge.core.models.federation import MintedToken, VerifiedClaims
from src.bridge.core.services.identity.mapper import IdentityMapper
from src.bridge.core.services.jwt.jwt_gen import JwtGeneratorService
from src.bridge.core.services.jwt.jwt_verify import JwtVerificationService
from src.bridge.core.services.user.provisioning import UserProvisioningService
from src.bridge.core.storage.cache_store import CacheStore
from src.bridge.runtime.context import get_config

MINTED_TOKEN_PREFIX = "minted:"


class FederationService:
    """Exchanges a verified identity-provider token for a platform token.

    Steps run strictly in order; a failure at any step raises a
    ``FederationError`` and nothing after it executes.
    """

    def __init__(
        self,
        verifier: JwtVerificationService,
        generator: JwtGeneratorService,
        cache_store: CacheStore,
    ) -> None:
        self._verifier = verifier
        self._generator = generator
        self._cache = cache_store

    async def verify(self, external_token: str) -> VerifiedClaims:
        return await self._verifier.verify_jwt(external_token)

    async def federate(
        self, external_token: str, provisioning: UserProvisioningService
    ) -> MintedToken:
        claims = await self._verifier.verify_jwt(external_token)
        identity = IdentityMapper(get_config().federation.identity_namespace).map(
            claims.subject
        )
        logger.debug("Mapped external subject to {}", identity.internal_id)

        cached = await self._cached_token(identity.internal_id)
        if cached is not None:
            logger.debug("Reusing minted token for {}", identity.internal_id)
            return cached

        user = await provisioning.ensure_user(identity.internal_id, claims.subject, claims)
        minted = self._generator.mint_access_token(identity.internal_id, user.email)
        await self._remember(minted)
        logger.info(
            "Federated {} (user created: {})", identity.internal_id, user.created
        )
        return minted

    async def _cached_token(self, internal_id: str) -> MintedToken | None:
        if get_config().platform.token_cache_ttl_seconds <= 0:
            return None
        try:
            data = await self._cache.get(f"{MINTED_TOKEN_PREFIX}{internal_id}")
        except RuntimeError as exc:
            logger.warning("Minted token cache read failed: {}", exc)
            return None
        if not data:
            return None
        token = MintedToken.model_validate(data)
        if token.subject != internal_id:
            return None
        return token

    async def _remember(self, minted: MintedToken) -> None:
        ttl = get_config().platform.token_cache_ttl_seconds
        if ttl <= 0:
            return
        try:
            await self._cache.set(
                f"{MINTED_TOKEN_PREFIX}{minted.subject}", minted.model_dump(), ttl
            )
        except RuntimeError as exc:
            logger.warning("Minted token cache write failed: {}", exc)
