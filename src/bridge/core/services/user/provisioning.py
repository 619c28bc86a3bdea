"""Lazy (just-in-time) creation of platform user records."""

from __future__ import annotations

from loguru import logger

from src.bridge.core.errors import ErrorCode, FederationError
from src.bridge.core.models.federation import ProvisionedUser, VerifiedClaims
from src.bridge.core.services.identity.email import extract_email, placeholder_email
from src.bridge.core.services.platform.admin_client import PlatformAdminClient, PlatformError
from src.bridge.runtime.context import get_config

PROVIDER_NAME = "external"


class UserProvisioningService:
    def __init__(self, admin_client: PlatformAdminClient):
        self._admin = admin_client

    async def ensure_user(
        self, internal_id: str, external_id: str, claims: VerifiedClaims
    ) -> ProvisionedUser:
        """Return the platform user for ``internal_id``, creating it when absent.

        A concurrent request may create the same record between our lookup
        and our insert; any create failure is therefore followed by one
        re-check before it is treated as fatal.

        Raises:
            FederationError: ``user_create_failed`` when the record neither
                exists nor could be created.
        """
        try:
            existing = await self._admin.get_user(internal_id)
        except PlatformError as exc:
            logger.error("User lookup failed for {}: {}", internal_id, exc)
            raise FederationError(ErrorCode.USER_CREATE_FAILED, "User lookup failed") from exc

        if existing:
            return ProvisionedUser(
                id=internal_id,
                email=existing.get("email") or self._derive_email(external_id, claims),
            )

        email = self._derive_email(external_id, claims)
        try:
            await self._admin.create_user(
                internal_id,
                email,
                user_metadata={
                    "external_issuer": claims.issuer,
                    "external_user_id": external_id,
                },
                app_metadata={"provider": PROVIDER_NAME},
            )
            logger.info("Provisioned user {}", internal_id)
            return ProvisionedUser(id=internal_id, email=email, created=True)
        except PlatformError as exc:
            logger.warning("User create for {} failed ({}); re-checking", internal_id, exc)
            create_error = exc

        try:
            raced = await self._admin.get_user(internal_id)
        except PlatformError as exc:
            raise FederationError(ErrorCode.USER_CREATE_FAILED, "User create failed") from exc
        if raced:
            return ProvisionedUser(id=internal_id, email=raced.get("email") or email)

        logger.error("User create failed for {}: {}", internal_id, create_error)
        raise FederationError(
            ErrorCode.USER_CREATE_FAILED, "User create failed"
        ) from create_error

    @staticmethod
    def _derive_email(external_id: str, claims: VerifiedClaims) -> str:
        federation = get_config().federation
        return extract_email(claims.raw_claims) or placeholder_email(
            external_id,
            prefix=federation.placeholder_email_prefix,
            domain=federation.placeholder_email_domain,
        )
