"""Lazy user provisioning."""

import pytest

from src.bridge.core.errors import ErrorCode, FederationError
from src.bridge.core.models.federation import VerifiedClaims
from src.bridge.core.services.identity.mapper import map_external_id


@pytest.fixture
def claims(issuer) -> VerifiedClaims:
    return VerifiedClaims.from_jwt_payload(
        {
            "iss": issuer,
            "sub": "user_test_123",
            "aud": "rls-bridge-test",
            "email": "dev@example.com",
        }
    )


class TestUserProvisioningService:
    async def test_creates_missing_user(self, provisioning, fake_platform, claims, issuer):
        internal_id = map_external_id("user_test_123")
        user = await provisioning.ensure_user(internal_id, "user_test_123", claims)

        assert user.created is True
        assert user.id == internal_id
        assert user.email == "dev@example.com"
        payload = fake_platform.created_users()[0]
        assert payload["id"] == internal_id
        assert payload["user_metadata"] == {
            "external_issuer": issuer,
            "external_user_id": "user_test_123",
        }
        assert payload["app_metadata"] == {"provider": "external"}

    async def test_existing_user_not_recreated(self, provisioning, fake_platform, claims):
        internal_id = map_external_id("user_test_123")
        fake_platform.users[internal_id] = {"id": internal_id, "email": "old@example.com"}

        user = await provisioning.ensure_user(internal_id, "user_test_123", claims)

        assert user.created is False
        assert user.email == "old@example.com"
        assert fake_platform.created_users() == []

    async def test_placeholder_email(self, provisioning, fake_platform, issuer):
        claims = VerifiedClaims.from_jwt_payload({"iss": issuer, "sub": "user_x", "aud": "a"})
        user = await provisioning.ensure_user(map_external_id("user_x"), "user_x", claims)
        assert user.email == "idp+user_x@example.invalid"

    async def test_concurrent_create_is_success(self, provisioning, fake_platform, claims):
        """A create that loses the race resolves to the record the winner inserted."""
        fake_platform.create_races = True
        internal_id = map_external_id("user_test_123")

        user = await provisioning.ensure_user(internal_id, "user_test_123", claims)

        assert user.id == internal_id
        assert user.created is False
        assert internal_id in fake_platform.users

    async def test_create_failure(self, provisioning, fake_platform, claims):
        fake_platform.create_status = 500
        with pytest.raises(FederationError) as exc_info:
            await provisioning.ensure_user(
                map_external_id("user_test_123"), "user_test_123", claims
            )
        assert exc_info.value.code == ErrorCode.USER_CREATE_FAILED
        assert exc_info.value.status_code == 500

    async def test_lookup_failure(self, provisioning, fake_platform, claims):
        fake_platform.lookup_status = 503
        with pytest.raises(FederationError) as exc_info:
            await provisioning.ensure_user(
                map_external_id("user_test_123"), "user_test_123", claims
            )
        assert exc_info.value.code == ErrorCode.USER_CREATE_FAILED
        assert fake_platform.created_users() == []
