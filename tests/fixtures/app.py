"""HTTP app fixtures: the real routes over fake dependencies."""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient

from src.bridge.api.http.app import app
from src.bridge.api.http.app_data import ApplicationDependencies
from src.bridge.api.http.deps import get_platform_client_factory, get_schema_backend_factory
from src.bridge.api.http.middleware.limiter import FixedWindowRateLimiter
from src.bridge.core.services import (
    FederationService,
    JwtGeneratorService,
    JwtVerificationService,
    PlatformAdminClient,
)
from src.bridge.core.storage.cache_store import InMemoryCacheStore
from src.bridge.runtime.config.config_data import ConfigData
from src.bridge.runtime.context import with_context


def app_with_config(asgi_app, config: ConfigData):
    """Run every request under ``with_context(config)``.

    The test client drives the app from its own event loop thread, so the
    override is applied inside the request rather than around the client.
    """

    async def _wrapped(scope, receive, send):
        with with_context(config):
            await asgi_app(scope, receive, send)

    return _wrapped


@dataclass
class BridgeHarness:
    client: TestClient
    dependencies: ApplicationDependencies


@pytest.fixture
def app_dependencies(jwks_service_fake, jwks_cache) -> ApplicationDependencies:
    cache_store = InMemoryCacheStore()
    verifier = JwtVerificationService(jwks_service_fake)
    generator = JwtGeneratorService()
    return ApplicationDependencies(
        jwks_cache=jwks_cache,
        jwks_service=jwks_service_fake,
        jwt_verify_service=verifier,
        jwt_generation_service=generator,
        cache_store=cache_store,
        rate_limiter=FixedWindowRateLimiter(cache_store),
        federation_service=FederationService(verifier, generator, cache_store),
    )


@pytest.fixture
def bridge(
    bridge_config: ConfigData,
    app_dependencies: ApplicationDependencies,
    fake_platform,
    fake_schema_backend,
) -> Generator[BridgeHarness]:
    """Test client over the real app without running its lifespan.

    Tests may mutate ``bridge_config`` before the first request.
    """
    app.state.app_dependencies = app_dependencies
    app.dependency_overrides[get_platform_client_factory] = lambda: (
        lambda: PlatformAdminClient.from_config(bridge_config, transport=fake_platform.transport)
    )
    app.dependency_overrides[get_schema_backend_factory] = lambda: (
        lambda: fake_schema_backend
    )
    client = TestClient(app_with_config(app, bridge_config), raise_server_exceptions=False)
    try:
        with with_context(bridge_config):
            yield BridgeHarness(client=client, dependencies=app_dependencies)
    finally:
        app.dependency_overrides.clear()
