"""FastAPI dependency implementations."""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from src.bridge.api.http.app_data import ApplicationDependencies
from src.bridge.core.services import (
    DbSessionService,
    FederationService,
    JwksService,
    PlatformAdminClient,
    RpcSchemaBackend,
    SchemaBackend,
    SqlSchemaBackend,
)
from src.bridge.core.storage.cache_store import CacheStore
from src.bridge.runtime.context import get_config

PlatformClientFactory = Callable[[], PlatformAdminClient]
SchemaBackendFactory = Callable[[], SchemaBackend]


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    return request.app.state.app_dependencies


def get_jwks_service(request: Request) -> JwksService:
    """Get the JWKS service instance."""
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    return app_deps.jwks_service


def get_cache_store(request: Request) -> CacheStore:
    """Get the shared cache store."""
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    return app_deps.cache_store


def get_federation_service(request: Request) -> FederationService:
    """Get the federation service instance."""
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    return app_deps.federation_service


def get_platform_client_factory() -> PlatformClientFactory:
    """Admin clients are built per request from the current config.

    Handlers call the factory only after the required settings were checked.
    """
    return lambda: PlatformAdminClient.from_config(get_config())


def get_schema_backend_factory(request: Request) -> SchemaBackendFactory:
    """Backend chosen by ``platform.installer_backend``."""
    app_deps: ApplicationDependencies = request.app.state.app_dependencies

    def _factory() -> SchemaBackend:
        config = get_config()
        if config.platform.installer_backend == "sql":
            if app_deps.database_service is None:
                app_deps.database_service = DbSessionService(config)
            return SqlSchemaBackend(app_deps.database_service, config)
        return RpcSchemaBackend(PlatformAdminClient.from_config(config), config)

    return _factory
