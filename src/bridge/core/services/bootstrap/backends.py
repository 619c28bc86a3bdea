"""Schema backends: install and status through RPC or a direct connection."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from loguru import logger
from pydantic import ValidationError

from src.bridge.core.errors import ErrorCode, FederationError, redact
from src.bridge.core.models.bootstrap import InstallResult, ReadinessReport
from src.bridge.core.services.bootstrap.catalog import build_catalog
from src.bridge.core.services.bootstrap.installer import SchemaInstaller, SchemaIntrospector
from src.bridge.core.services.bootstrap.procedures import INSTALL_PROCEDURE, STATUS_PROCEDURE
from src.bridge.core.services.database.db_session import (
    DbSessionService,
    SqlAlchemyCatalogConnection,
)
from src.bridge.core.services.platform.admin_client import PlatformAdminClient, PlatformError
from src.bridge.runtime.config.config_data import ConfigData


def _secrets(config: ConfigData) -> tuple[str | None, ...]:
    return (
        config.platform.service_role_key,
        config.platform.jwt_secret,
        config.database.url,
    )


class SchemaBackend(ABC):
    """Same contract regardless of how the database is reached."""

    @abstractmethod
    async def install(self) -> InstallResult:
        pass

    @abstractmethod
    async def status(self) -> ReadinessReport:
        pass


class RpcSchemaBackend(SchemaBackend):
    """Calls the restricted procedures over the platform's REST RPC boundary."""

    def __init__(self, admin_client: PlatformAdminClient, config: ConfigData):
        self._admin = admin_client
        self._secrets = _secrets(config)

    async def install(self) -> InstallResult:
        """Run ``bootstrap_install()``, which checks every object itself.

        The procedure is called even when part of the schema exists, so a
        partially installed schema is completed rather than reported as done.
        """
        try:
            payload = await self._admin.call_rpc(INSTALL_PROCEDURE)
        except PlatformError as e:
            if e.is_rpc_missing:
                logger.warning("{} procedure is not installed", INSTALL_PROCEDURE)
                raise FederationError(
                    ErrorCode.BOOTSTRAP_RPC_MISSING,
                    f"{INSTALL_PROCEDURE}() is not installed; run the setup command",
                ) from e
            message = redact(str(e), self._secrets)
            logger.error("Bootstrap RPC failed: {}", message)
            raise FederationError(ErrorCode.BOOTSTRAP_FAILED, message) from e
        return InstallResult.from_rpc_payload(payload if isinstance(payload, dict) else {})

    async def status(self) -> ReadinessReport:
        try:
            payload = await self._admin.call_rpc(STATUS_PROCEDURE)
            return ReadinessReport.model_validate(payload or {})
        except PlatformError as e:
            text = str(e).lower()
            if e.is_rpc_missing or (
                STATUS_PROCEDURE in text and ("could not find" in text or "not found" in text)
            ):
                raise FederationError(
                    ErrorCode.BOOTSTRAP_RPC_MISSING,
                    f"{STATUS_PROCEDURE}() is not installed; run the setup command",
                ) from e
            message = redact(str(e), self._secrets)
            logger.error("Status RPC failed: {}", message)
            raise FederationError(ErrorCode.STATUS_FAILED, message) from e
        except ValidationError as e:
            logger.error("Status RPC returned an unexpected payload")
            raise FederationError(
                ErrorCode.STATUS_FAILED, "Unexpected status payload"
            ) from e


class SqlSchemaBackend(SchemaBackend):
    """Runs the catalog over a privileged SQLAlchemy connection."""

    def __init__(self, db: DbSessionService, config: ConfigData):
        self._db = db
        self._secrets = _secrets(config)
        self._catalog = build_catalog(
            config.database.caller_id_expression, config.database.service_role
        )

    def install_sync(self) -> InstallResult:
        connection = SqlAlchemyCatalogConnection(self._db.engine)
        return SchemaInstaller(connection, self._catalog, self._secrets).install()

    def status_sync(self) -> ReadinessReport:
        connection = SqlAlchemyCatalogConnection(self._db.engine)
        try:
            return SchemaIntrospector(connection).status()
        except Exception as e:
            message = redact(str(e), self._secrets)
            logger.error("Status query failed: {}", message)
            raise FederationError(ErrorCode.STATUS_FAILED, message) from e

    async def install(self) -> InstallResult:
        return await asyncio.to_thread(self.install_sync)

    async def status(self) -> ReadinessReport:
        return await asyncio.to_thread(self.status_sync)


def create_schema_backend(
    config: ConfigData,
    admin_client: PlatformAdminClient | None = None,
    db: DbSessionService | None = None,
) -> SchemaBackend:
    """Backend selected by ``platform.installer_backend``."""
    if config.platform.installer_backend == "sql":
        return SqlSchemaBackend(db or DbSessionService(config), config)
    return RpcSchemaBackend(admin_client or PlatformAdminClient.from_config(config), config)
