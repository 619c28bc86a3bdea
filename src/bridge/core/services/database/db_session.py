"""Privileged database engine used by the SQL installer backend."""

from collections.abc import Sequence
from typing import Any

from loguru import logger
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import create_engine

from src.bridge.core.errors import ErrorCode, FederationError, redact
from src.bridge.runtime.config.config_data import ConfigData
from src.bridge.runtime.context import get_config


class DbSessionService:
    def __init__(self, config: ConfigData | None = None):
        """Initialize the privileged engine from ``database.url``."""

        main_config = config or get_config()
        db_config = main_config.database
        if not db_config.url:
            raise FederationError(ErrorCode.ENV_MISSING, "SUPABASE_DB_URL is not set")

        engine_kwargs = {
            # Connection pool settings
            "pool_size": db_config.pool_size,
            "max_overflow": db_config.max_overflow,
            "pool_timeout": db_config.pool_timeout,
            "pool_recycle": db_config.pool_recycle,
            "pool_pre_ping": True,
            "echo": False,
            "connect_args": self._get_connect_args(main_config),
        }

        # The URL carries a password; never log it.
        logger.info("Initializing privileged database engine ({})", redact(db_config.url))
        self._engine = create_engine(db_config.url, **engine_kwargs)

    def _get_connect_args(self, config: ConfigData) -> dict:
        return {
            "application_name": f"{config.app.environment}_rls_bridge",
            "connect_timeout": config.database.connect_timeout,
        }

    @property
    def engine(self) -> Engine:
        return self._engine

    def health_check(self) -> bool:
        """Perform a health check on the database connection."""
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
                return True
        except Exception as e:
            logger.error(
                "Database health check failed: {}", redact(f"{type(e).__name__}: {e}")
            )
            return False

    def dispose(self) -> None:
        self._engine.dispose()


class SqlAlchemyCatalogConnection:
    """``CatalogConnection`` over a SQLAlchemy engine."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def scalar(self, sql: str) -> Any:
        with self._engine.connect() as connection:
            return connection.exec_driver_sql(sql).scalar()

    def execute(self, statements: Sequence[str]) -> None:
        # exec_driver_sql: procedure bodies contain ':=' which text() would
        # try to parse as bind parameters.
        with self._engine.begin() as connection:
            for statement in statements:
                connection.exec_driver_sql(statement)
