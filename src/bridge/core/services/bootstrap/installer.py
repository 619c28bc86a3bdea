"""Idempotent schema installer and read-only readiness introspector."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from loguru import logger

from src.bridge.core.errors import ErrorCode, FederationError, redact
from src.bridge.core.models.bootstrap import InstallResult, ReadinessReport
from src.bridge.core.services.bootstrap.catalog import READINESS_CHECKS, SchemaObject

# 42P07 duplicate_table, 42710 duplicate_object, 42723 duplicate_function,
# 42P06 duplicate_schema, 23505 unique_violation (concurrent catalog insert).
DUPLICATE_SQLSTATES = frozenset({"42P07", "42710", "42723", "42P06", "23505"})


class CatalogConnection(Protocol):
    """Minimal database surface the installer needs."""

    def scalar(self, sql: str) -> Any:
        """Run a single-value query and return the value."""
        ...

    def execute(self, statements: Sequence[str]) -> None:
        """Run statements in one transaction."""
        ...


def sqlstate_of(exc: BaseException) -> str | None:
    """SQLSTATE of a driver error, looking through SQLAlchemy wrappers."""
    for candidate in (exc, getattr(exc, "orig", None)):
        if candidate is None:
            continue
        for attr in ("sqlstate", "pgcode"):
            value = getattr(candidate, attr, None)
            if isinstance(value, str) and value:
                return value
    return None


def is_duplicate_error(exc: BaseException) -> bool:
    if sqlstate_of(exc) in DUPLICATE_SQLSTATES:
        return True
    return "already exists" in str(exc).lower()


class SchemaInstaller:
    """Creates each missing catalog object, treating "already exists" as success.

    Concurrent installers may both see an object as missing; the loser's
    create fails with a duplicate error and simply moves on.
    """

    def __init__(
        self,
        connection: CatalogConnection,
        catalog: Iterable[SchemaObject],
        secrets: Iterable[str | None] = (),
    ) -> None:
        self._conn = connection
        self._catalog = list(catalog)
        self._secrets = tuple(secrets)

    def install(self) -> InstallResult:
        created: list[str] = []
        for obj in self._catalog:
            try:
                if self._conn.scalar(f"select {obj.exists_sql}"):
                    continue
                self._conn.execute(obj.create_sql)
            except FederationError:
                raise
            except Exception as e:
                if is_duplicate_error(e):
                    logger.debug("{} {} already exists", obj.kind, obj.name)
                    continue
                message = redact(str(e), self._secrets)
                logger.error("Bootstrap failed at {} {}: {}", obj.kind, obj.name, message)
                raise FederationError(ErrorCode.BOOTSTRAP_FAILED, message) from e
            logger.info("Created {} {}", obj.kind, obj.name)
            created.append(obj.name)

        result = InstallResult.from_changes(created)
        logger.info(
            "Bootstrap finished: {}",
            "bootstrapped" if result.bootstrapped else "already initialized",
        )
        return result


class SchemaIntrospector:
    """Builds a :class:`ReadinessReport`; issues only reads."""

    def __init__(self, connection: CatalogConnection) -> None:
        self._conn = connection

    def status(self) -> ReadinessReport:
        data: dict[str, dict[str, Any]] = defaultdict(dict)
        for (section, key), expr in READINESS_CHECKS.items():
            value = self._conn.scalar(f"select {expr}")
            data[section][key] = value if value is not None else False
        return ReadinessReport.model_validate(data)
