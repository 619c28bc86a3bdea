"""Restricted database procedures wrapping the catalog.

``bootstrap_install()`` replays the schema catalog inside the database and
``bootstrap_status()`` returns the readiness report as ``jsonb``. Both run
as security definer, so EXECUTE is limited to the service role.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from src.bridge.core.services.bootstrap.catalog import (
    READINESS_CHECKS,
    SCHEMA,
    SchemaObject,
    function_exists_sql,
)

INSTALL_PROCEDURE = "bootstrap_install"
STATUS_PROCEDURE = "bootstrap_status"

# plpgsql condition names for SQLSTATE 42P07, 42710, 42723, 42P06 and 23505.
DUPLICATE_CONDITIONS = (
    "duplicate_table",
    "duplicate_object",
    "duplicate_function",
    "duplicate_schema",
    "unique_violation",
)

_HEADER = """create or replace function {schema}.{name}()
returns jsonb
language plpgsql
security definer
set search_path = {schema}, pg_catalog
as $body$"""


def _dollar_quote(sql: str, tag: str = "ddl") -> str:
    if f"${tag}$" in sql:
        raise ValueError(f"Statement already contains ${tag}$")
    return f"${tag}${sql}${tag}$"


def _indent(text: str, prefix: str) -> str:
    return "\n".join(prefix + line if line else line for line in text.splitlines())


def _install_step(obj: SchemaObject) -> str:
    executes = "\n".join(
        f"      execute {_dollar_quote(stmt)};" for stmt in obj.create_sql
    )
    return (
        f"  -- {obj.name}\n"
        f"  if not ({obj.exists_sql}) then\n"
        "    begin\n"
        f"{executes}\n"
        "      created := created + 1;\n"
        "    exception\n"
        f"      when {' or '.join(DUPLICATE_CONDITIONS)} then null;\n"
        "    end;\n"
        "  end if;"
    )


def render_install_procedure(schema_objects: Iterable[SchemaObject]) -> str:
    steps = "\n".join(_install_step(obj) for obj in schema_objects)
    return (
        _HEADER.format(schema=SCHEMA, name=INSTALL_PROCEDURE)
        + "\ndeclare\n  created integer := 0;\nbegin\n"
        + steps
        + "\n  return jsonb_build_object(\n"
        "    'bootstrapped', created > 0,\n"
        "    'already_initialized', created = 0\n"
        "  );\nend;\n$body$"
    )


def render_status_procedure() -> str:
    sections: dict[str, list[str]] = defaultdict(list)
    for (section, key), expr in READINESS_CHECKS.items():
        sections[section].append(f"'{key}', {expr}")

    parts = []
    for section, entries in sections.items():
        inner = ",\n".join(_indent(e, "      ") for e in entries)
        parts.append(f"    '{section}', jsonb_build_object(\n{inner}\n    )")
    body = ",\n".join(parts)
    return (
        _HEADER.format(schema=SCHEMA, name=STATUS_PROCEDURE)
        + "\nbegin\n  return jsonb_build_object(\n"
        + body
        + "\n  );\nend;\n$body$"
    )


def _grants(name: str, service_role: str) -> tuple[str, str]:
    return (
        f"revoke all on function {SCHEMA}.{name}() from public, anon, authenticated",
        f"grant execute on function {SCHEMA}.{name}() to {service_role}",
    )


def procedure_objects(
    schema_objects: list[SchemaObject], service_role: str = "service_role"
) -> list[SchemaObject]:
    """Catalog entries for both procedures, rendered over ``schema_objects``."""
    return [
        SchemaObject(
            name=INSTALL_PROCEDURE,
            kind="procedure",
            exists_sql=function_exists_sql(INSTALL_PROCEDURE),
            create_sql=(
                render_install_procedure(schema_objects),
                *_grants(INSTALL_PROCEDURE, service_role),
            ),
        ),
        SchemaObject(
            name=STATUS_PROCEDURE,
            kind="procedure",
            exists_sql=function_exists_sql(STATUS_PROCEDURE),
            create_sql=(
                render_status_procedure(),
                *_grants(STATUS_PROCEDURE, service_role),
            ),
        ),
    ]


def render_migration(
    schema_objects: list[SchemaObject], service_role: str = "service_role"
) -> str:
    """SQL script defining both procedures, suitable for a migrations folder."""
    statements = []
    for obj in procedure_objects(schema_objects, service_role):
        statements.extend(obj.create_sql)
    return "\n\n".join(f"{stmt};" for stmt in statements) + "\n"
