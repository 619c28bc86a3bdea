"""Ordered catalog of the database objects row-level security depends on.

Every object carries a boolean SQL expression answering "does it exist?"
and the statements that create it. The installer, the readiness
introspector and the rendered database procedures all read this one
catalog, so they cannot disagree about what a complete install is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from src.bridge.entities.rls import CALLER_ID_SQL, OWNER_COLUMNS, SCHEMA, ProfileRow, ProjectRow

ObjectKind = Literal["function", "table", "index", "trigger", "rls", "policy", "procedure"]

POLICY_ACTIONS = ("select", "insert", "update", "delete")
TABLES = (ProfileRow.__table__, ProjectRow.__table__)
PROJECTS_INDEX = "idx_projects_user_id"


@dataclass(frozen=True)
class SchemaObject:
    name: str
    kind: ObjectKind
    exists_sql: str
    create_sql: tuple[str, ...] = field(default_factory=tuple)
    table: str | None = None


def _compile(ddl) -> str:
    return str(ddl.compile(dialect=postgresql.dialect())).strip()


def _literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def table_exists_sql(table: str) -> str:
    return f"to_regclass({_literal(f'{SCHEMA}.{table}')}) is not null"


def rls_enabled_sql(table: str) -> str:
    return (
        "coalesce((select c.relrowsecurity from pg_catalog.pg_class c "
        f"where c.oid = to_regclass({_literal(f'{SCHEMA}.{table}')})), false)"
    )


def trigger_exists_sql(table: str, trigger: str) -> str:
    return (
        "exists(select 1 from pg_catalog.pg_trigger t "
        f"where t.tgname = {_literal(trigger)} "
        f"and t.tgrelid = to_regclass({_literal(f'{SCHEMA}.{table}')}))"
    )


def index_exists_sql(index: str) -> str:
    return (
        "exists(select 1 from pg_catalog.pg_indexes "
        f"where schemaname = {_literal(SCHEMA)} and indexname = {_literal(index)})"
    )


def function_exists_sql(function: str) -> str:
    return (
        "exists(select 1 from pg_catalog.pg_proc p "
        "join pg_catalog.pg_namespace n on n.oid = p.pronamespace "
        f"where n.nspname = {_literal(SCHEMA)} and p.proname = {_literal(function)})"
    )


def policy_exists_sql(table: str, policy: str) -> str:
    return (
        "exists(select 1 from pg_catalog.pg_policies "
        f"where schemaname = {_literal(SCHEMA)} and tablename = {_literal(table)} "
        f"and policyname = {_literal(policy)})"
    )


def policy_count_sql(table: str) -> str:
    return (
        "(select count(*)::int from pg_catalog.pg_policies "
        f"where schemaname = {_literal(SCHEMA)} and tablename = {_literal(table)})"
    )


def trigger_name(table: str) -> str:
    return f"{table}_set_updated_at"


def policy_name(table: str, action: str) -> str:
    return f"{table}_{action}_own"


_SET_UPDATED_AT = f"""create or replace function {SCHEMA}.set_updated_at()
returns trigger
language plpgsql
as $fn$
begin
  new.updated_at = now();
  return new;
end;
$fn$"""


def _policy_sql(table: str, action: str, caller_id: str) -> str:
    predicate = f"{OWNER_COLUMNS[table]} = {caller_id}"
    clause = {
        "select": f"using ({predicate})",
        "insert": f"with check ({predicate})",
        "update": f"using ({predicate}) with check ({predicate})",
        "delete": f"using ({predicate})",
    }[action]
    return (
        f"create policy {policy_name(table, action)} on {SCHEMA}.{table} "
        f"for {action} to authenticated {clause}"
    )


def build_schema_catalog(caller_id: str = CALLER_ID_SQL) -> list[SchemaObject]:
    """Schema objects in install order, without the bootstrap procedures."""
    objects = [
        SchemaObject(
            name="set_updated_at",
            kind="function",
            exists_sql=function_exists_sql("set_updated_at"),
            create_sql=(_SET_UPDATED_AT,),
        )
    ]
    for table in TABLES:
        objects.append(
            SchemaObject(
                name=table.name,
                kind="table",
                exists_sql=table_exists_sql(table.name),
                create_sql=(_compile(CreateTable(table)),),
                table=table.name,
            )
        )
    for index in ProjectRow.__table__.indexes:
        objects.append(
            SchemaObject(
                name=index.name,
                kind="index",
                exists_sql=index_exists_sql(index.name),
                create_sql=(_compile(CreateIndex(index)),),
                table=ProjectRow.__tablename__,
            )
        )
    for table in TABLES:
        name = trigger_name(table.name)
        objects.append(
            SchemaObject(
                name=name,
                kind="trigger",
                exists_sql=trigger_exists_sql(table.name, name),
                create_sql=(
                    f"create trigger {name} before update on {SCHEMA}.{table.name} "
                    f"for each row execute function {SCHEMA}.set_updated_at()",
                ),
                table=table.name,
            )
        )
    for table in TABLES:
        objects.append(
            SchemaObject(
                name=f"rls:{table.name}",
                kind="rls",
                exists_sql=rls_enabled_sql(table.name),
                create_sql=(
                    f"alter table {SCHEMA}.{table.name} enable row level security",
                ),
                table=table.name,
            )
        )
    for table in TABLES:
        for action in POLICY_ACTIONS:
            name = policy_name(table.name, action)
            objects.append(
                SchemaObject(
                    name=name,
                    kind="policy",
                    exists_sql=policy_exists_sql(table.name, name),
                    create_sql=(_policy_sql(table.name, action, caller_id),),
                    table=table.name,
                )
            )
    return objects


def build_catalog(
    caller_id: str = CALLER_ID_SQL, service_role: str = "service_role"
) -> list[SchemaObject]:
    """Full install order: schema objects followed by the restricted procedures."""
    from src.bridge.core.services.bootstrap.procedures import procedure_objects

    schema = build_schema_catalog(caller_id)
    return schema + procedure_objects(schema, service_role)


# (report section, key) -> scalar SQL expression, in report order.
READINESS_CHECKS: dict[tuple[str, str], str] = {
    ("tables", "projects"): table_exists_sql("projects"),
    ("tables", "profiles"): table_exists_sql("profiles"),
    ("rls", "projects"): rls_enabled_sql("projects"),
    ("rls", "profiles"): rls_enabled_sql("profiles"),
    ("policies", "projects"): policy_count_sql("projects"),
    ("policies", "profiles"): policy_count_sql("profiles"),
    ("triggers", "projects_updated_at"): trigger_exists_sql(
        "projects", trigger_name("projects")
    ),
    ("triggers", "profiles_updated_at"): trigger_exists_sql(
        "profiles", trigger_name("profiles")
    ),
    ("indexes", PROJECTS_INDEX): index_exists_sql(PROJECTS_INDEX),
}
