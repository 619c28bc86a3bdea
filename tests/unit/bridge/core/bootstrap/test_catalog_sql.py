"""Generated DDL, row policies and the restricted procedures."""

import pytest

from src.bridge.core.services.bootstrap import build_catalog, build_schema_catalog, render_migration
from src.bridge.core.services.bootstrap.catalog import POLICY_ACTIONS, READINESS_CHECKS
from src.bridge.core.services.bootstrap.procedures import (
    DUPLICATE_CONDITIONS,
    INSTALL_PROCEDURE,
    STATUS_PROCEDURE,
    render_install_procedure,
    render_status_procedure,
)


def _by_name(objects):
    return {obj.name: obj for obj in objects}


class TestSchemaCatalog:
    def test_tables(self):
        objects = _by_name(build_schema_catalog())
        projects = objects["projects"].create_sql[0].lower()
        profiles = objects["profiles"].create_sql[0].lower()

        assert "create table public.projects" in projects
        assert "user_id uuid default auth.uid() not null" in projects
        assert "gen_random_uuid()" in projects
        assert "timestamp with time zone" in projects
        assert "create table public.profiles" in profiles
        assert "id uuid default auth.uid() not null" in profiles

    def test_index_on_owner_column(self):
        index = _by_name(build_schema_catalog())["idx_projects_user_id"]
        assert index.create_sql[0].lower() == (
            "create index idx_projects_user_id on public.projects (user_id)"
        )

    @pytest.mark.parametrize("table,owner", [("projects", "user_id"), ("profiles", "id")])
    def test_four_owner_policies_per_table(self, table, owner):
        policies = [
            obj for obj in build_schema_catalog() if obj.kind == "policy" and obj.table == table
        ]
        assert len(policies) == len(POLICY_ACTIONS) == 4
        for obj in policies:
            assert "to authenticated" in obj.create_sql[0]
            assert f"{owner} = auth.uid()" in obj.create_sql[0]

    def test_update_policy_checks_both_sides(self):
        sql = _by_name(build_schema_catalog())["projects_update_own"].create_sql[0]
        assert "using (user_id = auth.uid()) with check (user_id = auth.uid())" in sql

    def test_custom_caller_expression(self):
        sql = _by_name(build_schema_catalog("requesting_user_id()"))["profiles_select_own"]
        assert "id = requesting_user_id()" in sql.create_sql[0]

    def test_rls_enabled_for_both_tables(self):
        objects = _by_name(build_schema_catalog())
        for table in ("projects", "profiles"):
            assert objects[f"rls:{table}"].create_sql == (
                f"alter table public.{table} enable row level security",
            )

    def test_dependencies_come_first(self):
        names = [obj.name for obj in build_schema_catalog()]
        assert names.index("set_updated_at") < names.index("projects_set_updated_at")
        assert names.index("projects") < names.index("idx_projects_user_id")
        assert names.index("rls:projects") < names.index("projects_select_own")

    def test_names_are_unique(self):
        names = [obj.name for obj in build_catalog()]
        assert len(names) == len(set(names))


class TestProcedures:
    def test_install_procedure(self):
        sql = render_install_procedure(build_schema_catalog())
        assert f"create or replace function public.{INSTALL_PROCEDURE}()" in sql
        assert "security definer" in sql
        assert "returns jsonb" in sql
        assert f"when {' or '.join(DUPLICATE_CONDITIONS)} then null;" in sql
        assert "'already_initialized', created = 0" in sql
        # every statement runs through execute with its own quoting
        assert sql.count("execute $ddl$") == sum(
            len(obj.create_sql) for obj in build_schema_catalog()
        )

    def test_status_procedure_covers_every_check(self):
        sql = render_status_procedure()
        assert f"create or replace function public.{STATUS_PROCEDURE}()" in sql
        for (section, key), expr in READINESS_CHECKS.items():
            assert f"'{section}', jsonb_build_object(" in sql
            assert f"'{key}', {expr}" in sql

    def test_procedures_restricted_to_service_role(self):
        objects = _by_name(build_catalog(service_role="svc"))
        for name in (INSTALL_PROCEDURE, STATUS_PROCEDURE):
            statements = objects[name].create_sql
            assert (
                f"revoke all on function public.{name}() from public, anon, authenticated"
                in statements
            )
            assert f"grant execute on function public.{name}() to svc" in statements

    def test_render_migration(self):
        sql = render_migration(build_schema_catalog())
        assert sql.endswith(";\n")
        assert sql.count("create or replace function") == 2
        assert "grant execute on function public.bootstrap_install() to service_role;" in sql
