"""Operator commands: setup, validate, health-check, render-sql, serve."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from src.bridge.core.errors import FederationError
from src.bridge.core.services.bootstrap import SqlSchemaBackend, build_catalog, build_schema_catalog
from src.bridge.core.services.bootstrap.procedures import render_migration
from src.bridge.core.services.database.db_session import DbSessionService
from src.bridge.core.services.diagnostics import AutoFixer, Diagnosis, explain
from src.bridge.runtime.context import get_config
from src.bridge.runtime.settings import EnvironmentVariables

from .utils import build_engine, console, is_valid_url, safe, step


def _validate_config(settings: EnvironmentVariables, *, need_database: bool) -> bool:
    config = get_config()
    issuer_ok = is_valid_url(config.federation.issuer)
    step(
        issuer_ok,
        "Issuer is a valid URL",
        "" if issuer_ok else explain("issuer is not a valid url").hint,
    )
    audience_ok = bool(config.federation.audience)
    step(audience_ok, "Expected audience is set", "" if audience_ok else "CLERK_EXPECTED_AUDIENCE")

    missing = config.missing_federation_settings()
    step(not missing, "Bridge settings present", ", ".join(missing))

    ok = issuer_ok and audience_ok and not missing
    if need_database:
        db_ok = bool(config.database.url)
        step(db_ok, "Privileged database URL is set", "" if db_ok else "SUPABASE_DB_URL")
        ok = ok and db_ok
    return ok


def setup(
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Validate and list the objects without changing anything"
    ),
) -> None:
    """
    🧱 Validate config, install schema + procedures, check the bridge endpoints.
    """
    settings = EnvironmentVariables()
    config = get_config()
    console.print(Panel.fit("[bold blue]RLS Bridge Setup[/bold blue]", border_style="blue"))

    console.print("\n[bold]1. Configuration[/bold]")
    ok = _validate_config(settings, need_database=not dry_run)

    console.print("\n[bold]2. Schema and procedures[/bold]")
    if dry_run:
        for obj in build_catalog(config.database.caller_id_expression, config.database.service_role):
            console.print(f"  [dim]would ensure[/dim] {obj.kind} {obj.name}")
    elif ok:
        try:
            backend = SqlSchemaBackend(DbSessionService(config), config)
            result = backend.install_sync()
            if result.created:
                step(True, "Installed", ", ".join(result.created))
            else:
                step(True, "Already initialized")
        except FederationError as e:
            step(False, "Install failed", safe(e.message, settings, config))
            ok = False
    else:
        step(False, "Skipped: fix the configuration first")

    console.print("\n[bold]3. Bridge endpoints[/bold]")
    _, probes = build_engine(settings, config)

    async def _endpoints():
        return await probes.federation(), await probes.bootstrap_endpoint()

    for probe in asyncio.run(_endpoints()):
        deployed = probe.reachable and not probe.not_found
        detail = "" if deployed else explain(probe.detail or "not_deployed").hint
        step(deployed, f"{probe.name} endpoint answers", detail)
        ok = ok and deployed

    if not ok:
        console.print("\n[red]Setup incomplete[/red]")
        raise typer.Exit(1)
    console.print("\n[bold green]Setup complete[/bold green]")


def _print_diagnosis(diagnosis: Diagnosis, settings: EnvironmentVariables) -> None:
    config = get_config()
    table = Table(title="Diagnostics")
    table.add_column("Probe", style="cyan")
    table.add_column("Result")
    table.add_column("HTTP")
    table.add_column("Detail")
    for probe in diagnosis.probes:
        table.add_row(
            probe.name,
            "[green]OK[/green]" if probe.ok else "[red]FAIL[/red]",
            str(probe.status_code) if probe.status_code is not None else "-",
            safe(probe.code or probe.detail, settings, config),
        )
    console.print(table)

    if diagnosis.report is not None and diagnosis.report.missing():
        console.print("[yellow]Missing:[/yellow] " + ", ".join(diagnosis.report.missing()))

    color = "green" if diagnosis.ready else "red"
    console.print(f"State: [{color}]{diagnosis.state.value}[/{color}]")
    if not diagnosis.ready:
        console.print(f"[bold]Next step:[/bold] {diagnosis.state.instructions}")
        if diagnosis.explanation is not None:
            console.print(
                f"[dim]{diagnosis.explanation.code}: {diagnosis.explanation.message} "
                f"{diagnosis.explanation.hint}[/dim]"
            )


def validate(
    fix: bool = typer.Option(False, "--fix", help="Attempt to repair fixable states"),
) -> None:
    """
    🩺 Run the full diagnostic sequence. Exits 0 only when the system is ready.
    """
    settings = EnvironmentVariables()
    config = get_config()
    engine, probes = build_engine(settings, config)

    if fix:
        fixer = AutoFixer(engine, probes, max_attempts=config.diagnostics.max_fix_attempts)
        outcome = asyncio.run(fixer.run())
        for action in outcome.actions:
            console.print(f"[cyan]fix:[/cyan] {safe(action, settings, config)}")
        diagnosis = outcome.diagnosis
    else:
        diagnosis = asyncio.run(engine.diagnose())

    _print_diagnosis(diagnosis, settings)
    raise typer.Exit(0 if diagnosis.ready else 1)


def health_check() -> None:
    """
    💓 Four-line system summary.
    """
    settings = EnvironmentVariables()
    engine, _ = build_engine(settings, get_config())
    diagnosis = asyncio.run(engine.diagnose())

    host = diagnosis.probe("host")
    edges = [diagnosis.probe("federation"), diagnosis.probe("bootstrap")]
    status = diagnosis.probe("status")

    host_ok = host is not None and host.ok
    edge_ok = all(p is not None and p.reachable and not p.not_found for p in edges)
    rpc_ok = diagnosis.report is not None or (status is not None and status.ok)

    def _ok(value: bool) -> str:
        return "OK" if value else "FAIL"

    console.print(f"Supabase Host: {_ok(host_ok)}", highlight=False)
    console.print(f"Edge Function: {_ok(edge_ok)}", highlight=False)
    console.print(f"RPC: {_ok(rpc_ok)}", highlight=False)
    console.print(f"System Ready: {'YES' if diagnosis.ready else 'NO'}", highlight=False)
    raise typer.Exit(0 if diagnosis.ready else 1)


def render_sql(
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the migration to this file instead of stdout"
    ),
) -> None:
    """
    📜 Print the SQL migration defining the restricted bootstrap procedures.
    """
    config = get_config()
    sql = render_migration(
        build_schema_catalog(config.database.caller_id_expression),
        config.database.service_role,
    )
    if output is None:
        typer.echo(sql, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(sql, encoding="utf-8")
    console.print(f"[green]✅ Wrote {output}[/green]")


def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """
    🚀 Run the HTTP service with uvicorn.
    """
    import uvicorn

    config = get_config()
    uvicorn.run(
        "src.bridge.api.http.app:app",
        host=host or config.app.host,
        port=port or config.app.port,
        reload=reload,
        access_log=False,
    )
