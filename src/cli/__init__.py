"""Main CLI application module."""

import typer

from .bridge_commands import health_check, render_sql, serve, setup, validate

# Create the main CLI application
app = typer.Typer(
    help="🔐 RLS Bridge CLI - Setup, Diagnostics and Service Runner",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command()(setup)
app.command()(validate)
app.command("health-check")(health_check)
app.command("render-sql")(render_sql)
app.command()(serve)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
