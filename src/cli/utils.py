"""Shared CLI helpers."""

from __future__ import annotations

from urllib.parse import urlparse

from rich.console import Console

from src.bridge.core.errors import redact
from src.bridge.core.services.diagnostics import DiagnosticsEngine, ProbeClient
from src.bridge.runtime.config.config_data import ConfigData
from src.bridge.runtime.settings import EnvironmentVariables

console = Console()

CHECK = "[green]✔[/green]"
CROSS = "[red]✖[/red]"


def is_valid_url(value: str | None) -> bool:
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def safe(text: str, settings: EnvironmentVariables, config: ConfigData | None = None) -> str:
    """Redact every configured secret from operator-facing output."""
    secrets: list[str | None] = list(settings.secret_values)
    if config is not None:
        secrets.extend(
            [
                config.platform.service_role_key,
                config.platform.jwt_secret,
                config.platform.anon_key,
                config.database.url,
            ]
        )
    return redact(text, secrets)


def step(ok: bool, label: str, detail: str = "") -> None:
    suffix = f" [dim]{detail}[/dim]" if detail else ""
    console.print(f"{CHECK if ok else CROSS} {label}{suffix}")


def build_engine(
    settings: EnvironmentVariables, config: ConfigData
) -> tuple[DiagnosticsEngine, ProbeClient]:
    probes = ProbeClient(
        settings.platform_url or config.platform.url or "",
        settings.bridge_url or config.diagnostics.bridge_url,
        anon_key=settings.platform_anon_key or config.platform.anon_key,
        external_token=settings.external_test_token,
        timeout=config.diagnostics.probe_timeout,
    )
    return DiagnosticsEngine(probes), probes
