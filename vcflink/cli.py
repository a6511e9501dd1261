"""Command-line entry point for vcflink."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import CONFIG_FILE, AppConfig, load_config, save_config
from .credentials import write_credentials_file
from .exit_codes import ExitCode
from .logsink import EXCEPTION, configure_logging, get_log
from .models import EndpointKind
from .prompts import RichPrompter, prompt_credentials
from .session import SessionContext
from .timer import Stopwatch, format_duration
from .versions import require_minimum_version

LOG = get_log(__name__)

app = typer.Typer(help="Connect to VCF endpoints and check session health.", no_args_is_help=True)
console = Console()


class EndpointChoice(str, Enum):
    CONTROLLER = "controller"
    SERVER = "server"
    ALL = "all"

    def kinds(self) -> tuple[EndpointKind, ...]:
        if self is EndpointChoice.ALL:
            return tuple(EndpointKind)
        return (EndpointKind(self.value),)


def _load_app_config(ctx: typer.Context) -> AppConfig:
    return ctx.obj["config"]


def _build_context(config: AppConfig) -> SessionContext:
    """Construct the session context for one command run."""

    return SessionContext(config)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"vcflink {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to config.toml."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Minimum console log level."),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Never prompt; require credential files."),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True),
) -> None:
    """Load configuration and install log handlers."""

    config = load_config(config_path)
    if log_level:
        config = config.with_log_level(log_level)
    if non_interactive:
        config = config.with_interactive(False)
    try:
        configure_logging(config.log_level, config.log_file)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(int(ExitCode.PARAMETER_ERROR)) from exc
    ctx.obj = {"config": config, "config_path": config_path or CONFIG_FILE}


@app.command()
def check(
    ctx: typer.Context,
    endpoint: EndpointChoice = typer.Option(EndpointChoice.ALL, "--endpoint", "-e"),
    probe: bool = typer.Option(True, "--probe/--no-probe", help="Issue a liveness call after connecting."),
) -> None:
    """Connect to the selected endpoints and report their health."""

    config = _load_app_config(ctx)
    table = Table(title="Connection health")
    for column in ("Endpoint", "Address", "Version", "Connected", "Session age", "Detail"):
        table.add_column(column)
    failures = 0
    watch = Stopwatch().start()
    with _build_context(config) as context:
        for kind in endpoint.kinds():
            session = context.session(kind)
            handle = session.connect()
            require_minimum_version(handle, config.endpoint(kind).minimum_version)
            result = session.test_connection(skip_liveness_probe=not probe)
            if not result.is_connected:
                failures += 1
            table.add_row(
                kind.label,
                result.endpoint_address,
                handle.product_version or "unknown",
                "yes" if result.is_connected else "no",
                format_duration(result.session_age) if result.session_age is not None else "-",
                result.error_message or "",
            )
    console.print(table)
    LOG.info(f"Health check finished in {format_duration(watch.stop())}", no_console=True)
    if failures:
        raise typer.Exit(int(ExitCode.CONNECTION_ERROR))


@app.command()
def ttl(ctx: typer.Context) -> None:
    """Show the remaining lifetime of the SDDC Manager access token."""

    config = _load_app_config(ctx)
    with _build_context(config) as context:
        session = context.controller
        session.connect()
        minutes = session.token_ttl()
    if minutes is False:
        LOG.warning("SDDC Manager session has no access token.")
        raise typer.Exit(int(ExitCode.AUTHENTICATION_ERROR))
    if minutes is None:
        raise typer.Exit(int(ExitCode.GENERAL_ERROR))
    typer.echo(f"{minutes:.1f}")


@app.command("save-credentials")
def save_credentials(
    ctx: typer.Context,
    endpoint: EndpointChoice = typer.Option(..., "--endpoint", "-e"),
) -> None:
    """Prompt for credentials and store them in the endpoint's credentials file."""

    config = _load_app_config(ctx)
    if endpoint is EndpointChoice.ALL:
        typer.echo("Choose a single endpoint.", err=True)
        raise typer.Exit(int(ExitCode.PARAMETER_ERROR))
    if not config.interactive:
        typer.echo("Saving credentials requires interactive input.", err=True)
        raise typer.Exit(int(ExitCode.PARAMETER_ERROR))
    kind = endpoint.kinds()[0]
    prompter = RichPrompter(console)
    credentials = prompt_credentials(prompter, kind)
    path = config.endpoint(kind).credentials_file
    if not prompter.confirm(f"Write the password to {path} in plaintext?", default=False):
        raise typer.Exit(int(ExitCode.USER_CANCELLED))
    write_credentials_file(path, credentials)


@app.command("init-config")
def init_config(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Write a config file populated with the defaults."""

    path: Path = ctx.obj["config_path"]
    if path.exists() and not force:
        typer.echo(f"{path} already exists; use --force to overwrite.", err=True)
        raise typer.Exit(int(ExitCode.PARAMETER_ERROR))
    save_config(AppConfig(), path)
    typer.echo(f"Wrote {path}")


def main() -> None:
    try:
        app()
    except Exception:
        LOG.logger.log(EXCEPTION, "Unhandled error", exc_info=True)
        raise SystemExit(int(ExitCode.GENERAL_ERROR)) from None


__all__ = ["app", "main"]
