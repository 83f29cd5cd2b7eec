"""Typer application for httpsource: global options and command registration.

Entry point: ``httpsource`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.logging import RichHandler

from httpsource.cli.commands.apply import apply_cmd, secret_cmd
from httpsource.cli.commands.inspect import artifacts_cmd, delete_cmd, get_cmd
from httpsource.cli.commands.reconcile import reconcile_cmd, sync_cmd
from httpsource.config import ControllerConfig

app = typer.Typer(
    name="httpsource",
    help="httpsource: mirror remote HTTP resources as revision-addressed artifacts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="apply", help="Create or update an Http declaration.")(apply_cmd)
app.command(name="secret", help="Create or replace fetch credentials.")(secret_cmd)
app.command(name="reconcile", help="Reconcile one Http declaration now.")(reconcile_cmd)
app.command(name="sync", help="Reconcile every Http declaration.")(sync_cmd)
app.command(name="get", help="List Http declarations and their status.")(get_cmd)
app.command(name="artifacts", help="List artifact records.")(artifacts_cmd)
app.command(name="delete", help="Delete an Http declaration and its artifact.")(delete_cmd)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main_callback(
    ctx: typer.Context,
    store_path: Path = typer.Option(
        None, "--store-path", help="Path to the object store database."
    ),
    storage_path: Path = typer.Option(
        None, "--storage-path", help="Root directory of served artifacts."
    ),
    hostname: str = typer.Option(
        None, "--hostname", help="Host part of artifact URLs."
    ),
    log_level: str = typer.Option(None, "--log-level", help="Log level."),
) -> None:
    """Load configuration (env, .env, then flags) and set up logging."""
    overrides = {
        "store_path": store_path,
        "storage_path": storage_path,
        "storage_hostname": hostname,
        "log_level": log_level,
    }
    config = ControllerConfig(**{k: v for k, v in overrides.items() if v is not None})
    configure_logging(config.log_level)
    ctx.obj = config


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
