"""Helpers shared by CLI commands."""

from __future__ import annotations

import typer
from rich.console import Console

from httpsource.config import ControllerConfig
from httpsource.core.reconciler import HttpSourceReconciler
from httpsource.models.meta import Condition, ConditionStatus

console = Console()


def get_config(ctx: typer.Context) -> ControllerConfig:
    """The ``ControllerConfig`` prepared by the app callback."""
    config = ctx.obj
    if not isinstance(config, ControllerConfig):
        config = ControllerConfig()
        ctx.obj = config
    return config


def build_reconciler(ctx: typer.Context) -> HttpSourceReconciler:
    return HttpSourceReconciler.from_config(get_config(ctx))


def format_ready(condition: Condition | None) -> str:
    if condition is None:
        return "[dim]Unknown[/dim]"
    if condition.status == ConditionStatus.TRUE:
        return "[green]True[/green]"
    return f"[red]False[/red] ({condition.reason})"


def short_revision(revision: str) -> str:
    return revision[:12] if revision else "-"
