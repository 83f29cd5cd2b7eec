"""``httpsource reconcile`` / ``httpsource sync`` — run the reconciler.

``reconcile`` runs a single pass for one declaration and prints the
resulting status.  ``sync`` runs a pass over every declaration, and with
``--watch`` keeps resyncing until interrupted.
"""

from __future__ import annotations

import threading

import typer
from rich.panel import Panel

from httpsource.cli.commands._shared import (
    build_reconciler,
    console,
    format_ready,
    get_config,
)
from httpsource.core.conditions import READY, find_condition
from httpsource.core.context import ReconcileContext
from httpsource.core.controller import Controller
from httpsource.core.errors import ReconcileError
from httpsource.core.store import NotFoundError
from httpsource.models.declarations import Http
from httpsource.models.meta import ObjectKey


def reconcile_cmd(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the Http declaration."),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace."),
    timeout: float = typer.Option(
        None, "--timeout", "-t", help="Abort the reconciliation after this many seconds."
    ),
) -> None:
    """Reconcile one Http declaration now."""
    reconciler = build_reconciler(ctx)
    key = ObjectKey(namespace=namespace, name=name)

    try:
        result = reconciler.reconcile(key, ReconcileContext(timeout=timeout))
    except ReconcileError as exc:
        console.print(f"[red]Reconciliation of http/{key} failed:[/red] {exc}")
        raise typer.Exit(code=1)

    try:
        obj = reconciler.store.get(Http, key)
    except NotFoundError:
        console.print(f"[dim]http/{key} not found; nothing to reconcile.[/dim]")
        return

    status = obj.status
    lines = [
        f"[bold]Ready:[/bold]            {format_ready(find_condition(status.conditions, READY))}",
        f"[bold]URL:[/bold]              {obj.spec.url}",
        f"[bold]Revision:[/bold]         {status.last_applied_revision or '-'}",
        f"[bold]Artifact:[/bold]         {status.artifact_name or '-'}",
        f"[bold]Generation:[/bold]       {status.observed_generation}",
    ]
    if result.requeue_after:
        lines.append(f"[dim]Next resync in {result.requeue_after:.0f}s.[/dim]")

    console.print(
        Panel(
            "\n".join(lines),
            title=f"[bold]http/{key}[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )


def sync_cmd(
    ctx: typer.Context,
    namespace: str = typer.Option(
        None, "--namespace", "-n", help="Only reconcile this namespace."
    ),
    watch: bool = typer.Option(False, "--watch", "-w", help="Keep resyncing."),
    interval: float = typer.Option(
        None, "--interval", "-i", help="Seconds between resyncs (with --watch)."
    ),
) -> None:
    """Reconcile every Http declaration once, or continuously with --watch."""
    controller = Controller(build_reconciler(ctx), namespace=namespace)

    if watch:
        stop = threading.Event()
        period = interval or get_config(ctx).resync_interval_seconds
        try:
            controller.run(period, stop)
        except KeyboardInterrupt:
            stop.set()
        return

    report = controller.sync()
    for key in report.succeeded:
        console.print(f"http/{key} [green]reconciled[/green]")
    for key, error in report.failed.items():
        console.print(f"http/{key} [red]failed[/red]: {error}")
    if not report.ok:
        raise typer.Exit(code=1)
    if not report.succeeded:
        console.print("[dim]No Http declarations found.[/dim]")
