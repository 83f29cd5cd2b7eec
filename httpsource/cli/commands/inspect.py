"""``httpsource get`` / ``httpsource artifacts`` / ``httpsource delete``."""

from __future__ import annotations

import typer
from rich.table import Table

from httpsource.cli.commands._shared import (
    console,
    format_ready,
    get_config,
    short_revision,
)
from httpsource.core.conditions import READY, find_condition
from httpsource.core.storage import ArtifactStorage
from httpsource.core.store import NotFoundError, SqliteObjectStore
from httpsource.models.artifacts import Artifact
from httpsource.models.declarations import Http
from httpsource.models.meta import ObjectKey


def get_cmd(
    ctx: typer.Context,
    namespace: str = typer.Option(
        None, "--namespace", "-n", help="Only list this namespace."
    ),
) -> None:
    """List Http declarations and their status."""
    store = SqliteObjectStore(get_config(ctx).store_path)
    declarations = store.list(Http, namespace)
    if not declarations:
        console.print("[dim]No Http declarations found.[/dim]")
        return

    table = Table(title="Http sources")
    table.add_column("Namespace", style="cyan")
    table.add_column("Name", style="cyan")
    table.add_column("URL")
    table.add_column("Ready")
    table.add_column("Revision", style="green")
    table.add_column("Artifact")

    for obj in declarations:
        table.add_row(
            obj.metadata.namespace,
            obj.metadata.name,
            obj.spec.url,
            format_ready(find_condition(obj.status.conditions, READY)),
            short_revision(obj.status.last_applied_revision),
            obj.status.artifact_name or "-",
        )
    console.print(table)


def artifacts_cmd(
    ctx: typer.Context,
    namespace: str = typer.Option(
        None, "--namespace", "-n", help="Only list this namespace."
    ),
) -> None:
    """List artifact records and whether their archives are present."""
    config = get_config(ctx)
    store = SqliteObjectStore(config.store_path)
    storage = ArtifactStorage(config.storage_path, config.storage_hostname)
    artifacts = store.list(Artifact, namespace)
    if not artifacts:
        console.print("[dim]No artifacts found.[/dim]")
        return

    table = Table(title="Artifacts")
    table.add_column("Namespace", style="cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Revision", style="green")
    table.add_column("Size", justify="right")
    table.add_column("URL", overflow="fold")
    table.add_column("Stored", justify="center", no_wrap=True)

    for artifact in artifacts:
        stored = "[green]Yes[/green]" if storage.verify(artifact) else "[red]No[/red]"
        size = f"{artifact.spec.size:,}" if artifact.spec.size is not None else "-"
        table.add_row(
            artifact.metadata.namespace,
            artifact.metadata.name,
            short_revision(artifact.spec.revision),
            size,
            artifact.spec.url,
            stored,
        )
    console.print(table)


def delete_cmd(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the Http declaration."),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace."),
    keep_archives: bool = typer.Option(
        False, "--keep-archives", help="Leave stored archives on disk."
    ),
) -> None:
    """Delete an Http declaration, its artifact record, and its archives."""
    config = get_config(ctx)
    store = SqliteObjectStore(config.store_path)
    key = ObjectKey(namespace=namespace, name=name)

    try:
        dependents = store.delete(Http, key)
    except NotFoundError:
        console.print(f"[red]http/{key} not found[/red]")
        raise typer.Exit(code=1)

    console.print(f"http/{key} [green]deleted[/green]")
    for dependent in dependents:
        console.print(f"  [dim]garbage-collected {dependent}[/dim]")

    if not keep_archives:
        storage = ArtifactStorage(config.storage_path, config.storage_hostname)
        if storage.remove_all(Http.kind, namespace, name):
            console.print("  [dim]removed stored archives[/dim]")
