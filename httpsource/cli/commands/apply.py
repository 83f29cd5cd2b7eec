"""``httpsource apply`` / ``httpsource secret`` — declare sources and credentials.

``apply`` creates an Http declaration or updates its URL and secret
reference; a changed spec bumps the declaration's generation.  ``secret``
stores fetch credentials for declarations to reference.
"""

from __future__ import annotations

import typer

from httpsource.cli.commands._shared import console, get_config
from httpsource.core.store import NotFoundError, SqliteObjectStore
from httpsource.models.credentials import FetchCredentials
from httpsource.models.declarations import Http, HttpSpec, Secret, SecretReference
from httpsource.models.meta import ObjectKey, ObjectMeta


def apply_cmd(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the Http declaration."),
    url: str = typer.Option(..., "--url", "-u", help="URL of the payload to mirror."),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace."),
    secret_ref: str = typer.Option(
        None, "--secret-ref", "-s", help="Secret holding fetch credentials."
    ),
) -> None:
    """Create or update an Http declaration."""
    store = SqliteObjectStore(get_config(ctx).store_path)
    key = ObjectKey(namespace=namespace, name=name)
    spec = HttpSpec(
        url=url,
        secret_ref=SecretReference(name=secret_ref) if secret_ref else None,
    )

    try:
        obj = store.get(Http, key)
    except NotFoundError:
        obj = store.create(Http(metadata=ObjectMeta(name=name, namespace=namespace), spec=spec))
        console.print(f"http/{key} [green]created[/green] (generation {obj.metadata.generation})")
        return

    obj.spec = spec
    updated = store.update(obj)
    if updated.metadata.generation == obj.metadata.generation:
        console.print(f"http/{key} unchanged")
    else:
        console.print(
            f"http/{key} [green]configured[/green] (generation {updated.metadata.generation})"
        )


def secret_cmd(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the Secret."),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace."),
    username: str = typer.Option("", "--username", help="Basic auth username."),
    password: str = typer.Option("", "--password", help="Basic auth password."),
    token: str = typer.Option("", "--token", help="Bearer token."),
) -> None:
    """Create or replace a Secret with fetch credentials."""
    data = {k: v for k, v in {"username": username, "password": password, "token": token}.items() if v}
    try:
        FetchCredentials.from_secret_data(data)
    except ValueError as exc:
        console.print(f"[red]Invalid credentials:[/red] {exc}")
        raise typer.Exit(code=1)

    store = SqliteObjectStore(get_config(ctx).store_path)
    key = ObjectKey(namespace=namespace, name=name)
    try:
        secret = store.get(Secret, key)
    except NotFoundError:
        store.create(Secret(metadata=ObjectMeta(name=name, namespace=namespace), data=data))
        console.print(f"secret/{key} [green]created[/green]")
        return

    secret.data = data
    store.update(secret)
    console.print(f"secret/{key} [green]configured[/green]")
