"""Shared test fixtures for httpsource."""

from __future__ import annotations

import io
import tarfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from httpsource.core.fetcher import Fetcher
from httpsource.core.reconciler import HttpSourceReconciler
from httpsource.core.storage import ArtifactStorage
from httpsource.core.store import SqliteObjectStore
from httpsource.models.declarations import Http, HttpSpec, SecretReference
from httpsource.models.meta import ObjectMeta


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def store(tmp_dir: Path) -> SqliteObjectStore:
    """Provide a fresh object store backed by a temp SQLite database."""
    return SqliteObjectStore(tmp_dir / "store.db")


@pytest.fixture
def storage(tmp_dir: Path) -> ArtifactStorage:
    """Provide artifact storage served as ``http://hostname/``."""
    return ArtifactStorage(tmp_dir / "artifacts", "hostname")


@pytest.fixture
def workspace_root(tmp_dir: Path) -> Path:
    """Parent directory for reconciliation workspaces."""
    return tmp_dir / "work"


# ---------------------------------------------------------------------------
# Payload and transport factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_tarball() -> Callable[..., bytes]:
    """Factory fixture: gzip'd tar bytes holding the given files."""

    def _factory(files: dict[str, bytes] | None = None) -> bytes:
        files = files if files is not None else {"manifest.yaml": b"kind: ConfigMap\n"}
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            for name, data in files.items():
                info = tarfile.TarInfo(name)
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
        return buffer.getvalue()

    return _factory


@pytest.fixture
def make_client() -> Callable[..., httpx.Client]:
    """Factory fixture: an ``httpx.Client`` answering every request from memory.

    Pass ``requests`` to collect the requests the client receives, or
    ``handler`` to take over the transport entirely.
    """

    def _factory(
        content: bytes = b"",
        status_code: int = 200,
        requests: list[httpx.Request] | None = None,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
    ) -> httpx.Client:
        def _respond(request: httpx.Request) -> httpx.Response:
            if requests is not None:
                requests.append(request)
            return httpx.Response(status_code, content=content)

        return httpx.Client(transport=httpx.MockTransport(handler or _respond))

    return _factory


# ---------------------------------------------------------------------------
# Declaration and reconciler factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_http(store: SqliteObjectStore) -> Callable[..., Http]:
    """Factory fixture: persist an Http declaration with sensible defaults."""

    def _factory(
        name: str = "test-http",
        namespace: str = "default",
        url: str = "http://source.test/content.tar.gz",
        secret_ref: str | None = None,
        **overrides: Any,
    ) -> Http:
        spec = HttpSpec(
            url=url,
            secret_ref=SecretReference(name=secret_ref) if secret_ref else None,
        )
        defaults: dict[str, Any] = {
            "metadata": ObjectMeta(name=name, namespace=namespace),
            "spec": spec,
        }
        defaults.update(overrides)
        return store.create(Http(**defaults))

    return _factory


@pytest.fixture
def make_reconciler(
    store: SqliteObjectStore, storage: ArtifactStorage, workspace_root: Path
) -> Callable[..., HttpSourceReconciler]:
    """Factory fixture: a reconciler wired to the test store and storage."""

    def _factory(client: httpx.Client, **overrides: Any) -> HttpSourceReconciler:
        kwargs: dict[str, Any] = {
            "store": store,
            "fetcher": Fetcher(client),
            "storage": storage,
            "workspace_root": workspace_root,
        }
        kwargs.update(overrides)
        return HttpSourceReconciler(**kwargs)

    return _factory
