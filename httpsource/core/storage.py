"""Revision-addressed artifact storage on the local filesystem.

Storage layout: {base_path}/{kind-lower}/{namespace}/{name}/{revision}.tar.gz
Served URL:     http://{hostname}/{kind-lower}/{namespace}/{name}/{revision}.tar.gz

The file server is expected to serve ``base_path`` at the URL root, so the
base path never appears in artifact URLs.  Archives are published with an
atomic rename; re-archiving the same revision rewrites identical bytes.
"""

from __future__ import annotations

import logging
import shutil
import tarfile
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from httpsource.core.archive import build_tarball
from httpsource.core.errors import StorageError
from httpsource.models.artifacts import Artifact, ArtifactSpec, artifact_name_for
from httpsource.models.declarations import Http
from httpsource.models.meta import ObjectMeta

logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".tar.gz"

ArchiveCallback = Callable[[Artifact, str], None]


def archive_filename(revision: str) -> str:
    return f"{revision}{ARCHIVE_EXTENSION}"


class ArtifactStorage:
    """Owns the on-disk and served lifecycle of artifact archives.

    Parameters
    ----------
    base_path:
        Root directory served by the artifact file server.
    hostname:
        Host (and optional port) the file server is reachable at.
    retention:
        Number of revision archives kept per declaration.
    """

    def __init__(self, base_path: Path, hostname: str, *, retention: int = 2) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)
        self.hostname = hostname
        self.retention = max(1, retention)

    @property
    def base_path(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    @staticmethod
    def artifact_path(kind: str, namespace: str, name: str, filename: str) -> str:
        """Storage-relative path: ``<kind-lower>/<namespace>/<name>/<filename>``."""
        return str(PurePosixPath(kind.lower(), namespace, name, filename))

    def artifact_url(self, kind: str, namespace: str, name: str, filename: str) -> str:
        return f"http://{self.hostname}/{self.artifact_path(kind, namespace, name, filename)}"

    def artifact_dir(self, kind: str, namespace: str, name: str) -> Path:
        return self._base / kind.lower() / namespace / name

    def local_path(self, artifact: Artifact) -> Path:
        """Absolute filesystem path of an artifact's archive."""
        return self._base / artifact.spec.path

    # ------------------------------------------------------------------
    # Storage interface used by the reconciler
    # ------------------------------------------------------------------

    def reconcile_storage(self, obj: Http) -> None:
        """Ensure the placement directory for *obj*'s artifacts exists."""
        target = self.artifact_dir(obj.kind, obj.metadata.namespace, obj.metadata.name)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"failed to create storage directory {target}: {exc}") from exc

    def new_artifact_for(
        self, kind: str, meta: ObjectMeta, revision: str, filename: str
    ) -> Artifact:
        """Synthesize an unpersisted artifact record for a declaration."""
        return Artifact(
            metadata=ObjectMeta(
                name=artifact_name_for(kind, meta.namespace, meta.name),
                namespace=meta.namespace,
            ),
            spec=ArtifactSpec(
                url=self.artifact_url(kind, meta.namespace, meta.name, filename),
                path=self.artifact_path(kind, meta.namespace, meta.name, filename),
                revision=revision,
                digest=revision,
            ),
        )

    def reconcile_artifact(
        self,
        obj: Http,
        revision: str,
        workspace_dir: Path,
        filename: str,
        callback: ArchiveCallback,
    ) -> Artifact:
        """Publish *workspace_dir* for *revision* and return its artifact record.

        The record is synthesized here and handed to *callback*, which performs
        the physical archive step.  Nothing is pruned; call ``garbage_collect``
        once the record has been persisted.
        """
        if not Path(workspace_dir).is_dir():
            raise StorageError(f"workspace {workspace_dir} does not exist")

        artifact = self.new_artifact_for(obj.kind, obj.metadata, revision, filename)
        callback(artifact, revision)
        return artifact

    def archive(
        self,
        artifact: Artifact,
        source_dir: Path,
        exclude: Callable[[Path], bool] | None = None,
    ) -> None:
        """Pack *source_dir* into the archive location implied by *artifact*.

        Sets ``size`` and ``last_update_time`` on the record.
        """
        target = self.local_path(artifact)
        try:
            size = build_tarball(Path(source_dir), target, exclude=exclude)
        except (OSError, tarfile.TarError) as exc:
            raise StorageError(f"failed to archive {source_dir} to {target}: {exc}") from exc

        artifact.spec.size = size
        artifact.spec.last_update_time = datetime.now(timezone.utc)
        logger.debug("Archived %s to %s (%d bytes)", source_dir, target, size)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def verify(self, artifact: Artifact) -> bool:
        """Whether the archive for *artifact* exists with the recorded size."""
        path = self.local_path(artifact)
        if not artifact.spec.path or not path.is_file():
            return False
        return artifact.spec.size is None or path.stat().st_size == artifact.spec.size

    def garbage_collect(self, artifact: Artifact) -> list[Path]:
        """Delete the oldest revision archives beyond the retention limit.

        The archive belonging to *artifact* is always kept.  Failures are
        logged; pruning never fails a reconciliation.
        """
        current = self.local_path(artifact)
        directory = current.parent
        if not directory.is_dir():
            return []

        others = sorted(
            (p for p in directory.glob(f"*{ARCHIVE_EXTENSION}") if p != current),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        removed: list[Path] = []
        for stale in others[self.retention - 1:]:
            try:
                stale.unlink()
                removed.append(stale)
            except OSError as exc:
                logger.warning("Failed to remove stale artifact %s: %s", stale, exc)
        if removed:
            logger.info("Pruned %d stale archive(s) in %s", len(removed), directory)
        return removed

    def remove_all(self, kind: str, namespace: str, name: str) -> bool:
        """Remove every archive stored for a declaration."""
        target = self.artifact_dir(kind, namespace, name)
        if not target.exists():
            return False
        shutil.rmtree(target)
        return True
