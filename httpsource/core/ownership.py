"""Locate the artifact record already associated with a declaration.

The primary strategy is a direct get by the deterministic artifact name.
A namespace scan over owner references is available behind the
``owner_scan_fallback`` flag for records whose names were not derived
deterministically.
"""

from __future__ import annotations

import logging

from httpsource.core.store import NotFoundError, SqliteObjectStore
from httpsource.models.artifacts import Artifact, artifact_name_for
from httpsource.models.declarations import Http
from httpsource.models.meta import ObjectKey, OwnerReference

logger = logging.getLogger(__name__)


def owner_reference_for(obj: Http) -> OwnerReference:
    return OwnerReference(kind=obj.kind, name=obj.metadata.name, uid=obj.metadata.uid)


def is_owned_by(artifact: Artifact, obj: Http) -> bool:
    """Whether *artifact* has exactly one owner reference and it names *obj*."""
    refs = artifact.metadata.owner_references
    if len(refs) != 1:
        return False
    ref = refs[0]
    if ref.kind != obj.kind or ref.name != obj.metadata.name:
        return False
    return not ref.uid or not obj.metadata.uid or ref.uid == obj.metadata.uid


class ArtifactResolver:
    """Finds the artifact record for a declaration, or reports there is none.

    Parameters
    ----------
    store:
        Object store holding the artifact records.
    scan_fallback:
        Also scan the declaration's namespace for an artifact owned by it
        when the deterministic lookup misses.
    """

    def __init__(self, store: SqliteObjectStore, *, scan_fallback: bool = False) -> None:
        self._store = store
        self._scan_fallback = scan_fallback

    def find_artifact(self, obj: Http) -> Artifact | None:
        """Return the associated artifact, or ``None`` if it does not exist yet.

        Store failures other than "not found" propagate.
        """
        artifact = self._lookup(obj)
        if artifact is None and self._scan_fallback:
            artifact = self._scan(obj)
        return artifact

    def _lookup(self, obj: Http) -> Artifact | None:
        key = ObjectKey(
            namespace=obj.metadata.namespace,
            name=artifact_name_for(obj.kind, obj.metadata.namespace, obj.metadata.name),
        )
        try:
            return self._store.get(Artifact, key)
        except NotFoundError:
            return None

    def _scan(self, obj: Http) -> Artifact | None:
        for artifact in self._store.list(Artifact, obj.metadata.namespace):
            refs = artifact.metadata.owner_references
            if len(refs) != 1:
                if refs:
                    logger.warning(
                        "Skipping artifact %s: %d owner references, no clear owner",
                        artifact.metadata.key,
                        len(refs),
                    )
                continue
            if is_owned_by(artifact, obj):
                logger.debug("Found artifact %s by owner scan", artifact.metadata.key)
                return artifact
        return None
