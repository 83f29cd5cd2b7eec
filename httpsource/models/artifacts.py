"""Artifact records — the durable description of the last archived payload.

An artifact's ``revision`` is the SHA-256 hex digest of the fetched payload
and doubles as the archive's filename in storage, so the record and the
bytes served at ``url`` are always addressed by the same content hash.
"""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, Field

from httpsource.models.meta import ObjectMeta


def artifact_name_for(kind: str, namespace: str, name: str) -> str:
    """Deterministic artifact name: ``<kind-lower>-<namespace>-<name>``."""
    return f"{kind.lower()}-{namespace}-{name}"


class ArtifactSpec(BaseModel):
    url: str = ""
    path: str = ""  # storage-relative path of the archive
    revision: str = ""
    digest: str = ""  # same algorithm as revision for now
    size: int | None = None
    last_update_time: datetime | None = None


class Artifact(BaseModel):
    """Describes where the archived payload for a declaration is served."""

    kind: ClassVar[str] = "Artifact"

    metadata: ObjectMeta
    spec: ArtifactSpec = Field(default_factory=ArtifactSpec)
