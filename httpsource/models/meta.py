"""Object metadata shared by every stored resource.

Mirrors the subset of Kubernetes ``ObjectMeta`` the controller relies on:
identity, generation tracking, optimistic-concurrency versioning, deletion
marker, and owner references for lifecycle association.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ObjectKey(BaseModel):
    """Namespace + name — the primary key of a stored object."""

    model_config = ConfigDict(frozen=True)

    namespace: str = "default"
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class OwnerReference(BaseModel):
    """Back-pointer from a dependent object to the object that owns it."""

    model_config = ConfigDict(frozen=True)

    api_version: str = "httpsource/v1alpha1"
    kind: str
    name: str
    uid: str
    controller: bool = True
    block_owner_deletion: bool = True


class ObjectMeta(BaseModel):
    """Metadata carried by every resource in the object store.

    ``uid``, ``creation_timestamp`` and ``resource_version`` are assigned by
    the store; a ``creation_timestamp`` of ``None`` means the object has never
    been persisted.
    """

    name: str
    namespace: str = "default"
    uid: str = ""
    generation: int = 0
    resource_version: int = 0
    creation_timestamp: datetime | None = None
    deletion_timestamp: datetime | None = None
    labels: dict[str, str] = {}
    owner_references: list[OwnerReference] = []

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(namespace=self.namespace, name=self.name)


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Condition(BaseModel):
    """A typed status condition, shaped like ``metav1.Condition``."""

    type: str
    status: ConditionStatus
    reason: str
    message: str = ""
    observed_generation: int = 0
    last_transition_time: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
