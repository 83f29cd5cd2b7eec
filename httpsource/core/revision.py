"""Decide how a freshly fetched revision relates to the recorded one."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from httpsource.models.artifacts import Artifact


class RevisionAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    UNCHANGED = "unchanged"


class RevisionPlan(BaseModel):
    """Write plan for the artifact record after a fetch."""

    model_config = ConfigDict(frozen=True)

    action: RevisionAction
    revision: str
    previous_revision: str = ""

    @property
    def changed(self) -> bool:
        return self.action is not RevisionAction.UNCHANGED


def plan_revision(digest: str, existing: Artifact | None) -> RevisionPlan:
    """Compare *digest* with the revision recorded on *existing*.

    The archive step still runs for ``UNCHANGED``; the plan only governs
    whether the record needs a write.
    """
    if existing is None:
        return RevisionPlan(action=RevisionAction.CREATE, revision=digest)
    previous = existing.spec.revision
    if previous == digest and existing.spec.digest == digest:
        return RevisionPlan(
            action=RevisionAction.UNCHANGED, revision=digest, previous_revision=previous
        )
    return RevisionPlan(
        action=RevisionAction.UPDATE, revision=digest, previous_revision=previous
    )
