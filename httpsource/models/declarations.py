"""Desired-state declarations: the ``Http`` source and the ``Secret`` it may reference."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, Field

from httpsource.models.meta import Condition, ObjectMeta


class SecretReference(BaseModel):
    """Names a Secret in the same namespace as the referring object."""

    name: str


class HttpSpec(BaseModel):
    """Desired state of an Http source."""

    url: str  # where to get the archive from
    secret_ref: SecretReference | None = None


class HttpStatus(BaseModel):
    """Observed state of an Http source."""

    observed_generation: int = 0
    conditions: list[Condition] = []
    last_applied_revision: str = ""  # revision of the last stored artifact
    last_attempted_revision: str = ""  # revision of the last reconciliation attempt
    artifact_name: str = ""


class Http(BaseModel):
    """Declares one remote HTTP resource to mirror as a served artifact."""

    kind: ClassVar[str] = "Http"

    metadata: ObjectMeta
    spec: HttpSpec
    status: HttpStatus = Field(default_factory=HttpStatus)


class Secret(BaseModel):
    """Credential material for fetches: ``username``/``password`` or ``token``."""

    kind: ClassVar[str] = "Secret"

    metadata: ObjectMeta
    data: dict[str, str] = {}
