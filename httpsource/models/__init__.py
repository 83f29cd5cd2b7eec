"""httpsource data models — all Pydantic v2."""

from httpsource.models.artifacts import Artifact, ArtifactSpec, artifact_name_for
from httpsource.models.credentials import CredentialKind, FetchCredentials
from httpsource.models.declarations import (
    Http,
    HttpSpec,
    HttpStatus,
    Secret,
    SecretReference,
)
from httpsource.models.meta import (
    Condition,
    ConditionStatus,
    ObjectKey,
    ObjectMeta,
    OwnerReference,
)
from httpsource.models.results import ReconcileResult

__all__ = [
    "Artifact",
    "ArtifactSpec",
    "artifact_name_for",
    "CredentialKind",
    "FetchCredentials",
    "Http",
    "HttpSpec",
    "HttpStatus",
    "Secret",
    "SecretReference",
    "Condition",
    "ConditionStatus",
    "ObjectKey",
    "ObjectMeta",
    "OwnerReference",
    "ReconcileResult",
]
