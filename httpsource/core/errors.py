"""Exception hierarchy for a reconciliation pass.

Every failure that escapes ``HttpSourceReconciler.reconcile`` is a
``ReconcileError``.  Each class carries the ``reason`` written into the
declaration's Ready condition, so the status explains which stage failed
without parsing messages.  Store-level errors (not found, conflict) live
with the store in ``httpsource.core.store``.
"""

from __future__ import annotations

__all__ = [
    "ReconcileError",
    "FetchError",
    "TransportError",
    "FetchCancelledError",
    "ExtractionError",
    "CredentialsError",
    "ArtifactLookupError",
    "StorageError",
    "StatusPersistError",
]


class ReconcileError(RuntimeError):
    """Base exception for a failed reconciliation pass."""

    reason: str = "ReconciliationFailed"


class FetchError(ReconcileError):
    """Raised when the remote payload could not be turned into a workspace."""

    reason = "FetchFailed"


class TransportError(FetchError):
    """Raised on request construction, network, or non-2xx status failures."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FetchCancelledError(TransportError):
    """Raised when the caller's context is cancelled or past its deadline."""

    reason = "FetchCancelled"


class ExtractionError(FetchError):
    """Raised when the transport succeeded but the payload is unusable."""

    reason = "ExtractionFailed"


class CredentialsError(FetchError):
    """Raised when a referenced Secret is missing or ambiguous."""

    reason = "CredentialsUnavailable"


class ArtifactLookupError(ReconcileError):
    """Raised when the existing artifact record could not be looked up."""

    reason = "ArtifactLookupFailed"


class StorageError(ReconcileError):
    """Raised when placement, archiving, or the record upsert fails."""

    reason = "StorageOperationFailed"


class StatusPersistError(ReconcileError):
    """Raised when the final status patch fails.

    ``reconcile_error`` holds the failure of the reconciliation body, if any,
    so that a failed status write never hides it.
    """

    reason = "StatusPersistFailed"

    def __init__(
        self, message: str, *, reconcile_error: BaseException | None = None
    ) -> None:
        if reconcile_error is not None:
            message = f"{message} (after reconciliation failure: {reconcile_error})"
        super().__init__(message)
        self.reconcile_error = reconcile_error
