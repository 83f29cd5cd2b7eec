"""Outcome of a single reconciliation, consumed by the dispatcher."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ReconcileResult(BaseModel):
    """Success marker plus an optional "reconcile again after" hint in seconds."""

    model_config = ConfigDict(frozen=True)

    requeue_after: float | None = None
