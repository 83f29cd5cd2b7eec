"""Controller — drives the reconciler over every declaration in the store.

This is the minimal event source the CLI needs: a resync pass over all Http
declarations, optionally repeated on an interval.  A failing declaration is
logged and retried on the next pass; it never stops the others.
"""

from __future__ import annotations

import logging
import threading

from pydantic import BaseModel

from httpsource.core.context import ReconcileContext
from httpsource.core.errors import ReconcileError
from httpsource.core.reconciler import HttpSourceReconciler
from httpsource.models.declarations import Http

logger = logging.getLogger(__name__)


class SyncReport(BaseModel):
    """Outcome of one resync pass, keyed by ``namespace/name``."""

    succeeded: list[str] = []
    failed: dict[str, str] = {}

    @property
    def ok(self) -> bool:
        return not self.failed


class Controller:
    """Resync loop around an ``HttpSourceReconciler``.

    Parameters
    ----------
    reconciler:
        The reconciler invoked once per declaration per pass.
    namespace:
        Restrict passes to one namespace; all namespaces when None.
    """

    def __init__(
        self, reconciler: HttpSourceReconciler, *, namespace: str | None = None
    ) -> None:
        self._reconciler = reconciler
        self._namespace = namespace

    def sync(self, ctx: ReconcileContext | None = None) -> SyncReport:
        """Reconcile every declaration once.

        Declarations are reconciled one after another, so two reconciliations
        of the same declaration never overlap.
        """
        report = SyncReport()
        declarations = self._reconciler.store.list(Http, self._namespace)
        for obj in declarations:
            key = obj.metadata.key
            try:
                self._reconciler.reconcile(key, ctx)
                report.succeeded.append(str(key))
            except ReconcileError as exc:
                logger.error("Reconciliation of Http %s failed: %s", key, exc)
                report.failed[str(key)] = str(exc)

        if report.failed:
            logger.warning(
                "Resync: %d/%d declarations reconciled, %d failed",
                len(report.succeeded),
                len(declarations),
                len(report.failed),
            )
        return report

    def run(self, interval: float, stop: threading.Event) -> None:
        """Repeat ``sync`` every *interval* seconds until *stop* is set."""
        logger.info("Controller started (resync every %.0fs)", interval)
        while not stop.is_set():
            self.sync()
            stop.wait(interval)
        logger.info("Controller stopped")
