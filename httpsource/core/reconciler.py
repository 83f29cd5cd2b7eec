"""Http source reconciler — the control-loop body.

One call to ``reconcile`` brings the artifact record of one Http
declaration in line with what its URL currently serves:

1. Load the declaration (missing or pending deletion: nothing to do).
2. Create a per-invocation workspace.
3. Fetch the payload into it, producing the content digest (revision).
4. Look up the existing artifact record.
5. Ensure the storage placement and archive the workspace under the
   revision-addressed name.
6. Create or update the artifact record.

The declaration's status is patched on every path past step 1, and the
workspace is removed on every path past step 2.  Retries are left to the
caller: every step is safe to re-run.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import httpx

from httpsource.config import ControllerConfig
from httpsource.core.conditions import READY, SUCCEEDED_REASON, set_condition
from httpsource.core.context import ReconcileContext, background
from httpsource.core.errors import (
    ArtifactLookupError,
    CredentialsError,
    ReconcileError,
    StatusPersistError,
    StorageError,
)
from httpsource.core.fetcher import Fetcher
from httpsource.core.ownership import ArtifactResolver, owner_reference_for
from httpsource.core.revision import RevisionAction, plan_revision
from httpsource.core.storage import ArtifactStorage, archive_filename
from httpsource.core.store import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    SqliteObjectStore,
    StoreError,
    retry_on_conflict,
)
from httpsource.models.artifacts import Artifact
from httpsource.models.credentials import FetchCredentials
from httpsource.models.declarations import Http, Secret
from httpsource.models.meta import ConditionStatus, ObjectKey
from httpsource.models.results import ReconcileResult

logger = logging.getLogger(__name__)


class HttpSourceReconciler:
    """Reconciles Http declarations into served, revision-addressed artifacts.

    Parameters
    ----------
    store:
        Object store holding declarations, Secrets and artifact records.
    fetcher:
        Downloads and hashes the remote payload.
    storage:
        Owns archive placement and publication.
    resolver:
        Finds the existing artifact record.  Defaults to deterministic-name
        lookup without the owner scan.
    workspace_root:
        Parent directory for per-invocation workspaces; system temp if None.
    conflict_retries:
        Immediate re-read-and-retry budget for the artifact upsert.
    requeue_after:
        Hint returned on success for when to reconcile again.
    """

    def __init__(
        self,
        store: SqliteObjectStore,
        fetcher: Fetcher,
        storage: ArtifactStorage,
        resolver: ArtifactResolver | None = None,
        *,
        workspace_root: Path | None = None,
        conflict_retries: int = 5,
        requeue_after: float | None = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._storage = storage
        self._resolver = resolver or ArtifactResolver(store)
        self._workspace_root = Path(workspace_root) if workspace_root else None
        self._conflict_retries = conflict_retries
        self._requeue_after = requeue_after

    @classmethod
    def from_config(
        cls, config: ControllerConfig, client: httpx.Client | None = None
    ) -> HttpSourceReconciler:
        """Wire store, storage, fetcher and resolver from one config value."""
        store = SqliteObjectStore(config.store_path)
        storage = ArtifactStorage(
            config.storage_path,
            config.storage_hostname,
            retention=config.artifact_retention,
        )
        if client is None:
            client = httpx.Client(
                timeout=config.fetch_timeout_seconds, follow_redirects=True
            )
        return cls(
            store,
            Fetcher(client),
            storage,
            ArtifactResolver(store, scan_fallback=config.owner_scan_fallback),
            workspace_root=config.workspace_root,
            conflict_retries=config.conflict_retries,
            requeue_after=config.resync_interval_seconds,
        )

    @property
    def store(self) -> SqliteObjectStore:
        return self._store

    @property
    def storage(self) -> ArtifactStorage:
        return self._storage

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def reconcile(
        self, key: ObjectKey, ctx: ReconcileContext | None = None
    ) -> ReconcileResult:
        """Reconcile the Http declaration identified by *key* once.

        Returns a ``ReconcileResult`` on success or when there is nothing to
        do.  Raises a ``ReconcileError`` subclass on failure; the
        declaration's status has been patched either way.
        """
        ctx = ctx or background()
        logger.info("Starting reconciliation of Http %s", key)

        try:
            obj = self._store.get(Http, key)
        except NotFoundError:
            logger.debug("Http %s not found, nothing to reconcile", key)
            return ReconcileResult()
        except StoreError as exc:
            raise ReconcileError(f"failed to get Http {key}: {exc}") from exc

        if obj.metadata.deletion_timestamp is not None:
            logger.info("Http %s is being deleted, skipping", key)
            return ReconcileResult()

        error: BaseException | None = None
        try:
            self._reconcile(ctx, obj)
        except BaseException as exc:
            error = exc
            raise
        finally:
            self._summarize(obj, error)
            self._patch_status(obj, error)

        return ReconcileResult(requeue_after=self._requeue_after)

    # ------------------------------------------------------------------
    # Reconciliation body
    # ------------------------------------------------------------------

    def _reconcile(self, ctx: ReconcileContext, obj: Http) -> None:
        credentials = self._credentials_for(obj)

        with self._workspace(obj) as workspace:
            digest = self._fetcher.fetch(obj.spec.url, workspace, credentials, ctx=ctx)
            obj.status.last_attempted_revision = digest

            try:
                existing = self._resolver.find_artifact(obj)
            except StoreError as exc:
                raise ArtifactLookupError(f"failed to find artifact: {exc}") from exc
            if existing is None:
                logger.info("No artifact found for Http %s", obj.metadata.key)

            self._storage.reconcile_storage(obj)

            def archive(artifact: Artifact, revision: str) -> None:
                self._storage.archive(artifact, workspace)
                obj.status.artifact_name = artifact.metadata.name

            archived = self._storage.reconcile_artifact(
                obj, digest, workspace, archive_filename(digest), archive
            )
            artifact = self._create_or_update(obj, existing, archived)
            self._storage.garbage_collect(artifact)

        obj.status.artifact_name = artifact.metadata.name
        obj.status.last_applied_revision = digest

    def _credentials_for(self, obj: Http) -> FetchCredentials:
        ref = obj.spec.secret_ref
        if ref is None:
            return FetchCredentials.none()

        key = ObjectKey(namespace=obj.metadata.namespace, name=ref.name)
        try:
            secret = self._store.get(Secret, key)
        except StoreError as exc:
            raise CredentialsError(f"failed to get secret {key}: {exc}") from exc
        try:
            return FetchCredentials.from_secret_data(secret.data)
        except ValueError as exc:
            raise CredentialsError(f"invalid credentials in secret {key}: {exc}") from exc

    @contextmanager
    def _workspace(self, obj: Http) -> Iterator[Path]:
        """Temporary working directory, removed on exit (best effort)."""
        prefix = f"{obj.kind}-{obj.metadata.namespace}-{obj.metadata.name}-"
        try:
            if self._workspace_root is not None:
                self._workspace_root.mkdir(parents=True, exist_ok=True)
            path = Path(tempfile.mkdtemp(prefix=prefix, dir=self._workspace_root))
        except OSError as exc:
            raise ReconcileError(
                f"failed to create temporary working directory: {exc}"
            ) from exc

        try:
            yield path
        finally:
            try:
                shutil.rmtree(path)
            except OSError as exc:
                logger.error("Failed to remove temporary working directory %s: %s", path, exc)

    def _create_or_update(
        self, obj: Http, existing: Artifact | None, archived: Artifact
    ) -> Artifact:
        """Upsert the artifact record keyed by its identity.

        New records get an owner reference to *obj*; existing records keep
        identity and owner references and only have their spec replaced, and
        only when it differs.  Conflicts re-read and retry.
        """
        key = existing.metadata.key if existing is not None else archived.metadata.key

        def attempt() -> Artifact:
            try:
                current: Artifact | None = self._store.get(Artifact, key)
            except NotFoundError:
                current = None

            plan = plan_revision(archived.spec.revision, current)
            if plan.action is RevisionAction.CREATE:
                record = archived.model_copy(deep=True)
                if record.metadata.creation_timestamp is None:
                    record.metadata.owner_references = [owner_reference_for(obj)]
                try:
                    created = self._store.create(record)
                except AlreadyExistsError as exc:
                    raise ConflictError(str(exc)) from exc
                logger.info(
                    "Created artifact %s at revision %s", created.metadata.key, plan.revision
                )
                return created

            if plan.action is RevisionAction.UNCHANGED and self._same_placement(
                current, archived
            ):
                logger.info(
                    "Artifact %s unchanged at revision %s", current.metadata.key, plan.revision
                )
                return current

            current.spec = archived.spec.model_copy()
            updated = self._store.update(current)
            logger.info(
                "Updated artifact %s from revision %s to %s",
                updated.metadata.key,
                plan.previous_revision or "<none>",
                plan.revision,
            )
            return updated

        try:
            return retry_on_conflict(attempt, self._conflict_retries)
        except StoreError as exc:
            raise StorageError(f"failed to create/update artifact: {exc}") from exc

    @staticmethod
    def _same_placement(current: Artifact, archived: Artifact) -> bool:
        return (
            current.spec.url == archived.spec.url
            and current.spec.path == archived.spec.path
            and current.spec.size == archived.spec.size
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @staticmethod
    def _summarize(obj: Http, error: BaseException | None) -> None:
        generation = obj.metadata.generation
        obj.status.observed_generation = generation
        if error is None:
            set_condition(
                obj.status.conditions,
                READY,
                ConditionStatus.TRUE,
                SUCCEEDED_REASON,
                f"stored artifact for revision {obj.status.last_applied_revision}",
                observed_generation=generation,
            )
        else:
            set_condition(
                obj.status.conditions,
                READY,
                ConditionStatus.FALSE,
                getattr(error, "reason", ReconcileError.reason),
                str(error),
                observed_generation=generation,
            )

    def _patch_status(self, obj: Http, error: BaseException | None) -> None:
        try:
            self._store.patch_status(obj)
        except StoreError as exc:
            raise StatusPersistError(
                f"failed to patch status of Http {obj.metadata.key}: {exc}",
                reconcile_error=error,
            ) from exc
