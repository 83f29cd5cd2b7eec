"""Declarative object store backed by SQLite.

Holds desired-state declarations, Secrets and Artifact records as JSON
bodies keyed by (kind, namespace, name), with the API-server semantics the
reconciler depends on:

- ``resource_version`` optimistic concurrency on ``update``.
- ``status`` is a subresource: ``update`` never touches it and
  ``patch_status`` touches nothing else.
- ``generation`` only moves when the desired state changes.
- ``delete`` garbage-collects dependents through their owner references.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Callable, Iterator
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

from httpsource.models.meta import ObjectKey

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
T = TypeVar("T")


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_OBJECTS = """
CREATE TABLE IF NOT EXISTS objects (
    kind              TEXT NOT NULL,
    namespace         TEXT NOT NULL,
    name              TEXT NOT NULL,
    uid               TEXT NOT NULL UNIQUE,
    resource_version  INTEGER NOT NULL,
    body_json         TEXT NOT NULL,
    PRIMARY KEY (kind, namespace, name)
);
"""

_CREATE_IDX_NAMESPACE = """
CREATE INDEX IF NOT EXISTS idx_kind_namespace ON objects(kind, namespace, name);
"""


class StoreError(RuntimeError):
    """Base class for object store failures."""


class NotFoundError(StoreError):
    """Raised when the requested object does not exist."""


class AlreadyExistsError(StoreError):
    """Raised when creating an object whose key is taken."""


class ConflictError(StoreError):
    """Raised when an update carries a stale ``resource_version``."""


def _desired_state(body: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in body.items() if k not in ("metadata", "status")}


class SqliteObjectStore:
    """Kubernetes-style object store on a single SQLite file.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._db_path), check_same_thread=False, isolation_level=None
        )
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Open a connection; driver errors surface as ``StoreError``."""
        try:
            with closing(self._connect()) as conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreError(f"object store {self._db_path}: {exc}") from exc

    def _init_schema(self) -> None:
        with self._session() as conn:
            conn.execute(_CREATE_OBJECTS)
            conn.execute(_CREATE_IDX_NAMESPACE)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialized read-modify-write: ``BEGIN IMMEDIATE`` ... ``COMMIT``."""
        with self._session() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, model_cls: type[ModelT], key: ObjectKey) -> ModelT:
        """Return the stored object, or raise ``NotFoundError``."""
        with self._session() as conn:
            row = conn.execute(
                "SELECT body_json FROM objects WHERE kind = ? AND namespace = ? AND name = ?",
                (model_cls.kind, key.namespace, key.name),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"{model_cls.kind} {key} not found")
        return model_cls.model_validate_json(row[0])

    def list(
        self, model_cls: type[ModelT], namespace: str | None = None
    ) -> list[ModelT]:
        """Return all objects of a kind, optionally within one namespace."""
        query = "SELECT body_json FROM objects WHERE kind = ?"
        params: tuple[str, ...] = (model_cls.kind,)
        if namespace is not None:
            query += " AND namespace = ?"
            params += (namespace,)
        query += " ORDER BY namespace, name"
        with self._session() as conn:
            rows = conn.execute(query, params).fetchall()
        return [model_cls.model_validate_json(row[0]) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, obj: ModelT) -> ModelT:
        """Persist a new object, assigning uid, timestamps and versions."""
        meta = obj.metadata.model_copy(
            update={
                "uid": str(uuid.uuid4()),
                "creation_timestamp": datetime.now(timezone.utc),
                "deletion_timestamp": None,
                "resource_version": 1,
                "generation": 1,
            }
        )
        created = obj.model_copy(update={"metadata": meta})
        with self._transaction() as conn:
            try:
                conn.execute(
                    "INSERT INTO objects (kind, namespace, name, uid, resource_version, body_json) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        obj.kind,
                        meta.namespace,
                        meta.name,
                        meta.uid,
                        meta.resource_version,
                        created.model_dump_json(),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise AlreadyExistsError(f"{obj.kind} {meta.key} already exists") from exc
        logger.debug("Created %s %s", obj.kind, meta.key)
        return created

    def update(self, obj: ModelT) -> ModelT:
        """Replace an object's metadata and desired state.

        Fails with ``ConflictError`` unless ``obj.metadata.resource_version``
        matches the stored version.  Identity (uid, creation timestamp) and
        the status subresource are kept from the stored object.
        """
        model_cls = type(obj)
        key = obj.metadata.key
        with self._transaction() as conn:
            stored = self._select_for_write(conn, model_cls.kind, key)
            if stored["metadata"]["resource_version"] != obj.metadata.resource_version:
                raise ConflictError(
                    f"{model_cls.kind} {key} has been modified "
                    f"(stored version {stored['metadata']['resource_version']}, "
                    f"given {obj.metadata.resource_version})"
                )

            body = json.loads(obj.model_dump_json())
            meta = body["metadata"]
            meta["uid"] = stored["metadata"]["uid"]
            meta["creation_timestamp"] = stored["metadata"]["creation_timestamp"]
            meta["resource_version"] = stored["metadata"]["resource_version"] + 1
            meta["generation"] = stored["metadata"]["generation"]
            if _desired_state(body) != _desired_state(stored):
                meta["generation"] += 1
            if "status" in stored:
                body["status"] = stored["status"]
            self._write(conn, model_cls.kind, key, body)
        return model_cls.model_validate(body)

    def patch_status(self, obj: ModelT) -> ModelT:
        """Write only the status subresource; safe to repeat."""
        model_cls = type(obj)
        key = obj.metadata.key
        with self._transaction() as conn:
            stored = self._select_for_write(conn, model_cls.kind, key)
            stored["status"] = json.loads(obj.status.model_dump_json())
            stored["metadata"]["resource_version"] += 1
            self._write(conn, model_cls.kind, key, stored)
        return model_cls.model_validate(stored)

    def mark_deleted(self, model_cls: type[ModelT], key: ObjectKey) -> ModelT:
        """Set the pending-deletion marker on an object."""
        with self._transaction() as conn:
            stored = self._select_for_write(conn, model_cls.kind, key)
            if stored["metadata"].get("deletion_timestamp") is None:
                stored["metadata"]["deletion_timestamp"] = datetime.now(
                    timezone.utc
                ).isoformat()
                stored["metadata"]["resource_version"] += 1
                self._write(conn, model_cls.kind, key, stored)
        return model_cls.model_validate(stored)

    def delete(self, model_cls: type[ModelT], key: ObjectKey) -> list[ObjectKey]:
        """Remove an object and, transitively, every object it owns.

        Returns the keys of the removed dependents.
        """
        removed: list[ObjectKey] = []
        with self._transaction() as conn:
            stored = self._select_for_write(conn, model_cls.kind, key)
            pending = [stored["metadata"]["uid"]]
            self._remove(conn, model_cls.kind, key)

            rows = conn.execute("SELECT kind, body_json FROM objects").fetchall()
            bodies = [(kind, json.loads(body)) for kind, body in rows]
            while pending:
                owner_uid = pending.pop()
                for kind, body in bodies:
                    meta = body["metadata"]
                    owners = {ref.get("uid") for ref in meta.get("owner_references", [])}
                    if owner_uid not in owners or meta.get("_removed"):
                        continue
                    meta["_removed"] = True
                    dependent = ObjectKey(namespace=meta["namespace"], name=meta["name"])
                    self._remove(conn, kind, dependent)
                    removed.append(dependent)
                    pending.append(meta["uid"])

        for dependent in removed:
            logger.info("Garbage-collected dependent %s of %s %s", dependent, model_cls.kind, key)
        return removed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _select_for_write(
        conn: sqlite3.Connection, kind: str, key: ObjectKey
    ) -> dict[str, Any]:
        row = conn.execute(
            "SELECT body_json FROM objects WHERE kind = ? AND namespace = ? AND name = ?",
            (kind, key.namespace, key.name),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"{kind} {key} not found")
        return json.loads(row[0])

    @staticmethod
    def _write(
        conn: sqlite3.Connection, kind: str, key: ObjectKey, body: dict[str, Any]
    ) -> None:
        conn.execute(
            "UPDATE objects SET resource_version = ?, body_json = ? "
            "WHERE kind = ? AND namespace = ? AND name = ?",
            (
                body["metadata"]["resource_version"],
                json.dumps(body),
                kind,
                key.namespace,
                key.name,
            ),
        )

    @staticmethod
    def _remove(conn: sqlite3.Connection, kind: str, key: ObjectKey) -> None:
        conn.execute(
            "DELETE FROM objects WHERE kind = ? AND namespace = ? AND name = ?",
            (kind, key.namespace, key.name),
        )


def retry_on_conflict(fn: Callable[[], T], retries: int) -> T:
    """Call *fn*, re-running it up to *retries* more times on ``ConflictError``.

    *fn* must re-read whatever it modifies; the retry is immediate.
    """
    if retries < 0:
        raise ValueError(f"retries must be >= 0, got {retries}")
    attempt = 0
    while True:
        try:
            return fn()
        except ConflictError:
            if attempt == retries:
                raise
            attempt += 1
            logger.debug("Conflict on attempt %d/%d, retrying", attempt, retries + 1)
