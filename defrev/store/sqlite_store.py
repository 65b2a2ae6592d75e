"""Optimistically concurrent object store backed by SQLite.

Design:
- One row per object, keyed by (kind, namespace, name).
- A store-wide counter supplies resource versions; every write bumps it.
- Writes run inside ``BEGIN IMMEDIATE`` so compare-and-write is atomic
  across threads and processes.
- ``owner_uids_json`` indexes owner references for cascade deletion.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TypeVar

from defrev.errors import AlreadyExistsError, ConflictError, NotFoundError
from defrev.models.meta import Resource

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Resource)


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
    labels_json       TEXT NOT NULL DEFAULT '{}',
    owner_uids_json   TEXT NOT NULL DEFAULT '[]',
    body_json         TEXT NOT NULL,
    PRIMARY KEY (kind, namespace, name)
);
"""

_CREATE_COUNTER = """
CREATE TABLE IF NOT EXISTS store_counter (
    id     INTEGER PRIMARY KEY CHECK (id = 1),
    value  INTEGER NOT NULL
);
"""

_SEED_COUNTER = """
INSERT OR IGNORE INTO store_counter (id, value) VALUES (1, 0);
"""


class SQLiteObjectStore:
    """Namespaced object store with resource-version conflict detection.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            timeout=30.0,
            isolation_level=None,
        )
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute(_CREATE_OBJECTS)
            conn.execute(_CREATE_COUNTER)
            conn.execute(_SEED_COUNTER)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, model: type[T], namespace: str, name: str) -> T:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT body_json FROM objects WHERE kind = ? AND namespace = ? AND name = ?",
                (model.KIND, namespace, name),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError(model.KIND, namespace, name)
        return model.model_validate_json(row[0])

    def list(
        self,
        model: type[T],
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[T]:
        query = "SELECT labels_json, body_json FROM objects WHERE kind = ?"
        params: list[str] = [model.KIND]
        if namespace is not None:
            query += " AND namespace = ?"
            params.append(namespace)
        query += " ORDER BY namespace ASC, name ASC"

        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

        selector = labels or {}
        result: list[T] = []
        for labels_json, body_json in rows:
            stored_labels = json.loads(labels_json)
            if all(stored_labels.get(k) == v for k, v in selector.items()):
                result.append(model.model_validate_json(body_json))
        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, obj: T) -> T:
        meta = obj.metadata
        with self._transaction() as conn:
            if self._select(conn, obj.kind, meta.namespace, meta.name) is not None:
                raise AlreadyExistsError(obj.kind, meta.namespace, meta.name)
            stored = obj.model_copy(deep=True)
            stored.metadata.resource_version = str(self._next_version(conn))
            stored.metadata.generation = 1
            stored.metadata.creation_timestamp = datetime.now(timezone.utc)
            conn.execute(
                """
                INSERT INTO objects
                    (kind, namespace, name, uid, resource_version,
                     labels_json, owner_uids_json, body_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._row_values(stored),
            )
        logger.debug("Created %s %s", stored.kind, stored.key)
        return stored

    def update(self, obj: T) -> T:
        with self._transaction() as conn:
            current = self._load_for_write(conn, obj)
            stored = obj.model_copy(deep=True)
            if hasattr(stored, "status"):
                stored.status = current.status
            stored.metadata.uid = current.metadata.uid
            stored.metadata.creation_timestamp = current.metadata.creation_timestamp
            stored.metadata.generation = current.metadata.generation
            if self._spec_changed(current, stored):
                stored.metadata.generation += 1
            stored.metadata.resource_version = str(self._next_version(conn))
            self._write(conn, stored)
        logger.debug("Updated %s %s", stored.kind, stored.key)
        return stored

    def update_status(self, obj: T) -> T:
        with self._transaction() as conn:
            current = self._load_for_write(conn, obj)
            stored = current.model_copy(deep=True)
            stored.status = obj.status.model_copy(deep=True)
            stored.metadata.resource_version = str(self._next_version(conn))
            self._write(conn, stored)
        logger.debug("Updated status of %s %s", stored.kind, stored.key)
        return stored

    def delete(self, obj: Resource) -> None:
        meta = obj.metadata
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT uid FROM objects WHERE kind = ? AND namespace = ? AND name = ?",
                (obj.kind, meta.namespace, meta.name),
            ).fetchone()
            if row is None:
                raise NotFoundError(obj.kind, meta.namespace, meta.name)
            conn.execute(
                "DELETE FROM objects WHERE kind = ? AND namespace = ? AND name = ?",
                (obj.kind, meta.namespace, meta.name),
            )
            cascaded = self._delete_dependents(conn, row[0])
        logger.debug("Deleted %s %s (%d dependents)", obj.kind, obj.key, cascaded)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _select(
        conn: sqlite3.Connection, kind: str, namespace: str, name: str
    ) -> tuple[int, str] | None:
        return conn.execute(
            "SELECT resource_version, body_json FROM objects "
            "WHERE kind = ? AND namespace = ? AND name = ?",
            (kind, namespace, name),
        ).fetchone()

    def _load_for_write(self, conn: sqlite3.Connection, obj: T) -> T:
        """Fetch the stored copy of ``obj`` and check its resource version.

        An empty resource version on ``obj`` means an unconditional write.
        """
        meta = obj.metadata
        row = self._select(conn, obj.kind, meta.namespace, meta.name)
        if row is None:
            raise NotFoundError(obj.kind, meta.namespace, meta.name)
        stored_version, body_json = row
        if meta.resource_version and meta.resource_version != str(stored_version):
            raise ConflictError(
                obj.kind, meta.namespace, meta.name,
                meta.resource_version, str(stored_version),
            )
        return type(obj).model_validate_json(body_json)

    @staticmethod
    def _next_version(conn: sqlite3.Connection) -> int:
        conn.execute("UPDATE store_counter SET value = value + 1 WHERE id = 1")
        return conn.execute("SELECT value FROM store_counter WHERE id = 1").fetchone()[0]

    @staticmethod
    def _spec_changed(current: Resource, updated: Resource) -> bool:
        exclude = {"metadata", "status"}
        return current.model_dump(mode="json", exclude=exclude) != updated.model_dump(
            mode="json", exclude=exclude
        )

    @staticmethod
    def _row_values(obj: Resource) -> tuple[str, str, str, str, int, str, str, str]:
        meta = obj.metadata
        return (
            obj.kind,
            meta.namespace,
            meta.name,
            meta.uid,
            int(meta.resource_version),
            json.dumps(meta.labels, sort_keys=True),
            json.dumps([ref.uid for ref in meta.owner_references]),
            obj.model_dump_json(by_alias=True),
        )

    def _write(self, conn: sqlite3.Connection, obj: Resource) -> None:
        kind, namespace, name, uid, version, labels_json, owners_json, body = self._row_values(obj)
        conn.execute(
            """
            UPDATE objects
               SET uid = ?, resource_version = ?, labels_json = ?,
                   owner_uids_json = ?, body_json = ?
             WHERE kind = ? AND namespace = ? AND name = ?
            """,
            (uid, version, labels_json, owners_json, body, kind, namespace, name),
        )

    @staticmethod
    def _delete_dependents(conn: sqlite3.Connection, owner_uid: str) -> int:
        """Delete every object owned, directly or transitively, by ``owner_uid``."""
        pending = [owner_uid]
        deleted = 0
        while pending:
            uid = pending.pop()
            rows = conn.execute(
                "SELECT uid, owner_uids_json FROM objects WHERE owner_uids_json LIKE ?",
                (f'%"{uid}"%',),
            ).fetchall()
            for dependent_uid, owners_json in rows:
                if uid not in json.loads(owners_json):
                    continue
                conn.execute("DELETE FROM objects WHERE uid = ?", (dependent_uid,))
                pending.append(dependent_uid)
                deleted += 1
        return deleted
