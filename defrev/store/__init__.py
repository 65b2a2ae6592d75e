"""Resource client protocol and the bundled SQLite object store.

Every client implements ``ResourceClient``: typed get/create/update/
update_status/list/delete against a namespaced store that assigns a
resource version on every write and rejects stale writes with
``ConflictError``.
"""

from __future__ import annotations

from typing import Protocol, TypeVar, runtime_checkable

from defrev.models.meta import Resource
from defrev.store.sqlite_store import SQLiteObjectStore

T = TypeVar("T", bound=Resource)


@runtime_checkable
class ResourceClient(Protocol):
    """Protocol every object store client must implement.

    ``update`` never writes ``status`` and ``update_status`` never writes
    anything else, so spec edits and status writes do not clobber each
    other.  Deleting an owner cascades to every object whose owner
    references name it.
    """

    def get(self, model: type[T], namespace: str, name: str) -> T:
        """Return the stored object or raise ``NotFoundError``."""
        ...

    def create(self, obj: T) -> T:
        """Persist a new object or raise ``AlreadyExistsError``."""
        ...

    def update(self, obj: T) -> T:
        """Write everything but status; raise ``ConflictError`` on a stale version."""
        ...

    def update_status(self, obj: T) -> T:
        """Write only status; raise ``ConflictError`` on a stale version."""
        ...

    def list(
        self,
        model: type[T],
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[T]:
        """Return objects of a kind whose labels contain ``labels``."""
        ...

    def delete(self, obj: Resource) -> None:
        """Delete an object and, transitively, its dependents."""
        ...


__all__ = ["ResourceClient", "SQLiteObjectStore"]
