"""Error kinds shared by the store, the collaborators and the reconciler.

Store errors (``NotFoundError``, ``ConflictError``, ``AlreadyExistsError``)
are raised by every ``ResourceClient``.  Collaborator failures are wrapped
into a ``ReconcileError`` whose message follows one of the templates
below, so the status condition and the recorded event read the same.
"""

from __future__ import annotations


# ---------------------------------------------------------------------------
# Object store
# ---------------------------------------------------------------------------


class StoreError(RuntimeError):
    """Base class for object store failures."""


class NotFoundError(StoreError):
    """Raised when the requested object does not exist."""

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f'{kind} "{namespace}/{name}" not found')


class AlreadyExistsError(StoreError):
    """Raised by ``create`` when an object with the same key exists."""

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f'{kind} "{namespace}/{name}" already exists')


class ConflictError(StoreError):
    """Raised when a write carries a stale resource version."""

    def __init__(self, kind: str, namespace: str, name: str, expected: str, actual: str) -> None:
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f'Operation cannot be fulfilled on {kind} "{namespace}/{name}": '
            f"the object has been modified (resource version {expected!r}, "
            f"stored {actual!r}); please apply your changes to the latest version"
        )


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class CollaboratorError(RuntimeError):
    """Raised by a collaborator (discovery, generator, materializer, schema store)."""


class DiscoveryError(CollaboratorError):
    """Raised when a referenced custom type cannot be discovered."""


class MaterializationError(CollaboratorError):
    """Raised when the workload descriptor cannot be derived."""


class SchemaStoreError(CollaboratorError):
    """Raised when a schema cannot be generated or persisted."""


class RetryExhaustedError(CollaboratorError):
    """Raised when a retried operation keeps conflicting past its budget."""


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


class ReconcileError(RuntimeError):
    """Raised by a failed pass; the dispatcher requeues the key."""

    def __init__(self, message: str, *, reason: str = "ReconcileError") -> None:
        self.reason = reason
        super().__init__(message)


class GarbageCollectionError(RuntimeError):
    """Raised when some stale revisions could not be deleted.

    Never fails a pass; the reconciler logs and records it.
    """

    def __init__(self, message: str, failed: list[str] | None = None) -> None:
        self.failed = failed or []
        super().__init__(message)


ERR_REFRESH_PACKAGE_DISCOVER = "cannot discover the open api of the CRD : {err}"
ERR_GENERATE_DEFINITION_REVISION = "cannot generate DefinitionRevision of {name}: {err}"
ERR_CREATE_OR_UPDATE_DEFINITION_REVISION = "cannot create or update DefinitionRevision {name}: {err}"
ERR_CREATE_CONVERTED_WORKLOAD_DEFINITION = "cannot create converted WorkloadDefinition {name}: {err}"
ERR_STORE_CAPABILITY_SCHEMA = "cannot store capability {name} schema: {err}"
ERR_UPDATE_COMPONENT_DEFINITION = "cannot update ComponentDefinition {name}: {err}"
