"""Shared test fixtures for defrev."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from defrev.core.blob_store import ContentAddressedStore
from defrev.core.discovery import DiscoveryMapper, PackageDiscoverer
from defrev.core.reconciler import Reconciler
from defrev.core.revision_generator import DefinitionRevisionGenerator
from defrev.core.schema_store import ConfigMapSchemaStore
from defrev.core.status import StatusUpdater
from defrev.core.workload import WorkloadDefinitionMaterializer
from defrev.errors import ConflictError
from defrev.events.recorder import EventRecorder
from defrev.events.sinks import MemorySink
from defrev.models.definitions import (
    ComponentDefinition,
    ComponentDefinitionSpec,
    CueSchematic,
    Schematic,
    WorkloadGVK,
    WorkloadTypeDescriptor,
)
from defrev.models.meta import ObjectMeta, Resource
from defrev.models.revisions import LABEL_COMPONENT_DEFINITION_NAME, DefinitionRevision
from defrev.store import SQLiteObjectStore

CUE_TEMPLATE = """\
output: {
	apiVersion: "apps/v1"
	kind:       "Deployment"
	spec: containers: [{image: parameter.image}]
}
parameter: {
	image: string
	port:  *80 | int
}
"""


def cue_template(revision_marker: str = "") -> str:
    """A CUE template; distinct markers give distinct specs."""
    if not revision_marker:
        return CUE_TEMPLATE
    return CUE_TEMPLATE + f"// {revision_marker}\n"


def no_sleep(_: float) -> None:
    return None


class RecordingClient:
    """Delegates to a real store, recording writes and injecting failures.

    ``conflict(op, kind, times)`` makes the next ``times`` calls of ``op``
    on ``kind`` raise ``ConflictError``; ``fail(op, kind, exc)`` makes
    every call raise ``exc`` until ``heal`` is called.
    """

    def __init__(self, inner: SQLiteObjectStore) -> None:
        self.inner = inner
        self.writes: list[tuple[str, str, str]] = []
        self.calls: list[tuple[str, str]] = []
        self._conflicts: dict[tuple[str, str], int] = {}
        self._failures: dict[tuple[str, str], Exception] = {}

    def conflict(self, op: str, kind: str, times: int) -> None:
        self._conflicts[(op, kind)] = times

    def fail(self, op: str, kind: str, exc: Exception) -> None:
        self._failures[(op, kind)] = exc

    def heal(self) -> None:
        self._conflicts.clear()
        self._failures.clear()

    def writes_of(self, op: str, kind: str) -> list[str]:
        return [name for o, k, name in self.writes if o == op and k == kind]

    def _intercept(self, op: str, kind: str, namespace: str = "", name: str = "") -> None:
        self.calls.append((op, kind))
        failure = self._failures.get((op, kind))
        if failure is not None:
            raise failure
        remaining = self._conflicts.get((op, kind), 0)
        if remaining > 0:
            self._conflicts[(op, kind)] = remaining - 1
            raise ConflictError(kind, namespace, name, "stale", "fresh")

    def get(self, model: type[Any], namespace: str, name: str) -> Any:
        self._intercept("get", model.KIND, namespace, name)
        return self.inner.get(model, namespace, name)

    def list(
        self,
        model: type[Any],
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> list[Any]:
        self._intercept("list", model.KIND)
        return self.inner.list(model, namespace, labels)

    def create(self, obj: Any) -> Any:
        self._intercept("create", obj.kind, obj.metadata.namespace, obj.metadata.name)
        self.writes.append(("create", obj.kind, obj.metadata.name))
        return self.inner.create(obj)

    def update(self, obj: Any) -> Any:
        self._intercept("update", obj.kind, obj.metadata.namespace, obj.metadata.name)
        self.writes.append(("update", obj.kind, obj.metadata.name))
        return self.inner.update(obj)

    def update_status(self, obj: Any) -> Any:
        self._intercept("update_status", obj.kind, obj.metadata.namespace, obj.metadata.name)
        self.writes.append(("update_status", obj.kind, obj.metadata.name))
        return self.inner.update_status(obj)

    def delete(self, obj: Resource) -> None:
        self._intercept("delete", obj.kind, obj.metadata.namespace, obj.metadata.name)
        self.writes.append(("delete", obj.kind, obj.metadata.name))
        self.inner.delete(obj)


# ---------------------------------------------------------------------------
# Stores and collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def store(tmp_dir: Path) -> SQLiteObjectStore:
    """Provide a fresh SQLiteObjectStore backed by a temp database."""
    return SQLiteObjectStore(tmp_dir / "objects.db")


@pytest.fixture
def client(store: SQLiteObjectStore) -> RecordingClient:
    """Provide a recording client over the temp store."""
    return RecordingClient(store)


@pytest.fixture
def blobs(tmp_dir: Path) -> ContentAddressedStore:
    """Provide a fresh ContentAddressedStore in a temp directory."""
    return ContentAddressedStore(tmp_dir / "schemas")


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def recorder(memory_sink: MemorySink) -> EventRecorder:
    return EventRecorder([memory_sink], annotations={"controller": "ComponentDefinition"})


@pytest.fixture
def mapper(client: RecordingClient) -> DiscoveryMapper:
    return DiscoveryMapper(client)


@pytest.fixture
def discoverer(mapper: DiscoveryMapper) -> PackageDiscoverer:
    return PackageDiscoverer(mapper)


@pytest.fixture
def schema_store(
    client: RecordingClient, blobs: ContentAddressedStore, discoverer: PackageDiscoverer
) -> ConfigMapSchemaStore:
    return ConfigMapSchemaStore(client, blobs, discoverer)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_definition() -> Callable[..., ComponentDefinition]:
    """Factory fixture: build an unsaved CUE ComponentDefinition."""

    def _factory(
        name: str = "d1",
        namespace: str = "default",
        template: str | None = None,
        **spec_overrides: Any,
    ) -> ComponentDefinition:
        spec: dict[str, Any] = {
            "workload": WorkloadTypeDescriptor(
                definition=WorkloadGVK(api_version="apps/v1", kind="Deployment")
            ),
            "schematic": Schematic(cue=CueSchematic(template=template or CUE_TEMPLATE)),
        }
        spec.update(spec_overrides)
        return ComponentDefinition(
            metadata=ObjectMeta(name=name, namespace=namespace, labels={"team": "platform"}),
            spec=ComponentDefinitionSpec(**spec),
        )

    return _factory


@pytest.fixture
def create_definition(
    store: SQLiteObjectStore, make_definition: Callable[..., ComponentDefinition]
) -> Callable[..., ComponentDefinition]:
    """Factory fixture: build a definition and persist it."""

    def _factory(*args: Any, **kwargs: Any) -> ComponentDefinition:
        return store.create(make_definition(*args, **kwargs))

    return _factory


@pytest.fixture
def edit_spec(store: SQLiteObjectStore) -> Callable[..., ComponentDefinition]:
    """Replace a stored definition's CUE template, as a user edit would."""

    def _edit(name: str, template: str, namespace: str = "default") -> ComponentDefinition:
        current = store.get(ComponentDefinition, namespace, name)
        assert current.spec.schematic is not None
        current.spec.schematic.cue = CueSchematic(template=template)
        return store.update(current)

    return _edit


@pytest.fixture
def list_revisions(store: SQLiteObjectStore) -> Callable[..., list[DefinitionRevision]]:
    def _list(name: str = "d1", namespace: str = "default") -> list[DefinitionRevision]:
        revisions = store.list(
            DefinitionRevision, namespace, labels={LABEL_COMPONENT_DEFINITION_NAME: name}
        )
        return sorted(revisions, key=lambda r: r.spec.revision)

    return _list


@pytest.fixture
def make_reconciler(
    client: RecordingClient,
    discoverer: PackageDiscoverer,
    mapper: DiscoveryMapper,
    schema_store: ConfigMapSchemaStore,
    recorder: EventRecorder,
) -> Callable[..., Reconciler]:
    """Factory fixture: a reconciler wired to the temp store; any collaborator can be swapped."""

    def _factory(**overrides: Any) -> Reconciler:
        kwargs: dict[str, Any] = {
            "discovery": discoverer,
            "generator": DefinitionRevisionGenerator(client),
            "materializer": WorkloadDefinitionMaterializer(client, mapper),
            "schema_store": schema_store,
            "recorder": recorder,
            "def_revision_limit": 50,
            "status_updater": StatusUpdater(client, sleep=no_sleep),
        }
        kwargs.update(overrides)
        return Reconciler(client, **kwargs)

    return _factory


@pytest.fixture
def reconciler(make_reconciler: Callable[..., Reconciler]) -> Reconciler:
    """Convenience: a reconciler with default collaborators."""
    return make_reconciler()


@pytest.fixture
def template() -> Callable[[str], str]:
    """CUE template factory; ``template("v2")`` differs from ``template("v1")``."""
    return cue_template
