"""Tests for SQLiteObjectStore — versions, conflicts, status split, cascade."""

from __future__ import annotations

import threading

import pytest

from defrev.errors import AlreadyExistsError, ConflictError, NotFoundError
from defrev.models.cluster import ConfigMap
from defrev.models.definitions import ComponentDefinition, Condition, CueSchematic
from defrev.models.meta import ObjectMeta
from defrev.models.revisions import DefinitionRevision
from defrev.store import ResourceClient, SQLiteObjectStore


def _configmap(name: str, owner: ComponentDefinition | None = None, **labels: str) -> ConfigMap:
    return ConfigMap(
        metadata=ObjectMeta(
            name=name,
            labels=labels,
            owner_references=[owner.controller_reference()] if owner else [],
        ),
        data={"k": "v"},
    )


class TestCreateAndGet:
    def test_satisfies_protocol(self, store: SQLiteObjectStore):
        assert isinstance(store, ResourceClient)

    def test_create_assigns_version_and_generation(self, store, make_definition):
        created = store.create(make_definition())
        assert created.metadata.resource_version != ""
        assert created.metadata.generation == 1
        assert created.metadata.creation_timestamp is not None

    def test_get_round_trips(self, store, make_definition):
        created = store.create(make_definition())
        fetched = store.get(ComponentDefinition, "default", "d1")
        assert fetched.metadata.uid == created.metadata.uid
        assert fetched.spec == created.spec

    def test_get_missing(self, store):
        with pytest.raises(NotFoundError) as info:
            store.get(ComponentDefinition, "default", "nope")
        assert info.value.name == "nope"

    def test_create_duplicate(self, store, make_definition):
        store.create(make_definition())
        with pytest.raises(AlreadyExistsError):
            store.create(make_definition())

    def test_kinds_are_separate(self, store, make_definition):
        store.create(make_definition(name="same"))
        store.create(_configmap("same"))
        assert store.get(ConfigMap, "default", "same").data == {"k": "v"}


class TestUpdate:
    def test_version_moves_on_every_write(self, store, make_definition):
        created = store.create(make_definition())
        updated = store.update(created)
        assert int(updated.metadata.resource_version) > int(created.metadata.resource_version)

    def test_stale_version_conflicts(self, store, make_definition):
        created = store.create(make_definition())
        store.update(created.model_copy(deep=True))
        with pytest.raises(ConflictError):
            store.update(created)

    def test_empty_version_is_unconditional(self, store, make_definition):
        created = store.create(make_definition())
        store.update(created.model_copy(deep=True))
        created.metadata.resource_version = ""
        store.update(created)

    def test_generation_only_moves_on_spec_change(self, store, make_definition, template):
        created = store.create(make_definition())
        relabeled = created.model_copy(deep=True)
        relabeled.metadata.labels["extra"] = "1"
        relabeled = store.update(relabeled)
        assert relabeled.metadata.generation == 1

        relabeled.spec.schematic.cue = CueSchematic(template=template("v2"))
        edited = store.update(relabeled)
        assert edited.metadata.generation == 2

    def test_update_never_writes_status(self, store, make_definition):
        created = store.create(make_definition())
        created.status.set_conditions(Condition.reconcile_success())
        store.update(created)
        assert store.get(ComponentDefinition, "default", "d1").status.conditions == []

    def test_update_status_only_writes_status(self, store, make_definition, template):
        created = store.create(make_definition())
        created.spec.schematic.cue = CueSchematic(template=template("ignored"))
        created.status.set_conditions(Condition.reconcile_success())
        store.update_status(created)
        stored = store.get(ComponentDefinition, "default", "d1")
        assert len(stored.status.conditions) == 1
        assert "ignored" not in stored.spec.schematic.cue.template

    def test_update_missing(self, store, make_definition):
        with pytest.raises(NotFoundError):
            store.update(make_definition())


class TestList:
    def test_label_selector_is_subset_match(self, store):
        store.create(_configmap("a", app="x", tier="web"))
        store.create(_configmap("b", app="x"))
        store.create(_configmap("c", app="y"))
        names = [c.metadata.name for c in store.list(ConfigMap, "default", {"app": "x"})]
        assert names == ["a", "b"]

    def test_namespace_filter(self, store):
        store.create(_configmap("a"))
        other = _configmap("b")
        other.metadata.namespace = "other"
        store.create(other)
        assert len(store.list(ConfigMap, "default")) == 1
        assert len(store.list(ConfigMap)) == 2


class TestDelete:
    def test_delete_missing(self, store):
        with pytest.raises(NotFoundError):
            store.delete(_configmap("ghost"))

    def test_cascade_to_dependents(self, store, make_definition):
        owner = store.create(make_definition())
        store.create(_configmap("owned", owner=owner))
        store.create(_configmap("unrelated"))
        store.delete(owner)
        assert [c.metadata.name for c in store.list(ConfigMap)] == ["unrelated"]

    def test_cascade_is_transitive(self, store, make_definition):
        owner = store.create(make_definition())
        child = store.create(_configmap("child", owner=owner))
        grandchild = ConfigMap(
            metadata=ObjectMeta(name="grandchild", owner_references=[child.controller_reference()])
        )
        store.create(grandchild)
        store.delete(owner)
        assert store.list(ConfigMap) == []
        assert store.list(DefinitionRevision) == []


class TestConcurrency:
    def test_only_one_concurrent_writer_wins(self, store, make_definition):
        created = store.create(make_definition())
        results: list[str] = []
        lock = threading.Lock()

        def _write() -> None:
            copy = created.model_copy(deep=True)
            copy.metadata.labels["writer"] = threading.current_thread().name
            try:
                store.update(copy)
                outcome = "ok"
            except ConflictError:
                outcome = "conflict"
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=_write) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count("ok") == 1
        assert results.count("conflict") == 7
