"""Tests for RevisionUpserter — create, then metadata-only refresh."""

from __future__ import annotations

from defrev.core.revision_generator import DefinitionRevisionGenerator
from defrev.core.revisions import RevisionUpserter
from defrev.models.definitions import ComponentDefinition
from defrev.models.revisions import LABEL_COMPONENT_DEFINITION_NAME, DefinitionRevision


class TestRevisionUpserter:
    def test_creates_with_links(self, client, create_definition):
        definition = create_definition()
        revision, _ = DefinitionRevisionGenerator(client).generate(definition)
        created = RevisionUpserter(client).upsert("default", definition, revision)

        assert created.metadata.labels == {
            "team": "platform",
            LABEL_COMPONENT_DEFINITION_NAME: "d1",
        }
        [owner] = created.metadata.owner_references
        assert owner.uid == definition.metadata.uid
        assert owner.controller is True
        assert owner.block_owner_deletion is True

    def test_back_reference_label_wins(self, client, store, make_definition):
        definition = make_definition()
        definition.metadata.labels[LABEL_COMPONENT_DEFINITION_NAME] = "spoofed"
        definition = store.create(definition)
        revision, _ = DefinitionRevisionGenerator(client).generate(definition)
        created = RevisionUpserter(client).upsert("default", definition, revision)
        assert created.metadata.labels[LABEL_COMPONENT_DEFINITION_NAME] == "d1"

    def test_refresh_only_touches_metadata(self, client, store, create_definition):
        definition = create_definition()
        revision, _ = DefinitionRevisionGenerator(client).generate(definition)
        upserter = RevisionUpserter(client)
        first = upserter.upsert("default", definition, revision)

        definition = store.get(ComponentDefinition, "default", "d1")
        definition.metadata.annotations = {"owner": "alice"}
        definition.metadata.labels["team"] = "apps"
        definition = store.update(definition)

        tampered = revision.model_copy(deep=True)
        tampered.spec.revision = 99
        refreshed = upserter.upsert("default", definition, tampered)

        assert refreshed.metadata.annotations == {"owner": "alice"}
        assert refreshed.metadata.labels["team"] == "apps"
        assert refreshed.spec.revision == first.spec.revision
        assert store.get(DefinitionRevision, "default", "d1-v1").spec == first.spec

    def test_idempotent(self, client, create_definition):
        definition = create_definition()
        revision, _ = DefinitionRevisionGenerator(client).generate(definition)
        upserter = RevisionUpserter(client)
        upserter.upsert("default", definition, revision)
        upserter.upsert("default", definition, revision)
        assert len(client.inner.list(DefinitionRevision)) == 1
        assert client.writes_of("create", "DefinitionRevision") == ["d1-v1"]
