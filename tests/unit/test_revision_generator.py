"""Tests for DefinitionRevisionGenerator — hash identity and numbering."""

from __future__ import annotations

from defrev.core.hasher import compute_revision_hash
from defrev.core.revision_generator import DefinitionRevisionGenerator, RevisionGenerator
from defrev.core.revisions import RevisionUpserter
from defrev.models.definitions import ComponentDefinition, CueSchematic, Revision
from defrev.models.revisions import DefinitionType


def _publish(client, definition: ComponentDefinition) -> ComponentDefinition:
    """Generate, store, and publish a revision the way a pass does."""
    revision, _ = DefinitionRevisionGenerator(client).generate(definition)
    RevisionUpserter(client).upsert("default", definition, revision)
    definition.status.latest_revision = Revision(
        name=revision.metadata.name,
        revision=revision.spec.revision,
        revision_hash=revision.spec.revision_hash,
    )
    return client.inner.update_status(definition)


def _edit(definition: ComponentDefinition, template: str) -> ComponentDefinition:
    edited = definition.model_copy(deep=True)
    edited.spec.schematic.cue = CueSchematic(template=template)
    return edited


class TestDefinitionRevisionGenerator:
    def test_satisfies_protocol(self, client):
        assert isinstance(DefinitionRevisionGenerator(client), RevisionGenerator)

    def test_first_revision(self, client, create_definition):
        definition = create_definition()
        revision, is_new = DefinitionRevisionGenerator(client).generate(definition)
        assert is_new is True
        assert revision.metadata.name == "d1-v1"
        assert revision.spec.revision == 1
        assert revision.spec.revision_hash == compute_revision_hash(definition.spec)
        assert revision.spec.definition_type is DefinitionType.COMPONENT

    def test_generator_never_writes(self, client, create_definition):
        DefinitionRevisionGenerator(client).generate(create_definition())
        assert client.writes == []

    def test_snapshot_is_clean(self, client, create_definition):
        definition = create_definition()
        definition.status.latest_revision = Revision(name="x", revision=7, revision_hash="other")
        revision, _ = DefinitionRevisionGenerator(client).generate(definition)
        snapshot = revision.spec.component_definition
        assert snapshot.status.latest_revision is None
        assert snapshot.metadata.resource_version == ""
        assert snapshot.spec == definition.spec

    def test_unchanged_spec_is_not_new(self, client, create_definition):
        definition = _publish(client, create_definition())
        revision, is_new = DefinitionRevisionGenerator(client).generate(definition)
        assert is_new is False
        assert revision.metadata.name == "d1-v1"

    def test_changed_spec_numbers_max_plus_one(self, client, create_definition, template):
        definition = _publish(client, create_definition())
        definition = _publish(client, _edit(definition, template("v2")))
        revision, is_new = DefinitionRevisionGenerator(client).generate(
            _edit(definition, template("v3"))
        )
        assert is_new is True
        assert revision.metadata.name == "d1-v3"

    def test_rollback_reuses_existing_revision(self, client, create_definition, template):
        definition = _publish(client, create_definition(template=template("v1")))
        definition = _publish(client, _edit(definition, template("v2")))
        revision, is_new = DefinitionRevisionGenerator(client).generate(
            _edit(definition, template("v1"))
        )
        assert is_new is True
        assert revision.metadata.name == "d1-v1"
        assert revision.metadata.resource_version != ""

    def test_numbering_survives_collected_history(self, client, create_definition, template):
        definition = create_definition()
        definition.status.latest_revision = Revision(
            name="d1-v7", revision=7, revision_hash="gone"
        )
        revision, _ = DefinitionRevisionGenerator(client).generate(definition)
        assert revision.spec.revision == 8

    def test_missing_published_record_is_regenerated(self, client, create_definition):
        definition = create_definition()
        definition.status.latest_revision = Revision(
            name="d1-v1", revision=1, revision_hash=compute_revision_hash(definition.spec)
        )
        revision, is_new = DefinitionRevisionGenerator(client).generate(definition)
        assert is_new is True
        assert revision.spec.revision == 2
