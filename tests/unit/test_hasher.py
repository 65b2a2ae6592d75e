"""Tests for canonical hashing and revision hashes."""

from __future__ import annotations

from defrev.core.hasher import (
    REVISION_HASH_LENGTH,
    canonical_json_bytes,
    compute_revision_hash,
    sha256_hex,
)
from defrev.models.definitions import (
    ComponentDefinitionSpec,
    CueSchematic,
    Schematic,
    WorkloadTypeDescriptor,
)


class TestCanonicalJson:
    def test_sorted_and_compact(self):
        assert canonical_json_bytes({"b": 1, "a": [1, 2]}) == b'{"a":[1,2],"b":1}'

    def test_key_order_irrelevant(self):
        assert canonical_json_bytes({"x": 1, "y": 2}) == canonical_json_bytes({"y": 2, "x": 1})

    def test_non_ascii_escaped(self):
        assert canonical_json_bytes({"k": "\u00e9"}) == b'{"k":"\\u00e9"}'

    def test_sha256_hex(self):
        assert len(sha256_hex(b"")) == 64


class TestRevisionHash:
    def _spec(self, template: str) -> ComponentDefinitionSpec:
        return ComponentDefinitionSpec(schematic=Schematic(cue=CueSchematic(template=template)))

    def test_length(self):
        assert len(compute_revision_hash(self._spec("a"))) == REVISION_HASH_LENGTH

    def test_deterministic(self):
        assert compute_revision_hash(self._spec("a")) == compute_revision_hash(self._spec("a"))

    def test_changes_with_spec(self):
        assert compute_revision_hash(self._spec("a")) != compute_revision_hash(self._spec("b"))

    def test_unset_optional_fields_do_not_matter(self):
        explicit = ComponentDefinitionSpec(
            workload=WorkloadTypeDescriptor(type="webservice"), status=None, extension=None
        )
        implicit = ComponentDefinitionSpec(workload=WorkloadTypeDescriptor(type="webservice"))
        assert compute_revision_hash(explicit) == compute_revision_hash(implicit)
