"""Tests for workload discriminator resolution and materialization."""

from __future__ import annotations

import pytest

from defrev.core.workload import (
    WorkloadDefinitionMaterializer,
    WorkloadMaterializer,
    build_capability,
    resolve_workload_kind,
)
from defrev.errors import DiscoveryError, MaterializationError
from defrev.models.cluster import (
    CustomResourceDefinition,
    CustomResourceDefinitionSpec,
    CustomResourceNames,
    CustomResourceVersion,
)
from defrev.models.definitions import (
    HelmSchematic,
    KubeSchematic,
    Schematic,
    TerraformSchematic,
    WorkloadGVK,
    WorkloadTypeDescriptor,
)
from defrev.models.meta import ObjectMeta
from defrev.models.workload import (
    CueWorkload,
    HelmWorkload,
    KubeWorkload,
    ReferenceWorkload,
    TerraformWorkload,
    WorkloadDefinition,
    WorkloadKind,
)

HELM = HelmSchematic(release={"chart": {"spec": {"chart": "podinfo"}}})
KUBE = KubeSchematic(template={"kind": "Deployment"})
TERRAFORM = TerraformSchematic(configuration='variable "bucket" {}')


def _crd(group: str = "example.dev", kind: str = "Widget", plural: str = "widgets"):
    return CustomResourceDefinition(
        metadata=ObjectMeta(name=f"{plural}.{group}", namespace=""),
        spec=CustomResourceDefinitionSpec(
            group=group,
            names=CustomResourceNames(kind=kind, plural=plural),
            versions=[CustomResourceVersion(name="v1")],
        ),
    )


class TestResolveWorkloadKind:
    def test_cue_default(self, make_definition):
        assert resolve_workload_kind(make_definition()) is WorkloadKind.CUE

    def test_no_schematic_no_type(self, make_definition):
        assert resolve_workload_kind(make_definition(schematic=None)) is WorkloadKind.CUE

    def test_reference_by_type(self, make_definition):
        definition = make_definition(workload=WorkloadTypeDescriptor(type="deployments.apps"))
        assert resolve_workload_kind(definition) is WorkloadKind.REFERENCE

    @pytest.mark.parametrize(
        ("schematic", "expected"),
        [
            (Schematic(helm=HELM), WorkloadKind.HELM),
            (Schematic(kube=KUBE), WorkloadKind.KUBE),
            (Schematic(terraform=TERRAFORM), WorkloadKind.TERRAFORM),
            (Schematic(helm=HELM, kube=KUBE), WorkloadKind.KUBE),
            (Schematic(helm=HELM, kube=KUBE, terraform=TERRAFORM), WorkloadKind.TERRAFORM),
        ],
    )
    def test_schematic_precedence(self, make_definition, schematic, expected):
        assert resolve_workload_kind(make_definition(schematic=schematic)) is expected

    def test_schematic_beats_workload_type(self, make_definition):
        definition = make_definition(
            workload=WorkloadTypeDescriptor(type="deployments.apps"),
            schematic=Schematic(helm=HELM),
        )
        assert resolve_workload_kind(definition) is WorkloadKind.HELM

    def test_workload_type_beats_cue_schematic(self, make_definition):
        definition = make_definition(workload=WorkloadTypeDescriptor(type="deployments.apps"))
        assert definition.spec.schematic.cue is not None
        assert resolve_workload_kind(definition) is WorkloadKind.REFERENCE


class TestBuildCapability:
    @pytest.mark.parametrize(
        ("kind", "schematic", "variant"),
        [
            (WorkloadKind.CUE, None, CueWorkload),
            (WorkloadKind.HELM, Schematic(helm=HELM), HelmWorkload),
            (WorkloadKind.KUBE, Schematic(kube=KUBE), KubeWorkload),
            (WorkloadKind.TERRAFORM, Schematic(terraform=TERRAFORM), TerraformWorkload),
        ],
    )
    def test_exactly_one_variant(self, make_definition, kind, schematic, variant):
        capability = build_capability(make_definition(schematic=schematic), kind)
        assert isinstance(capability.workload, variant)
        assert capability.workload_kind is kind
        assert capability.name == "d1"

    def test_reference_variant(self, make_definition):
        definition = make_definition(workload=WorkloadTypeDescriptor(type="webservice"))
        capability = build_capability(definition, WorkloadKind.REFERENCE)
        assert isinstance(capability.workload, ReferenceWorkload)
        assert capability.workload.workload_def_name == "webservice"

    def test_missing_schematic_for_kind(self, make_definition):
        with pytest.raises(MaterializationError, match="helm"):
            build_capability(make_definition(), WorkloadKind.HELM)


class TestWorkloadDefinitionMaterializer:
    def test_satisfies_protocol(self, client, mapper):
        assert isinstance(WorkloadDefinitionMaterializer(client, mapper), WorkloadMaterializer)

    def test_creates_owned_workload_definition(self, client, mapper, create_definition):
        definition = create_definition()
        kind = WorkloadDefinitionMaterializer(client, mapper).materialize(definition)
        assert kind is WorkloadKind.CUE
        stored = client.inner.get(WorkloadDefinition, "default", "d1")
        assert stored.spec.reference.name == "deployments.apps"
        assert stored.spec.reference.version == "v1"
        assert stored.metadata.owner_references[0].uid == definition.metadata.uid

    def test_reference_writes_nothing(self, client, mapper, create_definition):
        definition = create_definition(workload=WorkloadTypeDescriptor(type="webservice"))
        kind = WorkloadDefinitionMaterializer(client, mapper).materialize(definition)
        assert kind is WorkloadKind.REFERENCE
        assert client.writes == []

    def test_idempotent(self, client, mapper, create_definition):
        definition = create_definition()
        materializer = WorkloadDefinitionMaterializer(client, mapper)
        materializer.materialize(definition)
        materializer.materialize(definition)
        assert client.writes == [("create", "WorkloadDefinition", "d1")]

    def test_updates_on_change(self, client, mapper, create_definition):
        definition = create_definition()
        materializer = WorkloadDefinitionMaterializer(client, mapper)
        materializer.materialize(definition)
        changed = definition.model_copy(deep=True)
        changed.spec.pod_spec_path = "spec.template.spec"
        materializer.materialize(changed)
        stored = client.inner.get(WorkloadDefinition, "default", "d1")
        assert stored.spec.pod_spec_path == "spec.template.spec"

    def test_custom_type_resolved_after_refresh(self, client, store, mapper, create_definition):
        store.create(_crd())
        definition = create_definition(
            workload=WorkloadTypeDescriptor(
                definition=WorkloadGVK(api_version="example.dev/v1", kind="Widget")
            )
        )
        WorkloadDefinitionMaterializer(client, mapper).materialize(definition)
        stored = client.inner.get(WorkloadDefinition, "default", "d1")
        assert stored.spec.reference.name == "widgets.example.dev"

    def test_unknown_custom_type(self, client, mapper, create_definition):
        definition = create_definition(
            workload=WorkloadTypeDescriptor(
                definition=WorkloadGVK(api_version="example.dev/v1", kind="Missing")
            )
        )
        with pytest.raises(DiscoveryError):
            WorkloadDefinitionMaterializer(client, mapper).materialize(definition)
