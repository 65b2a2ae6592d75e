"""Workload materialization — from a definition to its workload artifact.

The discriminator is resolved with one precedence rule, used everywhere:
a schematic variant wins over ``spec.workload.type``, and among schematic
variants terraform > kube > helm.  A CUE schematic (or no schematic) with
a workload type is a reference; without one it is a CUE workload.
"""

from __future__ import annotations

import logging
from typing import Protocol, TypeVar, assert_never, runtime_checkable

from defrev.core.discovery import DiscoveryMapper
from defrev.errors import DiscoveryError, MaterializationError, NotFoundError
from defrev.models.definitions import ComponentDefinition, CueSchematic
from defrev.models.meta import ObjectMeta
from defrev.models.workload import (
    CapabilityDefinition,
    CueWorkload,
    DefinitionReference,
    HelmWorkload,
    KubeWorkload,
    ReferenceWorkload,
    TerraformWorkload,
    WorkloadDefinition,
    WorkloadDefinitionSpec,
    WorkloadKind,
)
from defrev.store import ResourceClient

logger = logging.getLogger(__name__)

S = TypeVar("S")


def resolve_workload_kind(definition: ComponentDefinition) -> WorkloadKind:
    """Compute the workload discriminator of a definition."""
    schematic = definition.spec.schematic
    if schematic is not None:
        if schematic.terraform is not None:
            return WorkloadKind.TERRAFORM
        if schematic.kube is not None:
            return WorkloadKind.KUBE
        if schematic.helm is not None:
            return WorkloadKind.HELM
    if definition.spec.workload.type:
        return WorkloadKind.REFERENCE
    return WorkloadKind.CUE


def _require(value: S | None, kind: WorkloadKind, name: str) -> S:
    if value is None:
        raise MaterializationError(f"workload kind {kind.value} requires a {name} schematic")
    return value


def build_capability(definition: ComponentDefinition, kind: WorkloadKind) -> CapabilityDefinition:
    """Populate the single artifact variant selected by ``kind``."""
    spec = definition.spec
    schematic = spec.schematic
    name = definition.metadata.name

    if kind is WorkloadKind.REFERENCE:
        workload = ReferenceWorkload(workload_def_name=spec.workload.type)
    elif kind is WorkloadKind.CUE:
        cue = schematic.cue if schematic is not None and schematic.cue is not None else CueSchematic()
        workload = CueWorkload(cue=cue)
    elif kind is WorkloadKind.HELM:
        workload = HelmWorkload(helm=_require(schematic and schematic.helm, kind, "helm"))
    elif kind is WorkloadKind.KUBE:
        workload = KubeWorkload(kube=_require(schematic and schematic.kube, kind, "kube"))
    elif kind is WorkloadKind.TERRAFORM:
        workload = TerraformWorkload(
            terraform=_require(schematic and schematic.terraform, kind, "terraform")
        )
    else:
        assert_never(kind)

    return CapabilityDefinition(name=name, definition=definition, workload=workload)


@runtime_checkable
class WorkloadMaterializer(Protocol):
    def materialize(self, definition: ComponentDefinition) -> WorkloadKind:
        """Ensure the workload descriptor exists; return the discriminator."""
        ...


class WorkloadDefinitionMaterializer:
    """Converts a definition into a WorkloadDefinition it owns.

    Reference definitions point at a WorkloadDefinition somebody else
    owns, so nothing is written for them.

    Parameters
    ----------
    client:
        Object store client.
    mapper:
        Discovery mapper used to resolve the workload's custom type.
    """

    def __init__(self, client: ResourceClient, mapper: DiscoveryMapper) -> None:
        self._client = client
        self._mapper = mapper

    def materialize(self, definition: ComponentDefinition) -> WorkloadKind:
        kind = resolve_workload_kind(definition)
        if kind is WorkloadKind.REFERENCE:
            return kind

        desired = self._desired(definition)
        meta = definition.metadata
        try:
            existing = self._client.get(WorkloadDefinition, meta.namespace, meta.name)
        except NotFoundError:
            self._client.create(desired)
            logger.info("Created converted WorkloadDefinition %s", desired.key)
            return kind

        if (
            existing.spec.model_dump(mode="json") != desired.spec.model_dump(mode="json")
            or existing.metadata.owner_references != desired.metadata.owner_references
        ):
            existing.spec = desired.spec
            existing.metadata.owner_references = desired.metadata.owner_references
            self._client.update(existing)
            logger.info("Updated converted WorkloadDefinition %s", existing.key)
        return kind

    def _desired(self, definition: ComponentDefinition) -> WorkloadDefinition:
        spec = definition.spec
        return WorkloadDefinition(
            metadata=ObjectMeta(
                name=definition.metadata.name,
                namespace=definition.metadata.namespace,
                owner_references=[definition.controller_reference()],
            ),
            spec=WorkloadDefinitionSpec(
                reference=self._reference(definition),
                child_resource_kinds=list(spec.child_resource_kinds),
                revision_label=spec.revision_label,
                pod_spec_path=spec.pod_spec_path,
                status=spec.status,
                extension=spec.extension,
            ),
        )

    def _reference(self, definition: ComponentDefinition) -> DefinitionReference:
        gvk = definition.spec.workload.definition
        if gvk.is_empty:
            return DefinitionReference()
        try:
            gvr = self._mapper.resource_for(gvk)
        except DiscoveryError:
            self._mapper.refresh()
            gvr = self._mapper.resource_for(gvk)
        return DefinitionReference(name=gvr.name, version=gvr.version)
