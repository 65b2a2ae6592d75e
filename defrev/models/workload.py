"""Workload artifacts derived from a ComponentDefinition.

``WorkloadDefinition`` is the converted descriptor persisted in the store.
``Capability`` is the closed variant selected by the definition's
discriminator; exactly one variant is built per materialization.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, Field

from defrev.models.definitions import (
    ChildResourceKind,
    ComponentDefinition,
    CueSchematic,
    HelmSchematic,
    KubeSchematic,
    TerraformSchematic,
)
from defrev.models.meta import FROZEN_WIRE_CONFIG, WIRE_CONFIG, Resource


class WorkloadKind(str, Enum):
    """Discriminator computed once per pass from the definition."""

    REFERENCE = "ReferWorkload"
    CUE = "ComponentDef"
    HELM = "HelmDef"
    KUBE = "KubeDef"
    TERRAFORM = "TerraformDef"


class DefinitionReference(BaseModel):
    """Resource name (``<plural>.<group>``) and version of a custom type."""

    model_config = FROZEN_WIRE_CONFIG

    name: str = ""
    version: str = ""


class WorkloadDefinitionSpec(BaseModel):
    model_config = WIRE_CONFIG

    reference: DefinitionReference = Field(default_factory=DefinitionReference)
    child_resource_kinds: list[ChildResourceKind] = Field(default_factory=list)
    revision_label: str = ""
    pod_spec_path: str = ""
    status: dict[str, Any] | None = None
    extension: dict[str, Any] | None = None


class WorkloadDefinition(Resource):
    KIND: ClassVar[str] = "WorkloadDefinition"

    spec: WorkloadDefinitionSpec = Field(default_factory=WorkloadDefinitionSpec)


# ---------------------------------------------------------------------------
# Capability variants
# ---------------------------------------------------------------------------


class ReferenceWorkload(BaseModel):
    model_config = FROZEN_WIRE_CONFIG

    kind: Literal[WorkloadKind.REFERENCE] = WorkloadKind.REFERENCE
    workload_def_name: str


class CueWorkload(BaseModel):
    model_config = FROZEN_WIRE_CONFIG

    kind: Literal[WorkloadKind.CUE] = WorkloadKind.CUE
    cue: CueSchematic = Field(default_factory=CueSchematic)


class HelmWorkload(BaseModel):
    model_config = FROZEN_WIRE_CONFIG

    kind: Literal[WorkloadKind.HELM] = WorkloadKind.HELM
    helm: HelmSchematic


class KubeWorkload(BaseModel):
    model_config = FROZEN_WIRE_CONFIG

    kind: Literal[WorkloadKind.KUBE] = WorkloadKind.KUBE
    kube: KubeSchematic


class TerraformWorkload(BaseModel):
    model_config = FROZEN_WIRE_CONFIG

    kind: Literal[WorkloadKind.TERRAFORM] = WorkloadKind.TERRAFORM
    terraform: TerraformSchematic


Capability = Annotated[
    Union[ReferenceWorkload, CueWorkload, HelmWorkload, KubeWorkload, TerraformWorkload],
    Field(discriminator="kind"),
]


class CapabilityDefinition(BaseModel):
    """A definition paired with the single workload variant it materialized to."""

    model_config = FROZEN_WIRE_CONFIG

    name: str
    definition: ComponentDefinition
    workload: Capability

    @property
    def workload_kind(self) -> WorkloadKind:
        return self.workload.kind
