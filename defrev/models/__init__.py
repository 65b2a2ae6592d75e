"""defrev data models — all Pydantic v2; value types are frozen."""

from defrev.models.cluster import (
    ConfigMap,
    CustomResourceDefinition,
    Event,
    EventType,
    ObjectReference,
)
from defrev.models.definitions import (
    ComponentDefinition,
    ComponentDefinitionSpec,
    ComponentDefinitionStatus,
    Condition,
    CueSchematic,
    HelmSchematic,
    KubeParameter,
    KubeSchematic,
    Revision,
    Schematic,
    TerraformSchematic,
    WorkloadGVK,
    WorkloadTypeDescriptor,
)
from defrev.models.meta import ObjectKey, ObjectMeta, OwnerReference, Resource
from defrev.models.revisions import (
    LABEL_COMPONENT_DEFINITION_NAME,
    DefinitionRevision,
    DefinitionRevisionSpec,
    revision_name,
)
from defrev.models.workload import (
    Capability,
    CapabilityDefinition,
    CueWorkload,
    DefinitionReference,
    HelmWorkload,
    KubeWorkload,
    ReferenceWorkload,
    TerraformWorkload,
    WorkloadDefinition,
    WorkloadKind,
)

__all__ = [
    # meta
    "ObjectKey",
    "ObjectMeta",
    "OwnerReference",
    "Resource",
    # definitions
    "ComponentDefinition",
    "ComponentDefinitionSpec",
    "ComponentDefinitionStatus",
    "Condition",
    "CueSchematic",
    "HelmSchematic",
    "KubeParameter",
    "KubeSchematic",
    "Revision",
    "Schematic",
    "TerraformSchematic",
    "WorkloadGVK",
    "WorkloadTypeDescriptor",
    # revisions
    "LABEL_COMPONENT_DEFINITION_NAME",
    "DefinitionRevision",
    "DefinitionRevisionSpec",
    "revision_name",
    # workload
    "Capability",
    "CapabilityDefinition",
    "CueWorkload",
    "DefinitionReference",
    "HelmWorkload",
    "KubeWorkload",
    "ReferenceWorkload",
    "TerraformWorkload",
    "WorkloadDefinition",
    "WorkloadKind",
    # cluster
    "ConfigMap",
    "CustomResourceDefinition",
    "Event",
    "EventType",
    "ObjectReference",
]
