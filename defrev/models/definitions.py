"""ComponentDefinition — the user-authored object the controller reconciles."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, Field

from defrev.models.meta import FROZEN_WIRE_CONFIG, WIRE_CONFIG, Resource

CONDITION_READY = "Ready"
REASON_RECONCILE_SUCCESS = "ReconcileSuccess"
REASON_RECONCILE_ERROR = "ReconcileError"


class WorkloadGVK(BaseModel):
    """API version and kind of the custom type a definition points at."""

    model_config = FROZEN_WIRE_CONFIG

    api_version: str = ""
    kind: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.api_version and not self.kind

    @property
    def group(self) -> str:
        return self.api_version.rpartition("/")[0]

    @property
    def version(self) -> str:
        return self.api_version.rpartition("/")[2]


class WorkloadTypeDescriptor(BaseModel):
    """Either a reference to an existing WorkloadDefinition or a custom type."""

    model_config = WIRE_CONFIG

    type: str = ""
    definition: WorkloadGVK = Field(default_factory=WorkloadGVK)


class CueSchematic(BaseModel):
    model_config = WIRE_CONFIG

    template: str = ""


class HelmSchematic(BaseModel):
    """Helm release and repository, passed through to the chart controller."""

    model_config = WIRE_CONFIG

    release: dict[str, Any] = Field(default_factory=dict)
    repository: dict[str, Any] = Field(default_factory=dict)


class KubeParameter(BaseModel):
    """One user-facing parameter of a raw-manifest schematic."""

    model_config = WIRE_CONFIG

    name: str
    value_type: Literal["string", "number", "boolean"] = "string"
    field_paths: list[str] = Field(default_factory=list)
    required: bool = False
    description: str = ""


class KubeSchematic(BaseModel):
    model_config = WIRE_CONFIG

    template: dict[str, Any] = Field(default_factory=dict)
    parameters: list[KubeParameter] = Field(default_factory=list)


class TerraformSchematic(BaseModel):
    model_config = WIRE_CONFIG

    configuration: str = ""
    type: Literal["hcl", "json", "remote"] = "hcl"


class Schematic(BaseModel):
    """Closed set of schematic variants; see ``resolve_workload_kind`` for precedence."""

    model_config = WIRE_CONFIG

    cue: CueSchematic | None = None
    helm: HelmSchematic | None = None
    kube: KubeSchematic | None = None
    terraform: TerraformSchematic | None = None


class ChildResourceKind(BaseModel):
    model_config = WIRE_CONFIG

    api_version: str
    kind: str
    selector: dict[str, str] = Field(default_factory=dict)


class ComponentDefinitionSpec(BaseModel):
    model_config = WIRE_CONFIG

    workload: WorkloadTypeDescriptor = Field(default_factory=WorkloadTypeDescriptor)
    schematic: Schematic | None = None
    child_resource_kinds: list[ChildResourceKind] = Field(default_factory=list)
    revision_label: str = ""
    pod_spec_path: str = ""
    status: dict[str, Any] | None = None
    extension: dict[str, Any] | None = None


class Condition(BaseModel):
    """A typed observation about the definition, keyed by ``type``."""

    model_config = FROZEN_WIRE_CONFIG

    type: str
    status: Literal["True", "False", "Unknown"]
    reason: str
    message: str = ""
    last_transition_time: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def reconcile_success(cls) -> Condition:
        return cls(type=CONDITION_READY, status="True", reason=REASON_RECONCILE_SUCCESS)

    @classmethod
    def reconcile_error(cls, err: BaseException | str) -> Condition:
        return cls(
            type=CONDITION_READY,
            status="False",
            reason=REASON_RECONCILE_ERROR,
            message=str(err),
        )

    def equivalent(self, other: Condition) -> bool:
        """Same observation, ignoring the transition time."""
        return (
            self.type == other.type
            and self.status == other.status
            and self.reason == other.reason
            and self.message == other.message
        )


class Revision(BaseModel):
    """Pointer from a definition to one of its DefinitionRevisions."""

    model_config = FROZEN_WIRE_CONFIG

    name: str
    revision: int
    revision_hash: str


class ComponentDefinitionStatus(BaseModel):
    model_config = WIRE_CONFIG

    latest_revision: Revision | None = None
    conditions: list[Condition] = Field(default_factory=list)

    def get_condition(self, condition_type: str) -> Condition | None:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None

    def set_conditions(self, *conditions: Condition) -> None:
        """Replace conditions by type, keeping the transition time of unchanged ones."""
        for new in conditions:
            existing = self.get_condition(new.type)
            if existing is not None and existing.equivalent(new):
                continue
            self.conditions = [c for c in self.conditions if c.type != new.type]
            self.conditions.append(new)


class ComponentDefinition(Resource):
    """A versioned capability definition.

    The controller only ever writes ``status``; ``spec`` belongs to the user.
    """

    KIND: ClassVar[str] = "ComponentDefinition"

    spec: ComponentDefinitionSpec = Field(default_factory=ComponentDefinitionSpec)
    status: ComponentDefinitionStatus = Field(default_factory=ComponentDefinitionStatus)
