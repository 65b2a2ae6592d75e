"""Object metadata shared by every stored kind.

Field names are snake_case in Python and camelCase on the wire, so
manifests written for a Kubernetes-style API load unchanged.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)
FROZEN_WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ObjectKey(BaseModel):
    """Identity of a namespaced object: the unit of work for the dispatcher."""

    model_config = ConfigDict(frozen=True)

    namespace: str = "default"
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class OwnerReference(BaseModel):
    """Links a dependent object to its owner; the store cascades deletes."""

    model_config = FROZEN_WIRE_CONFIG

    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = False
    block_owner_deletion: bool = False


class ObjectMeta(BaseModel):
    """Standard object metadata.

    ``resource_version`` is assigned by the store on every write and
    compared on update; ``generation`` only moves when the spec changes.
    """

    model_config = WIRE_CONFIG

    name: str
    namespace: str = "default"
    uid: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resource_version: str = ""
    generation: int = 0
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    owner_references: list[OwnerReference] = Field(default_factory=list)
    creation_timestamp: datetime | None = None
    deletion_timestamp: datetime | None = None


class Resource(BaseModel):
    """Base for every kind held by the object store."""

    model_config = WIRE_CONFIG

    API_VERSION: ClassVar[str] = "core.oam.dev/v1beta1"
    KIND: ClassVar[str] = ""

    api_version: str = ""
    kind: str = ""
    metadata: ObjectMeta

    def model_post_init(self, __context: object) -> None:
        if not self.api_version:
            self.api_version = self.API_VERSION
        if not self.kind:
            self.kind = self.KIND

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(namespace=self.metadata.namespace, name=self.metadata.name)

    def controller_reference(self) -> OwnerReference:
        """Owner reference naming this object as controller of a dependent."""
        return OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.metadata.name,
            uid=self.metadata.uid,
            controller=True,
            block_owner_deletion=True,
        )


def merge_override_with_dst(src: dict[str, str], dst: dict[str, str]) -> dict[str, str]:
    """Merge two label maps; keys in ``dst`` win on conflict."""
    merged = dict(src)
    merged.update(dst)
    return merged
