"""Supporting kinds: custom type registrations, schema config maps, events."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, Field

from defrev.models.meta import FROZEN_WIRE_CONFIG, WIRE_CONFIG, ObjectMeta, Resource

# ConfigMap key holding the content address of the stored schema blob
SCHEMA_ADDRESS_KEY = "content-address"
CAPABILITY_CONFIGMAP_PREFIX = "schema-"


class CustomResourceNames(BaseModel):
    model_config = WIRE_CONFIG

    kind: str
    plural: str


class CustomResourceVersion(BaseModel):
    model_config = WIRE_CONFIG

    name: str
    served: bool = True
    schema_: dict[str, Any] = Field(default_factory=dict, alias="schema")


class CustomResourceDefinitionSpec(BaseModel):
    model_config = WIRE_CONFIG

    group: str
    names: CustomResourceNames
    versions: list[CustomResourceVersion] = Field(default_factory=list)


class CustomResourceDefinition(Resource):
    """Registration of a custom type; cluster scoped (empty namespace)."""

    API_VERSION: ClassVar[str] = "apiextensions.k8s.io/v1"
    KIND: ClassVar[str] = "CustomResourceDefinition"

    spec: CustomResourceDefinitionSpec


class ConfigMap(Resource):
    API_VERSION: ClassVar[str] = "v1"
    KIND: ClassVar[str] = "ConfigMap"

    data: dict[str, str] = Field(default_factory=dict)


class EventType(str, Enum):
    NORMAL = "Normal"
    WARNING = "Warning"


class ObjectReference(BaseModel):
    model_config = FROZEN_WIRE_CONFIG

    api_version: str
    kind: str
    namespace: str
    name: str
    uid: str = ""


class Event(Resource):
    """A recorded observation about an object, for operators."""

    API_VERSION: ClassVar[str] = "v1"
    KIND: ClassVar[str] = "Event"

    involved_object: ObjectReference
    type: EventType
    reason: str
    message: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    count: int = 1

    @classmethod
    def for_object(
        cls,
        obj: Resource,
        event_type: EventType,
        reason: str,
        message: str,
        annotations: dict[str, str] | None = None,
    ) -> Event:
        return cls(
            metadata=ObjectMeta(
                name=f"{obj.metadata.name}.{uuid.uuid4().hex[:10]}",
                namespace=obj.metadata.namespace,
                annotations=dict(annotations or {}),
            ),
            involved_object=ObjectReference(
                api_version=obj.api_version,
                kind=obj.kind,
                namespace=obj.metadata.namespace,
                name=obj.metadata.name,
                uid=obj.metadata.uid,
            ),
            type=event_type,
            reason=reason,
            message=message,
        )
