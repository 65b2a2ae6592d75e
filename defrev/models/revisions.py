"""DefinitionRevision — immutable numbered snapshot of a definition's spec."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from pydantic import BaseModel

from defrev.models.definitions import ComponentDefinition
from defrev.models.meta import WIRE_CONFIG, Resource

# Back-reference label carried by every revision, used to list by owner.
LABEL_COMPONENT_DEFINITION_NAME = "componentdefinition.oam.dev/name"


class DefinitionType(str, Enum):
    COMPONENT = "Component"


class DefinitionRevisionSpec(BaseModel):
    """Spec-bearing fields; never rewritten once the revision is created."""

    model_config = WIRE_CONFIG

    revision: int
    revision_hash: str
    definition_type: DefinitionType = DefinitionType.COMPONENT
    component_definition: ComponentDefinition


class DefinitionRevision(Resource):
    KIND: ClassVar[str] = "DefinitionRevision"

    spec: DefinitionRevisionSpec


def revision_name(definition_name: str, revision: int) -> str:
    """Name of the ``revision``-th revision of a definition: ``<name>-v<n>``."""
    return f"{definition_name}-v{revision}"
