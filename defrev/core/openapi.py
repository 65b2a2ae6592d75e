"""Parameter schema extraction for each workload variant.

Every variant is turned into a JSON schema object describing the
parameters a user sets when instantiating the component:

- CUE: the fields of the top-level ``parameter: { ... }`` block
- Helm: the shape of the release's default values
- Kube: the declared parameters
- Terraform: the ``variable`` blocks of an HCL configuration
- Reference: the discovered OpenAPI schema of the referenced type
"""

from __future__ import annotations

import re
from typing import Any

from defrev.core.discovery import PackageDiscoverer
from defrev.errors import SchemaStoreError
from defrev.models.definitions import CueSchematic, KubeSchematic, TerraformSchematic
from defrev.models.workload import (
    CapabilityDefinition,
    CueWorkload,
    HelmWorkload,
    KubeWorkload,
    ReferenceWorkload,
    TerraformWorkload,
)

_CUE_TYPES = {
    "string": "string",
    "int": "integer",
    "float": "number",
    "number": "number",
    "bool": "boolean",
}

_CUE_FIELD = re.compile(r"^\s*([A-Za-z_][\w-]*|\"[^\"]+\")(\?)?\s*:\s*(.+?)\s*$")
_TF_VARIABLE = re.compile(r'variable\s+"([^"]+)"\s*\{', re.MULTILINE)
_TF_ATTR = re.compile(r"^\s*(type|default|description)\s*=\s*(.+?)\s*$", re.MULTILINE)


def generate_schema(
    capability: CapabilityDefinition, discoverer: PackageDiscoverer | None = None
) -> dict[str, Any]:
    """Return the parameter JSON schema for a capability."""
    workload = capability.workload
    if isinstance(workload, CueWorkload):
        return cue_schema(workload.cue)
    if isinstance(workload, HelmWorkload):
        return values_schema(workload.helm.release.get("values", {}))
    if isinstance(workload, KubeWorkload):
        return kube_schema(workload.kube)
    if isinstance(workload, TerraformWorkload):
        return terraform_schema(workload.terraform)
    if isinstance(workload, ReferenceWorkload):
        gvk = capability.definition.spec.workload.definition
        if discoverer is not None and not gvk.is_empty:
            discovered = discoverer.schema_for(gvk) or discoverer.mapper.openapi_schema(gvk)
            if discovered:
                return dict(discovered)
        return {"type": "object"}
    raise SchemaStoreError(f"unsupported workload variant {type(workload).__name__}")


# ---------------------------------------------------------------------------
# CUE
# ---------------------------------------------------------------------------


def _parameter_block(template: str) -> list[str]:
    """Lines of the top-level ``parameter`` struct, excluding its braces."""
    match = re.search(r"^parameter\s*:\s*\{", template, re.MULTILINE)
    if match is None:
        return []
    depth = 1
    body_start = match.end()
    for index in range(body_start, len(template)):
        char = template[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return template[body_start:index].splitlines()
    raise SchemaStoreError("unbalanced braces in parameter block")


def _cue_property(expression: str) -> dict[str, Any]:
    expression = expression.split("//", 1)[0].strip().rstrip(",")
    prop: dict[str, Any] = {}
    alternatives = [part.strip() for part in expression.split("|")]
    for alternative in alternatives:
        if alternative.startswith("*"):
            literal = alternative[1:].strip()
            prop["default"] = _cue_literal(literal)
            if "type" not in prop:
                prop["type"] = _literal_type(prop["default"])
        elif alternative in _CUE_TYPES:
            prop["type"] = _CUE_TYPES[alternative]
        elif alternative.startswith("["):
            prop["type"] = "array"
        elif alternative.startswith("{"):
            prop["type"] = "object"
        elif alternative.startswith('"'):
            prop.setdefault("enum", []).append(alternative.strip('"'))
            prop.setdefault("type", "string")
    return prop or {"type": "string"}


def _cue_literal(literal: str) -> Any:
    if literal.startswith('"') and literal.endswith('"'):
        return literal[1:-1]
    if literal in ("true", "false"):
        return literal == "true"
    try:
        return int(literal)
    except ValueError:
        pass
    try:
        return float(literal)
    except ValueError:
        return literal


def _literal_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    return "string"


def cue_schema(cue: CueSchematic) -> dict[str, Any]:
    """Schema of the top-level fields of a CUE template's ``parameter`` block.

    Nested structs are reported as ``object`` without descending into them.
    """
    properties: dict[str, Any] = {}
    required: list[str] = []
    depth = 0
    for line in _parameter_block(cue.template):
        stripped = line.strip()
        if depth == 0 and stripped and not stripped.startswith("//"):
            match = _CUE_FIELD.match(line)
            if match is not None:
                name = match.group(1).strip('"')
                properties[name] = _cue_property(match.group(3))
                if match.group(2) is None and "default" not in properties[name]:
                    required.append(name)
        depth += line.count("{") - line.count("}")
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


# ---------------------------------------------------------------------------
# Helm
# ---------------------------------------------------------------------------


def values_schema(values: Any) -> dict[str, Any]:
    """Infer a schema from a Helm values document, with values as defaults."""
    if isinstance(values, dict):
        return {
            "type": "object",
            "properties": {key: values_schema(val) for key, val in values.items()},
        }
    if isinstance(values, list):
        items = values_schema(values[0]) if values else {}
        return {"type": "array", "items": items, "default": values}
    if values is None:
        return {}
    return {"type": _literal_type(values), "default": values}


# ---------------------------------------------------------------------------
# Kube
# ---------------------------------------------------------------------------


def kube_schema(kube: KubeSchematic) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    required: list[str] = []
    for parameter in kube.parameters:
        prop: dict[str, Any] = {"type": parameter.value_type}
        if parameter.description:
            prop["description"] = parameter.description
        properties[parameter.name] = prop
        if parameter.required:
            required.append(parameter.name)
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


# ---------------------------------------------------------------------------
# Terraform
# ---------------------------------------------------------------------------


def _tf_type(expression: str) -> str:
    base = expression.split("(", 1)[0].strip()
    return {
        "string": "string",
        "number": "number",
        "bool": "boolean",
        "list": "array",
        "set": "array",
        "tuple": "array",
        "map": "object",
        "object": "object",
    }.get(base, "string")


def terraform_schema(terraform: TerraformSchematic) -> dict[str, Any]:
    """Schema of the ``variable`` blocks in an HCL configuration."""
    if terraform.type != "hcl":
        return {"type": "object"}
    config = terraform.configuration
    properties: dict[str, Any] = {}
    required: list[str] = []
    for match in _TF_VARIABLE.finditer(config):
        name = match.group(1)
        end = config.find("\n}", match.end())
        body = config[match.end(): end if end != -1 else len(config)]
        prop: dict[str, Any] = {"type": "string"}
        has_default = False
        for attr in _TF_ATTR.finditer(body):
            key, value = attr.group(1), attr.group(2)
            if key == "type":
                prop["type"] = _tf_type(value)
            elif key == "description":
                prop["description"] = value.strip('"')
            elif key == "default":
                has_default = True
                prop["default"] = _cue_literal(value)
        properties[name] = prop
        if not has_default:
            required.append(name)
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema
