"""Manifest loading for ``defrev apply``.

A manifest file holds one or more YAML (or JSON) documents; each must be
a ComponentDefinition or a CustomResourceDefinition.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from defrev.core.discovery import CLUSTER_SCOPE
from defrev.models.cluster import CustomResourceDefinition
from defrev.models.definitions import ComponentDefinition
from defrev.models.meta import Resource

MANIFEST_KINDS: dict[str, type[Resource]] = {
    ComponentDefinition.KIND: ComponentDefinition,
    CustomResourceDefinition.KIND: CustomResourceDefinition,
}


class ManifestError(ValueError):
    """A manifest document cannot be turned into a stored object."""


def parse_document(doc: Any, namespace: str) -> Resource:
    if not isinstance(doc, dict):
        raise ManifestError(f"expected a mapping, got {type(doc).__name__}")
    kind = doc.get("kind")
    model = MANIFEST_KINDS.get(kind or "")
    if model is None:
        supported = ", ".join(sorted(MANIFEST_KINDS))
        raise ManifestError(f"unsupported kind {kind!r} (supported: {supported})")

    metadata = dict(doc.get("metadata") or {})
    if model is CustomResourceDefinition:
        metadata["namespace"] = CLUSTER_SCOPE
    else:
        metadata.setdefault("namespace", namespace)
    # Identity and versioning belong to the store
    for field in ("uid", "resourceVersion", "generation", "creationTimestamp"):
        metadata.pop(field, None)

    try:
        body = {k: v for k, v in doc.items() if k != "status"}
        return model.model_validate({**body, "metadata": metadata})
    except ValidationError as exc:
        name = metadata.get("name", "<unnamed>")
        raise ManifestError(f"invalid {kind} {name}: {exc}") from exc


def load_manifests(path: Path, namespace: str = "default") -> list[Resource]:
    """Parse every non-empty document in ``path``."""
    try:
        with open(path, encoding="utf-8") as fh:
            docs = [doc for doc in yaml.safe_load_all(fh) if doc is not None]
    except yaml.YAMLError as exc:
        raise ManifestError(f"cannot parse {path}: {exc}") from exc
    return [parse_document(doc, namespace) for doc in docs]
