"""Schema store — persists each capability's parameter schema.

The serialized schema lives in the content-addressed blob store.  Two
ConfigMaps index it: ``schema-<definition>`` always points at the latest
published schema, ``schema-<revision>`` pins the schema of one revision.
Writing the same revision twice stores identical bytes and leaves both
ConfigMaps unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from defrev.core.blob_store import BlobIntegrityError, ContentAddressedStore
from defrev.core.discovery import PackageDiscoverer
from defrev.core.openapi import generate_schema
from defrev.errors import NotFoundError, SchemaStoreError
from defrev.models.cluster import CAPABILITY_CONFIGMAP_PREFIX, SCHEMA_ADDRESS_KEY, ConfigMap
from defrev.models.definitions import ComponentDefinition
from defrev.models.meta import ObjectMeta
from defrev.models.revisions import LABEL_COMPONENT_DEFINITION_NAME
from defrev.models.workload import CapabilityDefinition
from defrev.store import ResourceClient

logger = logging.getLogger(__name__)

LABEL_DEFINITION_REVISION_NAME = "definitionrevision.oam.dev/name"


@runtime_checkable
class SchemaStore(Protocol):
    def store(self, capability: CapabilityDefinition, revision_name: str) -> str:
        """Persist the capability's schema for ``revision_name``; return its address."""
        ...


def schema_configmap_name(name: str) -> str:
    return f"{CAPABILITY_CONFIGMAP_PREFIX}{name}"


class ConfigMapSchemaStore:
    """Schema blobs in a ``ContentAddressedStore``, indexed by ConfigMaps.

    Parameters
    ----------
    client:
        Object store client for the index ConfigMaps.
    blobs:
        Blob store holding the serialized schemas.
    discoverer:
        Package discoverer supplying schemas of referenced custom types.
    """

    def __init__(
        self,
        client: ResourceClient,
        blobs: ContentAddressedStore,
        discoverer: PackageDiscoverer | None = None,
    ) -> None:
        self._client = client
        self._blobs = blobs
        self._discoverer = discoverer

    def store(self, capability: CapabilityDefinition, revision_name: str) -> str:
        schema = generate_schema(capability, self._discoverer)
        address = self._blobs.put_json(schema)
        definition = capability.definition
        self._upsert_index(
            definition, schema_configmap_name(definition.metadata.name), address, {}
        )
        self._upsert_index(
            definition,
            schema_configmap_name(revision_name),
            address,
            {LABEL_DEFINITION_REVISION_NAME: revision_name},
        )
        logger.info(
            "Stored schema of %s (revision %s) at %s",
            capability.name, revision_name, address,
        )
        return address

    def load(self, namespace: str, name: str) -> dict[str, Any]:
        """Return the schema indexed under a definition or revision name."""
        configmap = self._client.get(ConfigMap, namespace, schema_configmap_name(name))
        address = configmap.data.get(SCHEMA_ADDRESS_KEY)
        if not address:
            raise SchemaStoreError(f"ConfigMap {configmap.key} has no {SCHEMA_ADDRESS_KEY}")
        try:
            return self._blobs.get_json(address)
        except (FileNotFoundError, BlobIntegrityError) as exc:
            raise SchemaStoreError(
                f"schema blob {address} of {name} is missing or corrupted: {exc}"
            ) from exc

    def _upsert_index(
        self,
        definition: ComponentDefinition,
        configmap_name: str,
        address: str,
        extra_labels: dict[str, str],
    ) -> None:
        meta = definition.metadata
        labels = {LABEL_COMPONENT_DEFINITION_NAME: meta.name, **extra_labels}
        data = {SCHEMA_ADDRESS_KEY: address}
        try:
            existing = self._client.get(ConfigMap, meta.namespace, configmap_name)
        except NotFoundError:
            self._client.create(
                ConfigMap(
                    metadata=ObjectMeta(
                        name=configmap_name,
                        namespace=meta.namespace,
                        labels=labels,
                        owner_references=[definition.controller_reference()],
                    ),
                    data=data,
                )
            )
            return
        if existing.data == data and existing.metadata.labels == labels:
            return
        existing.data = data
        existing.metadata.labels = labels
        self._client.update(existing)
