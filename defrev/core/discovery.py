"""Discovery of referenced custom types.

``DiscoveryMapper`` resolves an (apiVersion, kind) pair to a resource,
from a table of built-in kinds plus the CustomResourceDefinitions found
in the store.  ``PackageDiscoverer`` keeps the OpenAPI schema of every
type a definition has referenced, for schema generation.

Both are plain instances injected into the reconciler; nothing here is
process-global.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from defrev.errors import DiscoveryError
from defrev.models.cluster import CustomResourceDefinition
from defrev.models.definitions import WorkloadGVK
from defrev.store import ResourceClient

logger = logging.getLogger(__name__)

# Namespace under which cluster-scoped objects are stored
CLUSTER_SCOPE = ""

_BUILTIN_RESOURCES: dict[tuple[str, str], str] = {
    ("v1", "Pod"): "pods",
    ("v1", "Service"): "services",
    ("v1", "ConfigMap"): "configmaps",
    ("v1", "Secret"): "secrets",
    ("apps/v1", "Deployment"): "deployments",
    ("apps/v1", "StatefulSet"): "statefulsets",
    ("apps/v1", "DaemonSet"): "daemonsets",
    ("batch/v1", "Job"): "jobs",
    ("batch/v1", "CronJob"): "cronjobs",
}


class GroupVersionResource(BaseModel):
    model_config = ConfigDict(frozen=True)

    group: str
    version: str
    resource: str

    @property
    def name(self) -> str:
        """``<resource>.<group>``, or just the resource for the core group."""
        return f"{self.resource}.{self.group}" if self.group else self.resource


class DiscoveryMapper:
    """Resolves custom types to resources.

    Parameters
    ----------
    client:
        Object store holding CustomResourceDefinitions (cluster scoped).
    """

    def __init__(self, client: ResourceClient) -> None:
        self._client = client
        self._lock = threading.Lock()
        self._resources: dict[tuple[str, str], GroupVersionResource] = {}
        self._schemas: dict[tuple[str, str], dict[str, Any]] = {}

    def refresh(self) -> None:
        """Reload registered CustomResourceDefinitions from the store."""
        crds = self._client.list(CustomResourceDefinition, CLUSTER_SCOPE)
        resources: dict[tuple[str, str], GroupVersionResource] = {}
        schemas: dict[tuple[str, str], dict[str, Any]] = {}
        for crd in crds:
            spec = crd.spec
            for version in spec.versions:
                if not version.served:
                    continue
                api_version = f"{spec.group}/{version.name}"
                key = (api_version, spec.names.kind)
                resources[key] = GroupVersionResource(
                    group=spec.group, version=version.name, resource=spec.names.plural
                )
                if version.schema_:
                    schemas[key] = version.schema_
        with self._lock:
            self._resources = resources
            self._schemas = schemas
        logger.debug("Discovery refreshed: %d custom resources", len(resources))

    def resource_for(self, gvk: WorkloadGVK) -> GroupVersionResource:
        """Return the resource serving ``gvk``; raise ``DiscoveryError`` if unknown."""
        key = (gvk.api_version, gvk.kind)
        builtin = _BUILTIN_RESOURCES.get(key)
        if builtin is not None:
            return GroupVersionResource(group=gvk.group, version=gvk.version, resource=builtin)
        with self._lock:
            found = self._resources.get(key)
        if found is None:
            raise DiscoveryError(f"no resource registered for {gvk.api_version}, Kind={gvk.kind}")
        return found

    def openapi_schema(self, gvk: WorkloadGVK) -> dict[str, Any] | None:
        with self._lock:
            return self._schemas.get((gvk.api_version, gvk.kind))


@runtime_checkable
class DiscoveryRefresher(Protocol):
    def refresh(self, type_ref: WorkloadGVK) -> None:
        """Make discovery metadata for ``type_ref`` available, or raise."""
        ...


class PackageDiscoverer:
    """Tracks the OpenAPI schema of every referenced custom type.

    Parameters
    ----------
    mapper:
        Discovery mapper used to resolve and describe types.
    """

    def __init__(self, mapper: DiscoveryMapper) -> None:
        self._mapper = mapper
        self._lock = threading.Lock()
        self._packages: dict[tuple[str, str], dict[str, Any]] = {}

    @property
    def mapper(self) -> DiscoveryMapper:
        return self._mapper

    def refresh(self, type_ref: WorkloadGVK) -> None:
        if type_ref.is_empty:
            raise DiscoveryError(
                "workload definition must name apiVersion and kind when workload type is empty"
            )
        if self.exists(type_ref):
            return
        self._mapper.refresh()
        gvr = self._mapper.resource_for(type_ref)
        schema = self._mapper.openapi_schema(type_ref) or {"type": "object"}
        with self._lock:
            self._packages[(type_ref.api_version, type_ref.kind)] = schema
        logger.info("Discovered %s for %s/%s", gvr.name, type_ref.api_version, type_ref.kind)

    def exists(self, type_ref: WorkloadGVK) -> bool:
        with self._lock:
            return (type_ref.api_version, type_ref.kind) in self._packages

    def schema_for(self, type_ref: WorkloadGVK) -> dict[str, Any] | None:
        with self._lock:
            return self._packages.get((type_ref.api_version, type_ref.kind))
