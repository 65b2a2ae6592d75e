"""ComponentDefinition reconciler — one convergence pass per delivered key.

A pass:
1. Fetch the definition (gone → done; deleting → done).
2. Refresh discovery when the definition names a custom type instead of
   a workload type.
3. Ask the revision generator which revision covers the current spec.
4. Unchanged spec: refresh the revision's metadata, prune history, done.
5. Changed spec: materialize the workload, store the schema, upsert the
   revision, publish it in ``status.latest_revision``, prune history.

Every step is idempotent, so a pass that stopped halfway is completed by
the next delivery of the same key.  Failures are attached to the
definition as a ``Ready=False`` condition, recorded as a warning event,
and raised as ``ReconcileError`` for the dispatcher to retry.
"""

from __future__ import annotations

import logging
from typing import NoReturn

from pydantic import BaseModel, ConfigDict

from defrev.core.discovery import DiscoveryRefresher
from defrev.core.gc import RevisionGarbageCollector
from defrev.core.revision_generator import RevisionGenerator
from defrev.core.revisions import RevisionUpserter
from defrev.core.schema_store import SchemaStore
from defrev.core.status import StatusUpdater
from defrev.core.workload import WorkloadMaterializer, build_capability
from defrev.errors import (
    ERR_CREATE_CONVERTED_WORKLOAD_DEFINITION,
    ERR_CREATE_OR_UPDATE_DEFINITION_REVISION,
    ERR_GENERATE_DEFINITION_REVISION,
    ERR_REFRESH_PACKAGE_DISCOVER,
    ERR_STORE_CAPABILITY_SCHEMA,
    ERR_UPDATE_COMPONENT_DEFINITION,
    GarbageCollectionError,
    NotFoundError,
    ReconcileError,
)
from defrev.events.recorder import Recorder
from defrev.models.definitions import (
    CONDITION_READY,
    ComponentDefinition,
    Condition,
    Revision,
)
from defrev.models.meta import ObjectKey
from defrev.models.revisions import DefinitionRevision
from defrev.store import ResourceClient

logger = logging.getLogger(__name__)


class ReconcileResult(BaseModel):
    """Outcome of a successful pass; ``requeue_after`` is in seconds."""

    model_config = ConfigDict(frozen=True)

    requeue: bool = False
    requeue_after: float = 0.0


class Reconciler:
    """Drives ComponentDefinitions toward their latest published revision.

    Every collaborator is injected; the reconciler keeps no state between
    passes beyond what it writes to the store.

    Parameters
    ----------
    client:
        Object store client.
    discovery:
        Refreshes discovery metadata for referenced custom types.
    generator:
        Maps a definition's spec to a DefinitionRevision.
    materializer:
        Ensures the converted workload descriptor exists.
    schema_store:
        Persists the capability's parameter schema per revision.
    recorder:
        Receives warning events; never fails a pass.
    def_revision_limit:
        Revisions kept per definition; ``<= 0`` keeps all.
    status_updater, upserter, collector:
        Defaults are built on ``client``.
    """

    def __init__(
        self,
        client: ResourceClient,
        *,
        discovery: DiscoveryRefresher,
        generator: RevisionGenerator,
        materializer: WorkloadMaterializer,
        schema_store: SchemaStore,
        recorder: Recorder,
        def_revision_limit: int = 50,
        status_updater: StatusUpdater | None = None,
        upserter: RevisionUpserter | None = None,
        collector: RevisionGarbageCollector | None = None,
    ) -> None:
        self._client = client
        self._discovery = discovery
        self._generator = generator
        self._materializer = materializer
        self._schema_store = schema_store
        self._recorder = recorder
        self._def_revision_limit = def_revision_limit
        self._status = status_updater or StatusUpdater(client)
        self._upserter = upserter or RevisionUpserter(client)
        self._collector = collector or RevisionGarbageCollector(client)

    @property
    def def_revision_limit(self) -> int:
        return self._def_revision_limit

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        """Run one convergence pass for ``key``.

        Raises
        ------
        ReconcileError
            When a step failed; the definition's status carries the reason.
        StoreError
            When the definition itself cannot be read.
        """
        logger.info("Reconcile ComponentDefinition %s", key)
        try:
            definition = self._client.get(ComponentDefinition, key.namespace, key.name)
        except NotFoundError:
            logger.debug("ComponentDefinition %s is gone", key)
            return ReconcileResult()

        # Finalization is not registered; a deleting definition is left alone.
        if definition.metadata.deletion_timestamp is not None:
            return ReconcileResult()

        workload = definition.spec.workload
        if not workload.type:
            try:
                self._discovery.refresh(workload.definition)
            except Exception as exc:  # noqa: BLE001
                self._fail(
                    definition,
                    "cannot discover the open api of the CRD",
                    ERR_REFRESH_PACKAGE_DISCOVER.format(err=exc),
                    exc,
                )

        try:
            revision, is_new = self._generator.generate(definition)
        except Exception as exc:  # noqa: BLE001
            self._fail(
                definition,
                "cannot generate DefinitionRevision",
                ERR_GENERATE_DEFINITION_REVISION.format(name=definition.metadata.name, err=exc),
                exc,
            )

        if not is_new:
            self._upsert_revision(key.namespace, definition, revision)
            logger.info("Refreshed DefinitionRevision %s", revision.key)
            self._clear_stale_error(definition)
            self._collect_revisions(definition)
            return ReconcileResult()

        self._publish(key, definition, revision)
        self._collect_revisions(definition)
        return ReconcileResult()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _publish(
        self, key: ObjectKey, definition: ComponentDefinition, revision: DefinitionRevision
    ) -> None:
        """Materialize artifacts for a new revision and point status at it."""
        name = definition.metadata.name
        try:
            kind = self._materializer.materialize(definition)
            capability = build_capability(definition, kind)
        except Exception as exc:  # noqa: BLE001
            self._fail(
                definition,
                "cannot create converted WorkloadDefinition",
                ERR_CREATE_CONVERTED_WORKLOAD_DEFINITION.format(name=name, err=exc),
                exc,
            )
        logger.info("Materialized %s workload for %s", kind.value, name)

        try:
            self._schema_store.store(capability, revision.metadata.name)
        except Exception as exc:  # noqa: BLE001
            self._fail(
                definition,
                "cannot store capability schema",
                ERR_STORE_CAPABILITY_SCHEMA.format(name=name, err=exc),
                exc,
            )

        self._upsert_revision(key.namespace, definition, revision)
        logger.info("Published DefinitionRevision %s", revision.key)

        definition.status.latest_revision = Revision(
            name=revision.metadata.name,
            revision=revision.spec.revision,
            revision_hash=revision.spec.revision_hash,
        )
        definition.status.set_conditions(Condition.reconcile_success())
        try:
            stored = self._status.update_status(definition)
        except Exception as exc:  # noqa: BLE001
            self._fail(
                definition,
                "cannot update ComponentDefinition status",
                ERR_UPDATE_COMPONENT_DEFINITION.format(name=name, err=exc),
                exc,
            )
        definition.status = stored.status
        definition.metadata.resource_version = stored.metadata.resource_version

    def _upsert_revision(
        self, namespace: str, definition: ComponentDefinition, revision: DefinitionRevision
    ) -> None:
        try:
            self._upserter.upsert(namespace, definition, revision)
        except Exception as exc:  # noqa: BLE001
            self._fail(
                definition,
                "cannot create or update DefinitionRevision",
                ERR_CREATE_OR_UPDATE_DEFINITION_REVISION.format(
                    name=revision.metadata.name, err=exc
                ),
                exc,
            )

    def _clear_stale_error(self, definition: ComponentDefinition) -> None:
        """Mark the definition ready again if an earlier pass left it failed.

        Writes nothing when the condition is already current.
        """
        ready = definition.status.get_condition(CONDITION_READY)
        if ready is None or ready.status == "True":
            return
        try:
            self._status.patch_condition(definition, Condition.reconcile_success())
        except Exception as exc:  # noqa: BLE001
            self._fail(
                definition,
                "cannot update ComponentDefinition status",
                ERR_UPDATE_COMPONENT_DEFINITION.format(name=definition.metadata.name, err=exc),
                exc,
            )

    def _collect_revisions(self, definition: ComponentDefinition) -> None:
        try:
            deleted = self._collector.collect(definition, self._def_revision_limit)
        except GarbageCollectionError as exc:
            logger.error("[Garbage collection] %s", exc)
            self._recorder.warn(
                definition,
                "failed to garbage collect DefinitionRevision of type ComponentDefinition",
                exc,
            )
            return
        if deleted:
            logger.debug("Pruned %s", ", ".join(deleted))

    def _fail(
        self,
        definition: ComponentDefinition,
        reason: str,
        message: str,
        cause: BaseException,
    ) -> NoReturn:
        """Report a failed step on the definition and abort the pass."""
        logger.error("%s: %s", reason, message)
        self._recorder.warn(definition, reason, cause)
        try:
            self._status.patch_condition(definition, Condition.reconcile_error(message))
        except Exception:  # noqa: BLE001
            logger.exception(
                "Cannot record failure condition on ComponentDefinition %s", definition.key
            )
        raise ReconcileError(message, reason=reason) from cause
