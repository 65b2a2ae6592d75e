"""Controller runtime — wires the reconciler's collaborators from config.

The runtime owns the object store, the schema blob store, discovery, and
the event recorder, and builds the ``Reconciler`` and ``Controller`` on
top of them.  The CLI and long-running deployments both start here.
"""

from __future__ import annotations

import logging

from defrev.config import ControllerConfig
from defrev.controller.manager import Controller
from defrev.controller.queue import RateLimiter, WorkQueue
from defrev.core.blob_store import ContentAddressedStore
from defrev.core.discovery import DiscoveryMapper, PackageDiscoverer
from defrev.core.reconciler import Reconciler
from defrev.core.retry import Backoff
from defrev.core.revision_generator import DefinitionRevisionGenerator
from defrev.core.schema_store import ConfigMapSchemaStore
from defrev.core.status import StatusUpdater
from defrev.core.workload import WorkloadDefinitionMaterializer
from defrev.events.recorder import EventRecorder
from defrev.events.sinks import LogSink, StoreSink
from defrev.store import ResourceClient, SQLiteObjectStore

logger = logging.getLogger(__name__)

CONTROLLER_NAME = "ComponentDefinition"


def status_backoff(config: ControllerConfig) -> Backoff:
    return Backoff(
        steps=config.status_retry_steps,
        duration=config.status_retry_duration,
        factor=config.status_retry_factor,
        jitter=config.status_retry_jitter,
    )


class ControllerRuntime:
    """Everything needed to reconcile ComponentDefinitions.

    Parameters
    ----------
    config:
        Controller configuration. Uses defaults if not provided.
    client:
        Object store client. A ``SQLiteObjectStore`` at
        ``config.store_path`` is opened if not provided.
    recorder:
        Event recorder. One writing to the log and the store is built if
        not provided.
    """

    def __init__(
        self,
        config: ControllerConfig | None = None,
        *,
        client: ResourceClient | None = None,
        recorder: EventRecorder | None = None,
    ) -> None:
        self.config = config or ControllerConfig()

        self.client: ResourceClient = client or SQLiteObjectStore(self.config.store_path)
        self.blobs = ContentAddressedStore(self.config.schema_store_path)
        self.mapper = DiscoveryMapper(self.client)
        self.discoverer = PackageDiscoverer(self.mapper)
        self.schema_store = ConfigMapSchemaStore(self.client, self.blobs, self.discoverer)

        if recorder is None:
            recorder = EventRecorder(sinks=[LogSink(), StoreSink(self.client)])
        self.recorder = recorder.with_annotations(controller=CONTROLLER_NAME)

        self.reconciler = Reconciler(
            self.client,
            discovery=self.discoverer,
            generator=DefinitionRevisionGenerator(self.client),
            materializer=WorkloadDefinitionMaterializer(self.client, self.mapper),
            schema_store=self.schema_store,
            recorder=self.recorder,
            def_revision_limit=self.config.def_revision_limit,
            status_updater=StatusUpdater(self.client, status_backoff(self.config)),
        )
        logger.debug(
            "Runtime ready: store=%s schemas=%s limit=%d",
            self.config.store_path,
            self.config.schema_store_path,
            self.config.def_revision_limit,
        )

    def controller(self, *, all_namespaces: bool = False) -> Controller:
        """Build a controller over this runtime's reconciler."""
        return Controller(
            self.reconciler,
            self.client,
            workers=self.config.concurrent_reconciles,
            queue=WorkQueue(),
            rate_limiter=RateLimiter(
                self.config.requeue_base_delay, self.config.requeue_max_delay
            ),
            resync_period=self.config.resync_period_seconds,
            namespace=None if all_namespaces else self.config.namespace,
        )
