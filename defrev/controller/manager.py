"""Controller — drains the work queue with a pool of reconcile workers.

Each worker takes one key at a time, runs a reconcile pass, and decides
what happens to the key next:

- pass raised   → re-queued after the key's rate-limited backoff
- requeue_after → re-queued after that delay, backoff reset
- requeue       → re-queued after the key's rate-limited backoff
- otherwise     → backoff reset, key dropped until it is enqueued again

A resync thread enqueues every ComponentDefinition each
``resync_period`` seconds.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from defrev.controller.queue import RateLimiter, WorkQueue
from defrev.core.reconciler import Reconciler
from defrev.errors import ReconcileError
from defrev.models.definitions import ComponentDefinition
from defrev.models.meta import ObjectKey
from defrev.store import ResourceClient

logger = logging.getLogger(__name__)

_WORKER_POLL_SECONDS = 0.5


class Controller:
    """Runs the ComponentDefinition reconciler against a work queue.

    Parameters
    ----------
    reconciler:
        The reconciler invoked once per delivered key.
    client:
        Object store client used to list definitions on resync.
    workers:
        Number of concurrent reconcile workers.
    queue, rate_limiter:
        Defaults are created when omitted.
    resync_period:
        Seconds between full resyncs; ``<= 0`` disables the resync thread.
    namespace:
        Namespace to resync; ``None`` resyncs every namespace.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        client: ResourceClient,
        *,
        workers: int = 4,
        queue: WorkQueue | None = None,
        rate_limiter: RateLimiter | None = None,
        resync_period: float = 300.0,
        namespace: str | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self._reconciler = reconciler
        self._client = client
        self._workers = workers
        self.queue = queue or WorkQueue()
        self.rate_limiter = rate_limiter or RateLimiter()
        self._resync_period = resync_period
        self._namespace = namespace

        self._stop = threading.Event()
        self._executor: ThreadPoolExecutor | None = None
        self._futures: list[Future[None]] = []
        self._resync_thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Enqueueing
    # ------------------------------------------------------------------

    def enqueue(self, key: ObjectKey) -> None:
        self.queue.add(key)

    def enqueue_all(self) -> int:
        """Enqueue every ComponentDefinition in scope; return how many."""
        definitions = self._client.list(ComponentDefinition, self._namespace)
        for definition in definitions:
            self.queue.add(definition.key)
        logger.debug("Enqueued %d ComponentDefinitions", len(definitions))
        return len(definitions)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_next(self, timeout: float | None = None) -> bool:
        """Reconcile one key from the queue.

        Returns ``False`` when no key became ready within ``timeout``.
        """
        key = self.queue.get(timeout)
        if key is None:
            return False
        try:
            self._handle(key)
        finally:
            self.queue.done(key)
        return True

    def run_once(self) -> int:
        """Reconcile every key that is ready now, each at most once.

        Keys re-queued during the drain, with or without a delay, are
        left in the queue for a later call.  Returns how many passes ran.
        """
        handled: set[ObjectKey] = set()
        deferred: list[ObjectKey] = []
        while True:
            key = self.queue.get(timeout=0)
            if key is None:
                break
            if key in handled:
                deferred.append(key)
                self.queue.done(key)
                continue
            handled.add(key)
            try:
                self._handle(key)
            finally:
                self.queue.done(key)
        for key in deferred:
            self.queue.add(key)
        return len(handled)

    def _handle(self, key: ObjectKey) -> None:
        try:
            result = self._reconciler.reconcile(key)
        except ReconcileError as exc:
            delay = self.rate_limiter.when(key)
            logger.warning(
                "Reconcile of %s failed (%s); retrying in %.3fs", key, exc.reason, delay
            )
            self.queue.add_after(key, delay)
            return
        except Exception:
            delay = self.rate_limiter.when(key)
            logger.exception("Unexpected error reconciling %s; retrying in %.3fs", key, delay)
            self.queue.add_after(key, delay)
            return

        if result.requeue_after > 0:
            self.rate_limiter.forget(key)
            self.queue.add_after(key, result.requeue_after)
        elif result.requeue:
            self.queue.add_after(key, self.rate_limiter.when(key))
        else:
            self.rate_limiter.forget(key)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._executor is not None

    def start(self) -> None:
        if self._executor is not None:
            raise RuntimeError("Controller is already running")
        self._stop.clear()
        self.enqueue_all()
        self._executor = ThreadPoolExecutor(
            max_workers=self._workers, thread_name_prefix="defrev-worker"
        )
        self._futures = [self._executor.submit(self._worker_loop) for _ in range(self._workers)]
        if self._resync_period > 0:
            self._resync_thread = threading.Thread(
                target=self._resync_loop, name="defrev-resync", daemon=True
            )
            self._resync_thread.start()
        logger.info("Controller started with %d workers", self._workers)

    def stop(self) -> None:
        if self._executor is None:
            return
        self._stop.set()
        self.queue.shutdown()
        self._executor.shutdown(wait=True)
        for future in self._futures:
            exc = future.exception()
            if exc is not None:
                logger.error("Worker exited with %r", exc)
        if self._resync_thread is not None:
            self._resync_thread.join()
        self._executor = None
        self._futures = []
        self._resync_thread = None
        logger.info("Controller stopped")

    def wait(self) -> None:
        """Block until ``stop`` is called from another thread."""
        self._stop.wait()

    def __enter__(self) -> Controller:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            self.process_next(timeout=_WORKER_POLL_SECONDS)

    def _resync_loop(self) -> None:
        while not self._stop.wait(self._resync_period):
            try:
                self.enqueue_all()
            except Exception:
                logger.exception("Resync failed")
