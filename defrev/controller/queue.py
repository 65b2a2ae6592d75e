"""Work queue for reconciliation keys.

Guarantees:
- A key waiting in the queue is held once, however often it is added.
- A key handed to a worker is not handed out again until ``done``; if it
  was re-added meanwhile, ``done`` puts it back in the queue.
- ``add_after`` delays a key without blocking the caller.
"""

from __future__ import annotations

import collections
import heapq
import itertools
import logging
import threading
import time
from collections.abc import Callable

from defrev.models.meta import ObjectKey

logger = logging.getLogger(__name__)


class WorkQueue:
    """Deduplicating FIFO of keys with in-flight tracking and delayed adds.

    Parameters
    ----------
    clock:
        Monotonic clock (injectable for tests).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: collections.deque[ObjectKey] = collections.deque()
        self._dirty: set[ObjectKey] = set()
        self._processing: set[ObjectKey] = set()
        self._delayed: list[tuple[float, int, ObjectKey]] = []
        self._seq = itertools.count()
        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def add(self, key: ObjectKey) -> None:
        with self._cond:
            self._add_locked(key)

    def add_after(self, key: ObjectKey, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            heapq.heappush(self._delayed, (self._clock() + delay, next(self._seq), key))
            self._cond.notify()

    def get(self, timeout: float | None = None) -> ObjectKey | None:
        """Block until a key is ready; ``None`` on timeout or shutdown."""
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                self._promote_due_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._dirty.discard(key)
                    self._processing.add(key)
                    return key
                if self._shutting_down:
                    return None
                wait = self._next_wait_locked(deadline)
                if wait is not None and wait <= 0:
                    return None
                self._cond.wait(wait)

    def done(self, key: ObjectKey) -> None:
        """Mark a key finished; re-queue it if it was added while in flight."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def pending_delayed(self) -> int:
        with self._cond:
            return len(self._delayed)

    def shutdown(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    # ------------------------------------------------------------------
    # Internal helpers (call with the condition held)
    # ------------------------------------------------------------------

    def _add_locked(self, key: ObjectKey) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def _promote_due_locked(self) -> None:
        now = self._clock()
        while self._delayed and self._delayed[0][0] <= now:
            _, _, key = heapq.heappop(self._delayed)
            self._add_locked(key)

    def _next_wait_locked(self, deadline: float | None) -> float | None:
        now = self._clock()
        waits = []
        if deadline is not None:
            waits.append(deadline - now)
        if self._delayed:
            waits.append(max(self._delayed[0][0] - now, 0.0))
        return min(waits) if waits else None


class RateLimiter:
    """Per-key exponential backoff for failed passes.

    ``when(key)`` returns ``base_delay * 2**failures`` capped at
    ``max_delay`` and counts the failure; ``forget(key)`` resets it.
    """

    def __init__(self, base_delay: float = 0.005, max_delay: float = 1000.0) -> None:
        self._base = base_delay
        self._max = max_delay
        self._lock = threading.Lock()
        self._failures: dict[ObjectKey, int] = {}

    def when(self, key: ObjectKey) -> float:
        with self._lock:
            failures = self._failures.get(key, 0)
            self._failures[key] = failures + 1
        try:
            delay = self._base * (2 ** failures)
        except OverflowError:
            return self._max
        return min(delay, self._max)

    def num_requeues(self, key: ObjectKey) -> int:
        with self._lock:
            return self._failures.get(key, 0)

    def forget(self, key: ObjectKey) -> None:
        with self._lock:
            self._failures.pop(key, None)
