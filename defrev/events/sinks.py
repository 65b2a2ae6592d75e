"""Built-in event sinks: logging, the object store, and an in-memory buffer."""

from __future__ import annotations

import logging
import threading

from defrev.core.hasher import sha256_hex
from defrev.errors import AlreadyExistsError, NotFoundError
from defrev.models.cluster import Event, EventType
from defrev.store import ResourceClient

logger = logging.getLogger(__name__)


class LogSink:
    """Writes events to a logger; warnings at WARNING level, the rest at INFO."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    @property
    def sink_name(self) -> str:
        return "log"

    def accept(self, event: Event) -> None:
        level = logging.WARNING if event.type is EventType.WARNING else logging.INFO
        self._logger.log(
            level,
            "%s %s/%s: %s: %s",
            event.involved_object.kind,
            event.involved_object.namespace,
            event.involved_object.name,
            event.reason,
            event.message,
        )


def aggregate_name(event: Event) -> str:
    """Stable name shared by every event with the same object, type and reason."""
    ref = event.involved_object
    identity = "\x00".join((ref.kind, ref.name, ref.uid, event.type.value, event.reason))
    return f"{ref.name}.{sha256_hex(identity.encode())[:10]}"


class StoreSink:
    """Persists events as ``Event`` objects next to the object they describe.

    Repeats of the same reason for the same object update one stored
    event, bumping its ``count`` and keeping the latest message, instead
    of adding a new one each time.
    """

    def __init__(self, client: ResourceClient) -> None:
        self._client = client
        self._lock = threading.Lock()

    @property
    def sink_name(self) -> str:
        return "store"

    def accept(self, event: Event) -> None:
        namespace = event.metadata.namespace
        name = aggregate_name(event)
        with self._lock:
            try:
                existing = self._client.get(Event, namespace, name)
            except NotFoundError:
                fresh = event.model_copy(deep=True)
                fresh.metadata.name = name
                try:
                    self._client.create(fresh)
                    return
                except AlreadyExistsError:
                    existing = self._client.get(Event, namespace, name)

            existing.count += 1
            existing.message = event.message
            existing.timestamp = event.timestamp
            existing.metadata.annotations = dict(event.metadata.annotations)
            self._client.update(existing)


class MemorySink:
    """Keeps events in memory; used by tests and the CLI summary."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[Event] = []

    @property
    def sink_name(self) -> str:
        return "memory"

    def accept(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[Event]:
        with self._lock:
            return list(self._events)

    def warnings(self) -> list[Event]:
        return [e for e in self.events if e.type is EventType.WARNING]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
