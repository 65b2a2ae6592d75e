"""EventRecorder — fans events out to ALL configured sinks.

Recording is fire-and-forget: a failing sink is logged and skipped, and
the recorder itself never raises into the reconciler.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from defrev.models.cluster import Event, EventType
from defrev.models.meta import Resource

if TYPE_CHECKING:
    from defrev.events import EventSink

logger = logging.getLogger(__name__)


@runtime_checkable
class Recorder(Protocol):
    def warn(self, obj: Resource, reason: str, error: BaseException) -> None: ...

    def info(self, obj: Resource, reason: str, message: str) -> None: ...


class EventRecorder:
    """Records warning and info events about objects.

    Parameters
    ----------
    sinks:
        Initial sinks; more can be registered later.
    annotations:
        Annotations stamped on every event (e.g. the emitting controller).

    Usage
    -----
    >>> recorder = EventRecorder(annotations={"controller": "ComponentDefinition"})
    >>> recorder.register_sink(LogSink())
    >>> recorder.warn(definition, "cannot create DefinitionRevision", exc)
    """

    def __init__(
        self,
        sinks: list[EventSink] | None = None,
        *,
        annotations: dict[str, str] | None = None,
    ) -> None:
        self._sinks: list[EventSink] = []
        self._annotations = dict(annotations or {})
        for sink in sinks or []:
            self.register_sink(sink)

    # ------------------------------------------------------------------
    # Sink management
    # ------------------------------------------------------------------

    def register_sink(self, sink: EventSink) -> None:
        """Register a sink; duplicate registration of an instance is ignored."""
        if sink not in self._sinks:
            self._sinks.append(sink)
            logger.debug("Registered event sink: %s", sink.sink_name)

    @property
    def registered_sinks(self) -> list[EventSink]:
        return list(self._sinks)

    def with_annotations(self, **annotations: str) -> EventRecorder:
        """A recorder sharing these sinks that adds ``annotations`` to each event."""
        merged = {**self._annotations, **annotations}
        child = EventRecorder(annotations=merged)
        child._sinks = self._sinks
        return child

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def warn(self, obj: Resource, reason: str, error: BaseException) -> None:
        self.record(Event.for_object(obj, EventType.WARNING, reason, str(error), self._annotations))

    def info(self, obj: Resource, reason: str, message: str) -> None:
        self.record(Event.for_object(obj, EventType.NORMAL, reason, message, self._annotations))

    def record(self, event: Event) -> list[str]:
        """Deliver ``event`` to every sink; return the names that accepted it."""
        succeeded: list[str] = []
        for sink in self._sinks:
            try:
                sink.accept(event)
                succeeded.append(sink.sink_name)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Event sink %s failed for %s event %r on %s: %s",
                    sink.sink_name,
                    event.type.value,
                    event.reason,
                    event.involved_object.name,
                    exc,
                )
        return succeeded
