"""Event sink protocol for the event recorder.

All sinks implement the ``EventSink`` protocol: a ``sink_name`` property
and an ``accept(event)`` method.  The recorder calls ``accept`` on every
registered sink for every recorded event.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from defrev.models.cluster import Event


@runtime_checkable
class EventSink(Protocol):
    """Protocol that every event sink must implement.

    Attributes
    ----------
    sink_name : str
        A unique human-readable identifier for this sink instance
        (e.g. ``"log"``, ``"store"``).
    """

    @property
    def sink_name(self) -> str:
        """Return the unique name of this sink."""
        ...

    def accept(self, event: Event) -> None:
        """Accept and process an event.

        May raise; the recorder logs the failure and continues with the
        next sink.
        """
        ...


__all__ = ["EventSink"]
