"""
Synchronous event bus for post-commit domain events.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable

from roa_exchange.core.events.event_sink import EventSink

LOGGER = logging.getLogger(__name__)


class EventBus:
    """Dispatches events to registered sinks.

    Sink errors propagate, except for sinks registered as best-effort
    (journal files, metrics): their failures are logged and dispatch goes on.
    """

    def __init__(
        self,
        sinks: Iterable[EventSink] | None = None,
        *,
        best_effort_sinks: Iterable[EventSink] | None = None,
    ) -> None:
        self._sinks: list[tuple[EventSink, bool]] = [(sink, False) for sink in sinks or ()]
        self._sinks.extend((sink, True) for sink in best_effort_sinks or ())
        self._closed = False

    def register(self, sink: EventSink, *, best_effort: bool = False) -> None:
        """Register a new sink."""
        self._sinks.append((sink, best_effort))

    def emit(self, event: Any) -> None:
        """Emit an event to all sinks."""
        for sink, best_effort in self._sinks:
            if not best_effort:
                sink.on_event(event)
                continue
            try:
                sink.on_event(event)
            except Exception:  # pylint: disable=broad-exception-caught
                LOGGER.exception(
                    "Event sink failed",
                    extra={"sink": type(sink).__name__, "event_type": type(event).__name__},
                )

    def emit_many(self, events: Iterable[Any]) -> None:
        """Emit several events in order."""
        for event in events:
            self.emit(event)

    def close(self) -> None:
        """
        Finalize all sinks that expose a close() method.
        """
        if self._closed:
            return

        for sink, _ in self._sinks:
            close_fn = getattr(sink, "close", None)
            if callable(close_fn):
                close_fn()

        self._closed = True
