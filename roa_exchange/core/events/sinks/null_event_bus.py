from __future__ import annotations

from typing import Any

from roa_exchange.core.events.event_bus import EventBus


class _NullSink:
    """Event sink that discards all events."""

    def on_event(self, event: Any) -> None:
        return


class _ListSink:
    def __init__(self, events: list[Any]) -> None:
        self._events = events

    def on_event(self, event: Any) -> None:
        self._events.append(event)


class NullEventBus(EventBus):
    """EventBus that discards all events (used for tests)."""

    def __init__(self) -> None:
        super().__init__(sinks=[_NullSink()])


class RecordingEventBus(EventBus):
    """EventBus that keeps every emitted event in ``events`` (used for tests)."""

    def __init__(self) -> None:
        self.events: list[Any] = []
        super().__init__(sinks=[_ListSink(self.events)])

    def of_type(self, event_type: type) -> list[Any]:
        return [e for e in self.events if isinstance(e, event_type)]
