"""
Logging event sink.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from typing import Any


class LoggingEventSink:
    """Logs domain events using the standard logging module.

    The event is attached as ``extra`` fields so structured handlers can
    index them; the message itself stays constant ("domain_event").
    """

    def __init__(self, logger: logging.Logger, level: int = logging.INFO) -> None:
        self._logger = logger
        self._level = level

    def on_event(self, event: Any) -> None:
        payload = asdict(event) if is_dataclass(event) else {"event": str(event)}
        self._logger.log(
            self._level,
            "domain_event",
            extra={"event_type": type(event).__name__, "event": payload},
        )
