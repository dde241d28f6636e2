"""Telemetry sinks for traversal metrics."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from recwalk.interfaces import TelemetrySink

logger = logging.getLogger(__name__)


@dataclass
class TelemetryEvent:
    """One emitted metric value."""

    name: str
    value: Any
    options: Dict[str, Any] = field(default_factory=dict)
    emitted_at: datetime = field(default_factory=datetime.now)


class LoggingTelemetrySink(TelemetrySink):
    """Writes every metric to a logger."""

    def __init__(self, logger_name: str = "recwalk.telemetry", level: int = logging.INFO):
        self._logger = logging.getLogger(logger_name)
        self.level = level

    def emit(self, metric_name: str, value: Any, **opts: Any) -> None:
        extra = ", ".join(f"{k}={v}" for k, v in opts.items())
        message = f"[metric] {metric_name}={value}"
        if extra:
            message = f"{message} ({extra})"
        self._logger.log(self.level, message)


class InMemoryTelemetrySink(TelemetrySink):
    """Keeps emitted metrics for later inspection."""

    def __init__(self, max_events: int = 1000):
        self.max_events = max_events
        self.events: List[TelemetryEvent] = []

    def emit(self, metric_name: str, value: Any, **opts: Any) -> None:
        self.events.append(TelemetryEvent(name=metric_name, value=value, options=dict(opts)))
        if len(self.events) > self.max_events:
            del self.events[:len(self.events) - self.max_events]

    def values(self, metric_name: str) -> List[Any]:
        return [e.value for e in self.events if e.name == metric_name]

    def last(self, metric_name: str) -> Optional[Any]:
        values = self.values(metric_name)
        return values[-1] if values else None


def safe_emit(sink: Optional[TelemetrySink], metric_name: str, value: Any, **opts: Any) -> None:
    """Emit through ``sink`` and swallow any failure."""
    if sink is None:
        return
    try:
        sink.emit(metric_name, value, **opts)
    except Exception as e:
        logger.debug(f"Telemetry emit of {metric_name} failed: {e}")
