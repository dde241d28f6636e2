"""Tests for telemetry sinks."""

import logging
from unittest.mock import MagicMock

from recwalk.telemetry import InMemoryTelemetrySink, LoggingTelemetrySink, safe_emit


def test_in_memory_sink_records_events():
    sink = InMemoryTelemetrySink()

    sink.emit("new_groups", 2, run_id="run_1")
    sink.emit("new_groups", 0, run_id="run_1")
    sink.emit("thematic_ratio", 50.0)

    assert sink.values("new_groups") == [2, 0]
    assert sink.last("thematic_ratio") == 50.0
    assert sink.last("missing") is None
    assert sink.events[0].options == {"run_id": "run_1"}


def test_in_memory_sink_is_bounded():
    sink = InMemoryTelemetrySink(max_events=3)

    for value in range(5):
        sink.emit("tick", value)

    assert sink.values("tick") == [2, 3, 4]


def test_logging_sink(caplog):
    sink = LoggingTelemetrySink()

    with caplog.at_level(logging.INFO, logger="recwalk.telemetry"):
        sink.emit("rolling_thematic_average", 7.5, run_id="run_9")

    assert "rolling_thematic_average=7.5" in caplog.text
    assert "run_id=run_9" in caplog.text


def test_safe_emit_swallows_errors():
    sink = MagicMock()
    sink.emit.side_effect = RuntimeError("down")

    safe_emit(sink, "metric", 1)

    sink.emit.assert_called_once_with("metric", 1)


def test_safe_emit_without_sink():
    safe_emit(None, "metric", 1)
