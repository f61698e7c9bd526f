"""Tests for logging sinks."""

from __future__ import annotations

import io
import json

from logging_lib.sinks.memory import InMemorySink
from logging_lib.sinks.stdout import StdoutSink


def test_in_memory_sink_records_deep_copies():
    sink = InMemorySink()
    payload = {"message": "hello", "nested": {"key": "value"}}

    sink.emit(payload)
    payload["nested"]["key"] = "mutated"

    assert sink.records[0]["nested"] == {"key": "value"}
    assert sink.find("hello")
    sink.clear()
    assert sink.records == []


def test_stdout_sink_emits_json_lines(logging_settings):
    stream = io.StringIO()
    sink = StdoutSink(logging_settings, stream=stream)

    sink.emit({"message": "stdout-test", "component": "unit"})
    sink.emit({"message": "second", "component": "unit"})

    lines = stream.getvalue().splitlines()
    assert len(lines) == 2
    parsed = json.loads(lines[0])
    assert parsed["message"] == "stdout-test"
    assert parsed["component"] == "unit"
