"""Newline-delimited JSON sink writing to standard output."""

from __future__ import annotations

import json
import sys
from threading import Lock
from typing import Any, Mapping, TextIO

from ..config import LoggingSettings


class StdoutSink:
    """Writes one JSON document per line."""

    def __init__(self, settings: LoggingSettings, stream: TextIO | None = None) -> None:
        self._settings = settings
        self._stream = stream
        self._lock = Lock()

    def emit(self, record: Mapping[str, Any]) -> None:
        payload = json.dumps(record, ensure_ascii=False, default=str, separators=(",", ":"))
        with self._lock:
            print(payload, file=self._stream or sys.stdout)

    def flush(self) -> None:
        stream = self._stream or sys.stdout
        flush = getattr(stream, "flush", None)
        if callable(flush):
            flush()
