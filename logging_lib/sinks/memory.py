"""In-memory sink used by tests and local debugging."""

from __future__ import annotations

import copy
from threading import Lock
from typing import Any, Dict, List, Mapping


class InMemorySink:
    """Keeps deep copies of every emitted record."""

    def __init__(self) -> None:
        self.records: List[Dict[str, Any]] = []
        self._lock = Lock()

    def emit(self, record: Mapping[str, Any]) -> None:
        with self._lock:
            self.records.append(copy.deepcopy(dict(record)))

    def flush(self) -> None:
        return None

    def find(self, message: str) -> List[Dict[str, Any]]:
        """Return the records whose ``message`` equals ``message``."""

        with self._lock:
            return [record for record in self.records if record.get("message") == message]

    def clear(self) -> None:
        with self._lock:
            self.records.clear()
