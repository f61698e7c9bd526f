"""Top-level pytest configuration for the merchant auth test suites."""

from __future__ import annotations

import os

import pytest

# Structured logs go to the in-memory sink and repository retries never sleep.
os.environ.setdefault("LOG_SINKS", "memory")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("FS_MAX_RETRIES", "0")
os.environ.setdefault("MERCHANT_ENV", "test")


def pytest_configure(config: pytest.Config) -> None:  # pragma: no cover - configuration hook
    """Register global markers used across the repository."""

    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "auth: Authentication and credential tests")
    config.addinivalue_line("markers", "firestore: Firestore adapter tests")
    config.addinivalue_line("markers", "logging: Logging library focused tests")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Ensure sensible default markers based on collection context."""

    for item in items:
        if not any(marker.name == "integration" for marker in item.iter_markers()):
            item.add_marker(pytest.mark.unit)

        path = str(item.fspath)
        if "merchant_auth" in path:
            item.add_marker(pytest.mark.auth)
        if "firestore" in path:
            item.add_marker(pytest.mark.firestore)
        if "logging" in path:
            item.add_marker(pytest.mark.logging)
