"""Public API for the structured logging library."""

from __future__ import annotations

from .config import LoggingSettings, configure_settings, get_settings, load_settings
from .logger import (
    clear_context,
    configure_manager,
    get_context,
    get_logger,
    get_manager,
    logger_context,
    pop_context,
    push_context,
    reset_loggers,
)

__all__ = [
    "configure",
    "get_logger",
    "get_manager",
    "logger_context",
    "LoggingSettings",
    "load_settings",
    "get_settings",
    "push_context",
    "pop_context",
    "get_context",
    "clear_context",
    "reset_loggers",
]


def configure(settings: LoggingSettings | None = None, **overrides) -> LoggingSettings:
    """Configure the logging library."""

    resolved = configure_settings(settings, **overrides)
    configure_manager(resolved)

    return resolved
