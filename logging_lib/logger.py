"""Structured logging facade."""

from __future__ import annotations

import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar, Token
from threading import RLock
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Protocol

from .config import LoggingSettings, get_settings
from .redaction import RedactorRegistry, build_registry
from .schema import build_log_record
from .sinks.memory import InMemorySink
from .sinks.stdout import StdoutSink


_CONTEXT: ContextVar[Mapping[str, Any]] = ContextVar("logging_lib_context", default={})

LEVELS: Mapping[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


class Sink(Protocol):
    def emit(self, record: Mapping[str, Any]) -> None: ...


class StructuredLogger:
    """Structured logger bound to a component name."""

    def __init__(self, name: str, manager: "LoggerManager") -> None:
        self._name = name
        self._manager = manager

    @property
    def name(self) -> str:
        return self._name

    def debug(self, message: str, **fields: Any) -> None:
        self._log("DEBUG", message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self._log("INFO", message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._log("WARNING", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self._log("ERROR", message, **fields)

    def critical(self, message: str, **fields: Any) -> None:
        self._log("CRITICAL", message, **fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's type and traceback attached."""

        exc_type, exc, tb = sys.exc_info()
        if exc is not None:
            fields.setdefault("exc_type", exc_type.__name__ if exc_type else None)
            fields.setdefault("exc_info", "".join(traceback.format_exception(exc_type, exc, tb)))
        self._log("ERROR", message, **fields)

    def _log(self, level: str, message: str, **fields: Any) -> None:
        manager = self._manager
        settings = manager.settings

        if LEVELS.get(level, 0) < LEVELS.get(settings.level, 20):
            return

        runtime_context = dict(manager.base_context)
        runtime_context.update(_CONTEXT.get())

        explicit_context = fields.pop("context", {}) or {}
        if explicit_context:
            runtime_context.update(explicit_context)

        # stdlib-style extra={...} is flattened into the record
        extra = fields.pop("extra", None) or {}
        for key, value in extra.items():
            fields.setdefault(key, value)

        record = build_log_record(
            level=level,
            message=message,
            settings=settings,
            component=self._name,
            context=runtime_context,
            **fields,
        )
        redactor = manager.redactor
        sanitized = redactor.apply(record) if redactor else record

        manager.emit(sanitized)


class LoggerManager:
    """Owns settings, sinks, and the redactor shared by every structured logger."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._loggers: Dict[str, StructuredLogger] = {}
        self._settings: LoggingSettings | None = None
        self._sinks: List[Sink] = []
        self._base_context: MutableMapping[str, Any] = {}
        self._redactor: Optional[RedactorRegistry] = None

    def configure(self, settings: LoggingSettings) -> None:
        """Rebuild sinks and redaction from ``settings``."""

        with self._lock:
            self._settings = settings
            self._loggers.clear()

            sinks: List[Sink] = []
            for sink_name in settings.sinks:
                name = sink_name.strip().lower()
                if name == "stdout":
                    sinks.append(StdoutSink(settings))
                elif name == "memory":
                    sinks.append(InMemorySink())

            if not sinks:
                sinks.append(StdoutSink(settings))

            self._sinks = sinks
            self._base_context = dict(settings.default_context)
            self._redactor = build_registry(settings.redaction)

    @property
    def settings(self) -> LoggingSettings:
        settings = self._settings

        if settings is None:
            settings = get_settings()
            self.configure(settings)

        return settings

    @property
    def sinks(self) -> List[Sink]:
        if self._settings is None:
            self.configure(get_settings())
        return list(self._sinks)

    @property
    def base_context(self) -> Mapping[str, Any]:
        return dict(self._base_context)

    @property
    def redactor(self) -> Optional[RedactorRegistry]:
        return self._redactor

    def emit(self, record: Mapping[str, Any]) -> None:
        """Hand ``record`` to every sink; one failing sink never blocks the others."""

        for sink in self.sinks:
            try:
                sink.emit(record)
            except Exception as exc:  # noqa: BLE001 - logging must not raise into callers
                print(f"logging_lib sink failure: {type(exc).__name__}: {exc}", file=sys.stderr)

    def register_sink(self, sink: Sink) -> None:
        with self._lock:
            if self._settings is None:
                self.configure(get_settings())
            self._sinks.append(sink)

    def get_logger(self, name: str) -> StructuredLogger:
        with self._lock:
            logger = self._loggers.get(name)

            if logger is None:
                logger = StructuredLogger(name, self)
                self._loggers[name] = logger

            return logger

    def memory_records(self) -> List[Dict[str, Any]]:
        """Collect records held by in-memory sinks."""

        records: List[Dict[str, Any]] = []
        for sink in self._sinks:
            if isinstance(sink, InMemorySink):
                records.extend(sink.records)
        return records

    def reset(self) -> None:
        with self._lock:
            self._loggers.clear()
            self._sinks = []
            self._settings = None
            self._base_context = {}
            self._redactor = None


_MANAGER = LoggerManager()


def configure_manager(settings: LoggingSettings) -> None:
    _MANAGER.configure(settings)


def get_manager() -> LoggerManager:
    return _MANAGER


def get_logger(name: str) -> StructuredLogger:
    """Get a logger with a given name."""

    return _MANAGER.get_logger(name)


@contextmanager
def logger_context(**context: Any):
    """Context manager for temporary context variables."""

    token = push_context(**context)
    try:
        yield
    finally:
        pop_context(token)


def reset_loggers() -> None:
    _MANAGER.reset()


def push_context(**context: Any) -> Token:
    current = dict(_CONTEXT.get())
    current.update(context)
    return _CONTEXT.set(current)


def pop_context(token: Token) -> None:
    _CONTEXT.reset(token)


def get_context() -> Mapping[str, Any]:
    return dict(_CONTEXT.get())


def clear_context() -> None:
    _CONTEXT.set({})
