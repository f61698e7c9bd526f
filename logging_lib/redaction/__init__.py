"""Deterministic redaction subsystem for structured logging."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Dict, Mapping, MutableMapping

from ..config import RedactionSettings
from .defaults import (
    BUILTIN_CONTEXT_REDACTORS,
    BUILTIN_FIELD_REDACTORS,
    build_hash_redactor,
)


LOGGER = logging.getLogger("logging_lib.redaction")

Redactor = Callable[[str, Any], Any]


_GLOBAL_FIELD_REDACTORS: Dict[str, Redactor] = {}
_GLOBAL_CONTEXT_REDACTORS: Dict[str, Redactor] = {}


def _normalize_key(key: str) -> str:
    return key.lower()


@dataclass
class RedactorRegistry:
    """Thread-safe registry of redaction callables."""

    enabled: bool
    allowlist: tuple[str, ...]
    strict: bool
    _field_redactors: MutableMapping[str, Redactor]
    _context_redactors: MutableMapping[str, Redactor]
    _lock: RLock = field(default_factory=RLock)

    def register(self, key: str, fn: Redactor, *, context: bool = False) -> None:
        """Register a redactor for a field or context key."""

        normalized = _normalize_key(key)
        with self._lock:
            if context:
                self._context_redactors[normalized] = fn
            else:
                self._field_redactors[normalized] = fn

    def register_many(self, entries: Mapping[str, Redactor], *, context: bool = False) -> None:
        for key, fn in entries.items():
            self.register(key, fn, context=context)

    def apply(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Redact sensitive fields from a structured record."""

        if not self.enabled:
            return dict(record)

        with self._lock:
            field_redactors = dict(self._field_redactors)
            context_redactors = dict(self._context_redactors)

        sanitized: Dict[str, Any] = {}
        for key, value in record.items():
            if key == "context" and isinstance(value, Mapping):
                sanitized["context"] = {
                    ctx_key: self._apply_redactor(
                        ctx_key,
                        ctx_value,
                        context_redactors.get(_normalize_key(ctx_key))
                        or field_redactors.get(_normalize_key(ctx_key)),
                    )
                    for ctx_key, ctx_value in value.items()
                }
                continue

            sanitized[key] = self._apply_redactor(key, value, field_redactors.get(_normalize_key(key)))

        return sanitized

    def _apply_redactor(self, key: str, value: Any, candidate: Redactor | None) -> Any:
        if candidate is None or value is None or _normalize_key(key) in self.allowlist:
            return value

        try:
            return candidate(key, value)
        except Exception:
            LOGGER.exception("Redaction failure for key %s", key)
            if self.strict:
                raise
            return "***"


def build_registry(settings: RedactionSettings) -> RedactorRegistry:
    """Construct a registry derived from runtime settings."""

    hash_redactor = build_hash_redactor(settings.hash_salt)

    field_redactors: MutableMapping[str, Redactor] = {
        _normalize_key(name): fn for name, fn in BUILTIN_FIELD_REDACTORS(hash_redactor).items()
    }
    context_redactors: MutableMapping[str, Redactor] = {
        _normalize_key(name): fn for name, fn in BUILTIN_CONTEXT_REDACTORS(hash_redactor).items()
    }

    for name in settings.denylist:
        field_redactors[_normalize_key(name)] = hash_redactor

    for name in settings.context_denylist:
        context_redactors[_normalize_key(name)] = hash_redactor

    allowlist = tuple(_normalize_key(name) for name in settings.allowlist)
    for name in allowlist:
        field_redactors.pop(name, None)
        context_redactors.pop(name, None)

    registry = RedactorRegistry(
        enabled=settings.enabled,
        allowlist=allowlist,
        strict=settings.strict,
        _field_redactors=field_redactors,
        _context_redactors=context_redactors,
    )

    registry.register_many(_GLOBAL_FIELD_REDACTORS)
    registry.register_many(_GLOBAL_CONTEXT_REDACTORS, context=True)

    return registry


def register_redactor(key: str, fn: Redactor, *, context: bool = False) -> None:
    """Register a global redactor applied to future registries."""

    normalized = _normalize_key(key)
    if context:
        _GLOBAL_CONTEXT_REDACTORS[normalized] = fn
    else:
        _GLOBAL_FIELD_REDACTORS[normalized] = fn


__all__ = [
    "RedactorRegistry",
    "build_registry",
    "register_redactor",
]
