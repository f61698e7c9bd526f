"""Shared base utilities for request/response schemas."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Optional, Type, TypeVar

PIN_PATTERN = re.compile(r"^[0-9]{4,6}$")


class SchemaValidationError(ValueError):
    """Raised when a payload fails schema validation."""

    def __init__(self, message: str, *, errors: Optional[Iterable[str]] = None) -> None:
        detail = "; ".join(errors or [])
        super().__init__(f"{message}: {detail}" if detail else message)
        self.errors = tuple(errors or ())


T = TypeVar("T", bound="BaseSchema")


@dataclass(slots=True)
class BaseSchema:
    """Dataclass base providing convenience helpers."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert the schema to a dictionary."""

        return asdict(self)

    @classmethod
    def from_dict(cls: Type[T], payload: Mapping[str, Any] | MutableMapping[str, Any]) -> T:
        """Create a schema from a dictionary."""

        try:
            return cls(**dict[str, Any](payload))  # type: ignore[arg-type]
        except TypeError as exc:  # pragma: no cover - initialization errors bubble
            raise SchemaValidationError("Invalid schema fields", errors=[str(exc)]) from exc


def extract(payload: Mapping[str, Any] | MutableMapping[str, Any], *names: str) -> Any:
    """Return the first present key among ``names`` (camelCase and snake_case aliases)."""

    for name in names:
        if name in payload:
            return payload[name]
    return None


def require_field(value: Any, field: str, *, predicate: Optional[Any] = None) -> Any:
    """Require a field to be present and valid."""

    if value is None or (isinstance(value, str) and not value.strip()):
        raise SchemaValidationError(f"Missing required field '{field}'")

    if predicate and not predicate(value):
        raise SchemaValidationError(f"Field '{field}' failed validation")

    return value


def require_str(value: Any, field: str) -> str:
    """Require a non-empty string and return it trimmed."""

    if not isinstance(value, str):
        raise SchemaValidationError(f"Field '{field}' must be a string")
    normalized = value.strip()
    if not normalized:
        raise SchemaValidationError(f"Field '{field}' is required")
    return normalized


def optional_str(value: Any) -> Optional[str]:
    """Convert a value to a string if it is not None."""

    if value is None:
        return None

    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None

    raise SchemaValidationError("Expected string value")


def _is_email(value: str) -> bool:
    """Check if a value is a valid email address."""

    if "@" not in value or value.startswith("@") or value.endswith("@"):
        return False

    if any(char.isspace() for char in value):
        return False

    local, _, domain = value.partition("@")
    if "." not in domain or domain.startswith(".") or domain.endswith("."):
        return False

    return all(part.strip() for part in (local, domain))


def ensure_email(value: Any, field: str) -> str:
    """Ensure a value is a valid email address."""

    if not isinstance(value, str):
        raise SchemaValidationError(f"Field '{field}' must be a string")

    candidate = value.strip().lower()
    if not candidate:
        raise SchemaValidationError(f"Field '{field}' is required")

    if not _is_email(candidate):
        raise SchemaValidationError(f"Field '{field}' must be a valid email")

    return candidate


def optional_email(value: Any, field: str) -> Optional[str]:
    """Validate an email when present; blank values become ``None``."""

    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return ensure_email(value, field)


def is_pin(value: Any) -> bool:
    return isinstance(value, str) and PIN_PATTERN.match(value) is not None


def ensure_pin(value: Any, field: str = "pin") -> str:
    """Ensure a value is a 4 to 6 digit PIN."""

    if not isinstance(value, str):
        raise SchemaValidationError(f"Field '{field}' must be a string")

    candidate = value.strip()
    if not is_pin(candidate):
        raise SchemaValidationError(f"Field '{field}' must be 4 to 6 digits")

    return candidate


def ensure_password(value: Any, field: str = "password", *, min_length: int = 8) -> str:
    """Ensure a password meets the minimum length; the value is not trimmed."""

    if not isinstance(value, str) or not value:
        raise SchemaValidationError(f"Field '{field}' is required")

    if len(value) < min_length:
        raise SchemaValidationError(f"Field '{field}' must be at least {min_length} characters")

    return value


__all__ = [
    "BaseSchema",
    "PIN_PATTERN",
    "SchemaValidationError",
    "ensure_email",
    "ensure_password",
    "ensure_pin",
    "extract",
    "is_pin",
    "optional_email",
    "optional_str",
    "require_field",
    "require_str",
]
