"""Shared schema helpers used across merchant services."""

from .base import (
    PIN_PATTERN,
    BaseSchema,
    SchemaValidationError,
    ensure_email,
    ensure_password,
    ensure_pin,
    extract,
    is_pin,
    optional_email,
    optional_str,
    require_field,
    require_str,
)

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
