"""Request schemas for the role-account endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, MutableMapping, Optional

from app_platform.contracts import CredentialKind, RoleAccountSpec, role_account_spec
from app_platform.schemas import (
    BaseSchema,
    SchemaValidationError,
    ensure_email,
    ensure_password,
    ensure_pin,
    extract,
    optional_str,
    require_str,
)

Payload = Mapping[str, Any] | MutableMapping[str, Any]


def _role(payload: Payload, fallback: Optional[str] = None) -> RoleAccountSpec:
    value = extract(payload, "role")
    if value is None:
        value = fallback
    if not isinstance(value, str) or not value.strip():
        raise SchemaValidationError("Missing required field 'role'")
    spec = role_account_spec(value.strip())
    if spec is None:
        raise SchemaValidationError("Unknown role")
    return spec


def _secret(payload: Payload, spec: RoleAccountSpec, *, password_min_length: int) -> str:
    value = extract(payload, "secret", "pin", "password")
    if spec.credential is CredentialKind.PIN:
        return ensure_pin(value, "secret")
    return ensure_password(value, "secret", min_length=password_min_length)


@dataclass(slots=True)
class InviteRequest(BaseSchema):
    role: str
    email: str
    name: str = ""


@dataclass(slots=True)
class CheckExistsRequest(BaseSchema):
    role: str
    email: str


@dataclass(slots=True)
class SetCredentialRequest(BaseSchema):
    role: str
    token: str
    secret: str


@dataclass(slots=True)
class SignInRequest(BaseSchema):
    role: str
    identifier: str
    secret: str


@dataclass(slots=True)
class ResetRequest(BaseSchema):
    role: str
    email: str


@dataclass(slots=True)
class SignOutRequest(BaseSchema):
    role: str


@dataclass(slots=True)
class SetPinRequest(BaseSchema):
    role: str
    pin: str


def parse_invite(payload: Payload) -> InviteRequest:
    spec = _role(payload)
    return InviteRequest(
        role=spec.role.value,
        email=ensure_email(extract(payload, "email"), "email"),
        name=optional_str(extract(payload, "name", "displayName")) or "",
    )


def parse_check_exists(payload: Payload) -> CheckExistsRequest:
    spec = _role(payload)
    return CheckExistsRequest(role=spec.role.value, email=ensure_email(extract(payload, "email"), "email"))


def parse_set_credential(payload: Payload, *, password_min_length: int = 8) -> SetCredentialRequest:
    spec = _role(payload)
    token = require_str(extract(payload, "token"), "token")
    if len(token) < 8:
        raise SchemaValidationError("Field 'token' is malformed")
    return SetCredentialRequest(
        role=spec.role.value,
        token=token,
        secret=_secret(payload, spec, password_min_length=password_min_length),
    )


def parse_signin(payload: Payload) -> SignInRequest:
    spec = _role(payload)
    identifier = require_str(extract(payload, "identifier", "email", "username"), "identifier")
    secret = extract(payload, "secret", "pin", "password")
    if not isinstance(secret, str) or not secret:
        raise SchemaValidationError("Missing required field 'secret'")
    return SignInRequest(role=spec.role.value, identifier=identifier, secret=secret)


def parse_reset(payload: Payload) -> ResetRequest:
    spec = _role(payload)
    return ResetRequest(role=spec.role.value, email=ensure_email(extract(payload, "email"), "email"))


def parse_signout(payload: Payload, *, fallback_role: Optional[str] = None) -> SignOutRequest:
    spec = _role(payload, fallback_role)
    return SignOutRequest(role=spec.role.value)


def parse_set_pin(payload: Payload) -> SetPinRequest:
    spec = _role(payload)
    if not spec.self_service_pin:
        raise SchemaValidationError("Role cannot set its own PIN")
    return SetPinRequest(role=spec.role.value, pin=ensure_pin(extract(payload, "pin", "secret"), "pin"))


__all__ = [
    "CheckExistsRequest",
    "InviteRequest",
    "ResetRequest",
    "SetCredentialRequest",
    "SetPinRequest",
    "SignInRequest",
    "SignOutRequest",
    "parse_check_exists",
    "parse_invite",
    "parse_reset",
    "parse_set_credential",
    "parse_set_pin",
    "parse_signin",
    "parse_signout",
]
