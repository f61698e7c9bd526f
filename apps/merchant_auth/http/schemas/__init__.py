"""Request schemas for the merchant auth HTTP surface."""

from app_platform.schemas import SchemaValidationError

from .accounts import (
    CheckExistsRequest,
    InviteRequest,
    ResetRequest,
    SetCredentialRequest,
    SetPinRequest,
    SignInRequest,
    SignOutRequest,
    parse_check_exists,
    parse_invite,
    parse_reset,
    parse_set_credential,
    parse_set_pin,
    parse_signin,
    parse_signout,
)

__all__ = [
    "SchemaValidationError",
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
