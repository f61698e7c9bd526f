"""Shared contracts and type definitions across merchant services."""

from .accounts import (  # noqa: F401
    PERMISSIONS_VERSION,
    ROLE_ACCOUNT_TYPES,
    ROLE_ACCOUNTS,
    ROLE_PERMISSIONS,
    VIRTUAL_IDENTITY_ROLES,
    AccountRole,
    AccountStatus,
    AccountType,
    CredentialKind,
    InvitePurpose,
    RoleAccountSpec,
    account_type_for,
    permissions_for,
    role_account_spec,
)

__all__ = [
    "AccountRole",
    "AccountStatus",
    "AccountType",
    "CredentialKind",
    "InvitePurpose",
    "PERMISSIONS_VERSION",
    "ROLE_ACCOUNTS",
    "ROLE_ACCOUNT_TYPES",
    "ROLE_PERMISSIONS",
    "RoleAccountSpec",
    "VIRTUAL_IDENTITY_ROLES",
    "account_type_for",
    "permissions_for",
    "role_account_spec",
]
