"""Account roles, permission sets, and role-account routing contracts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class AccountRole(str, Enum):
    """Roles an account profile can hold."""

    INDIVIDUAL = "individual"
    COMPANY_OWNER = "company-owner"
    BRANCH_MANAGER = "branch-manager"
    CASHIER = "cashier"
    ADMIN = "admin"
    STAFF = "staff"


class AccountStatus(str, Enum):
    """Lifecycle status of an account profile."""

    PENDING = "pending"
    ACTIVE = "active"
    DISABLED = "disabled"


class AccountType(str, Enum):
    """Coarse account family carried in provider claims."""

    INDIVIDUAL = "individual"
    COMPANY = "company"
    PLATFORM = "platform"


class InvitePurpose(str, Enum):
    """Why an invite token was minted; drives its time-to-live."""

    ONBOARDING = "onboarding"
    RESET = "reset"


class CredentialKind(str, Enum):
    """Secret shape a role authenticates with."""

    PIN = "pin"
    PASSWORD = "password"
    FEDERATED = "federated"


PERMISSIONS_VERSION = 1

# Bump PERMISSIONS_VERSION whenever an entry changes so stale claims can be detected.
ROLE_PERMISSIONS: Mapping[AccountRole, tuple[str, ...]] = MappingProxyType(
    {
        AccountRole.INDIVIDUAL: ("generate-qr", "transactions", "summary", "profile", "settings"),
        AccountRole.COMPANY_OWNER: ("company:dashboard", "company:branches", "company:cashiers"),
        AccountRole.BRANCH_MANAGER: ("company:branches", "company:cashiers"),
        AccountRole.CASHIER: ("generate-qr", "transactions", "summary"),
        AccountRole.ADMIN: (),
        AccountRole.STAFF: (),
    }
)

ROLE_ACCOUNT_TYPES: Mapping[AccountRole, AccountType] = MappingProxyType(
    {
        AccountRole.INDIVIDUAL: AccountType.INDIVIDUAL,
        AccountRole.COMPANY_OWNER: AccountType.COMPANY,
        AccountRole.BRANCH_MANAGER: AccountType.COMPANY,
        AccountRole.CASHIER: AccountType.COMPANY,
        AccountRole.ADMIN: AccountType.PLATFORM,
        AccountRole.STAFF: AccountType.PLATFORM,
    }
)

# Roles whose provider login key is a synthetic address under the virtual domain.
VIRTUAL_IDENTITY_ROLES = frozenset({AccountRole.BRANCH_MANAGER, AccountRole.CASHIER})


def permissions_for(role: AccountRole) -> tuple[str, ...]:
    """Return the permission set for ``role``."""

    return ROLE_PERMISSIONS[AccountRole(role)]


def account_type_for(role: AccountRole) -> AccountType:
    return ROLE_ACCOUNT_TYPES[AccountRole(role)]


@dataclass(frozen=True)
class RoleAccountSpec:
    """How a role signs in through the role-account gateway."""

    role: AccountRole
    credential: CredentialKind
    set_credential_path: str
    signin_path: str
    invitable: bool = False
    username_login: bool = False
    phone_login: bool = False
    self_service_pin: bool = False


ROLE_ACCOUNTS: Mapping[AccountRole, RoleAccountSpec] = MappingProxyType(
    {
        AccountRole.INDIVIDUAL: RoleAccountSpec(
            role=AccountRole.INDIVIDUAL,
            credential=CredentialKind.PIN,
            set_credential_path="/reset-pin",
            signin_path="/signin-pin",
            phone_login=True,
            self_service_pin=True,
        ),
        AccountRole.COMPANY_OWNER: RoleAccountSpec(
            role=AccountRole.COMPANY_OWNER,
            credential=CredentialKind.PIN,
            set_credential_path="/reset-pin",
            signin_path="/signin-pin",
            phone_login=True,
            self_service_pin=True,
        ),
        AccountRole.ADMIN: RoleAccountSpec(
            role=AccountRole.ADMIN,
            credential=CredentialKind.PASSWORD,
            set_credential_path="/admin/set-password",
            signin_path="/admin/signin",
            invitable=True,
        ),
        AccountRole.STAFF: RoleAccountSpec(
            role=AccountRole.STAFF,
            credential=CredentialKind.PASSWORD,
            set_credential_path="/staff/set-password",
            signin_path="/staff/signin",
            invitable=True,
        ),
        AccountRole.BRANCH_MANAGER: RoleAccountSpec(
            role=AccountRole.BRANCH_MANAGER,
            credential=CredentialKind.PIN,
            set_credential_path="/branch-manager/set-pin",
            signin_path="/signin",
            username_login=True,
        ),
        AccountRole.CASHIER: RoleAccountSpec(
            role=AccountRole.CASHIER,
            credential=CredentialKind.PIN,
            set_credential_path="/cashier/set-pin",
            signin_path="/signin",
            username_login=True,
        ),
    }
)


def role_account_spec(value: str) -> Optional[RoleAccountSpec]:
    """Resolve a gateway role name, returning ``None`` for unknown roles."""

    try:
        role = AccountRole(value)
    except ValueError:
        return None
    return ROLE_ACCOUNTS.get(role)


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
