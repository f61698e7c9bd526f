"""Service layer for tenant hierarchy, credential, and session flows."""

from __future__ import annotations

from .exceptions import (
    AccountDisabledError,
    AccountValidationError,
    ForbiddenActionError,
    InviteAlreadyUsedError,
    InviteExpiredError,
    InviteNotFoundError,
    NotificationError,
    ProviderUserNotFoundError,
    ProvisioningConflictError,
    ResourceNotFoundError,
    ServiceConfigurationError,
    UnauthorizedRequestError,
    UpstreamServiceError,
)
from .auth0_mgmt import Auth0ManagementClient
from .credentials import PinCredentialService
from .identity import AccountDraft, IdentityProvider, IdentityProvisioner
from .invite_tokens import InviteClaim, InviteTokenManager
from .notifier import LoggingNotifier, Notifier, SmtpNotifier, build_notifier
from .role_accounts import RoleAccountService, SignInResult
from .sessions import SessionManager
from .tenant_hierarchy import ActorScope, TenantHierarchyService

__all__ = [
    "AccountDraft",
    "ActorScope",
    "Auth0ManagementClient",
    "IdentityProvider",
    "IdentityProvisioner",
    "InviteClaim",
    "InviteTokenManager",
    "LoggingNotifier",
    "Notifier",
    "PinCredentialService",
    "RoleAccountService",
    "SessionManager",
    "SignInResult",
    "SmtpNotifier",
    "TenantHierarchyService",
    "build_notifier",
    "AccountDisabledError",
    "AccountValidationError",
    "ForbiddenActionError",
    "InviteAlreadyUsedError",
    "InviteExpiredError",
    "InviteNotFoundError",
    "NotificationError",
    "ProviderUserNotFoundError",
    "ProvisioningConflictError",
    "ResourceNotFoundError",
    "ServiceConfigurationError",
    "UnauthorizedRequestError",
    "UpstreamServiceError",
]
