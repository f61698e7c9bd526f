"""Custom exceptions used across merchant provisioning and credential services."""

from __future__ import annotations


class ServiceConfigurationError(RuntimeError):
    """Raised when required configuration for a service is missing."""


class AccountValidationError(RuntimeError):
    """Raised when caller-supplied input (email, PIN, name) is malformed."""


class ResourceNotFoundError(RuntimeError):
    """Raised when an organization, branch, cashier, or account does not exist."""


class InviteNotFoundError(ResourceNotFoundError):
    """Raised when no invite matches the presented token."""


class InviteExpiredError(RuntimeError):
    """Raised when an invite is past its expiry."""


class InviteAlreadyUsedError(RuntimeError):
    """Raised when an invite has already been consumed."""


class UnauthorizedRequestError(RuntimeError):
    """Raised when the caller is not who they claim or does not own the resource."""


class ForbiddenActionError(RuntimeError):
    """Raised when an authenticated actor acts outside its tenant scope."""


class AccountDisabledError(ForbiddenActionError):
    """Raised when a disabled account tries to sign in."""


class ProvisioningConflictError(RuntimeError):
    """Raised when an identity or tenant link already exists."""


class UpstreamServiceError(RuntimeError):
    """Raised when a downstream dependency responds with an error."""


class ProviderUserNotFoundError(UpstreamServiceError):
    """Raised when the identity provider has no record for a uid."""


class NotificationError(RuntimeError):
    """Raised when a setup link could not be delivered."""
