"""Configuration utilities and loaders."""

from .auth import AuthConfig
from .auth0 import Auth0MgmtConfig

__all__ = [
    "Auth0MgmtConfig",
    "AuthConfig",
]
