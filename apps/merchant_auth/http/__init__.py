"""HTTP surface for the merchant auth service."""

from .role_routes import role_bp

__all__ = ["role_bp"]
