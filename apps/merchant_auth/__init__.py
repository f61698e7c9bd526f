"""Merchant auth service package bootstrap."""

from __future__ import annotations

from .main import MerchantRuntime, bootstrap_runtime, build_runtime, create_app, register_healthcheck

__all__ = ["MerchantRuntime", "bootstrap_runtime", "build_runtime", "create_app", "register_healthcheck"]
