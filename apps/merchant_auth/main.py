"""Merchant auth service composition root.

Entry points:
    - :func:`create_app` constructs and wires a Flask application instance.
    - :func:`build_runtime` wires the domain services over a Firestore factory.
    - :func:`bootstrap_runtime` loads configuration and builds the runtime.
    - :func:`register_healthcheck` exposes a lightweight readiness endpoint.

All runtime state is carried inside the application factory; no module-level
singletons are required, so the service runs safely under Gunicorn or Cloud Run
where multiple worker processes import the module concurrently.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from flask import Flask, jsonify, request

from adapters.db.firestore.base import now_ms
from adapters.db.firestore.service_factory import FirestoreServiceFactory, build_service_factory_with_config
from app_platform.config.auth import AuthConfig
from app_platform.config.auth0 import Auth0MgmtConfig
from app_platform.errors.api import register_error_handlers
from logging_lib import configure as configure_structured_logging, get_logger as get_structured_logger
from logging_lib.flask_ext import register_flask_context

from apps.merchant_auth.services import (
    Auth0ManagementClient,
    IdentityProvider,
    IdentityProvisioner,
    InviteTokenManager,
    Notifier,
    PinCredentialService,
    RoleAccountService,
    SessionManager,
    TenantHierarchyService,
    build_notifier,
)

logger = get_structured_logger("merchant_auth.main")


DEFAULT_CONFIG_PATH = os.getenv("AUTH_CONFIG_PATH", "configs/app/auth_config.json")


@dataclass(slots=True)
class MerchantRuntime:
    """Container for the merchant auth runtime dependencies."""

    config: AuthConfig
    firestore_factory: FirestoreServiceFactory
    credentials: PinCredentialService
    invites: InviteTokenManager
    identity: IdentityProvisioner
    sessions: SessionManager
    tenant_hierarchy: TenantHierarchyService
    role_accounts: RoleAccountService
    auth_provider: IdentityProvider
    notifier: Notifier
    http_session: Optional[requests.Session] = None


def build_runtime(
    config: AuthConfig,
    *,
    firestore_factory: Optional[FirestoreServiceFactory] = None,
    auth_provider: Optional[IdentityProvider] = None,
    notifier: Optional[Notifier] = None,
    clock: Optional[Callable[[], int]] = None,
) -> MerchantRuntime:
    """Wire the domain services; collaborators left as ``None`` are built from ``config``."""

    clock = clock or now_ms
    factory = firestore_factory or build_service_factory_with_config(config)

    http_session: Optional[requests.Session] = None
    if auth_provider is None:
        http_session = requests.Session()
        http_session.headers.update({"User-Agent": "merchant-auth-service/1.0"})
        auth_provider = Auth0ManagementClient(Auth0MgmtConfig.from_env(), http_session)

    notifier = notifier or build_notifier(config)
    credentials = PinCredentialService.from_config(config)
    invites = InviteTokenManager(
        invites=factory.get_invite_service(),
        transactions=factory.transaction_runner,
        config=config,
        clock=clock,
    )
    identity = IdentityProvisioner(
        config=config,
        firestore_factory=factory,
        credentials=credentials,
        invites=invites,
        provider=auth_provider,
        notifier=notifier,
        clock=clock,
    )
    sessions = SessionManager(config=config, firestore_factory=factory, clock=clock)
    tenant_hierarchy = TenantHierarchyService(
        config=config,
        firestore_factory=factory,
        identity=identity,
        invites=invites,
        sessions=sessions,
        clock=clock,
    )
    role_accounts = RoleAccountService(
        config=config,
        firestore_factory=factory,
        credentials=credentials,
        identity=identity,
        sessions=sessions,
    )

    return MerchantRuntime(
        config=config,
        firestore_factory=factory,
        credentials=credentials,
        invites=invites,
        identity=identity,
        sessions=sessions,
        tenant_hierarchy=tenant_hierarchy,
        role_accounts=role_accounts,
        auth_provider=auth_provider,
        notifier=notifier,
        http_session=http_session,
    )


def create_app(config_path: str | None = None, *, runtime: MerchantRuntime | None = None) -> Flask:
    """Construct the merchant auth Flask application.

    Parameters
    ----------
    config_path:
        Optional override for the auth configuration file location.
    runtime:
        Pre-built runtime; skips configuration loading when given.
    """

    configure_structured_logging(service="merchant-auth", env=os.getenv("MERCHANT_ENV", "local"))
    logger.info("Creating merchant auth application")

    app = Flask(__name__)
    register_flask_context(app, service="merchant-auth")
    register_error_handlers(app)

    if runtime is None:
        runtime = bootstrap_runtime(config_path=config_path)
    app.config.setdefault("MERCHANT_RUNTIME", runtime)

    register_healthcheck(app, runtime)
    _register_request_hooks(app, runtime)
    _register_blueprints(app)

    return app


def bootstrap_runtime(*, config_path: str | None = None) -> MerchantRuntime:
    """Load configuration and build the runtime against the configured Firestore project."""

    cfg_path = config_path or DEFAULT_CONFIG_PATH
    auth_config = AuthConfig.from_file(cfg_path)
    auth_config.validate()

    runtime = build_runtime(auth_config)

    logger.info(
        "Merchant auth runtime initialized",
        extra={
            "environment": auth_config.environment,
            "firestore_enabled": bool(auth_config.use_firestore),
            "auth_provider_enabled": bool(getattr(runtime.auth_provider, "enabled", False)),
            "notifier": type(runtime.notifier).__name__,
            "invite_requires_admin_session": auth_config.invite_requires_admin_session,
        },
    )
    return runtime


def register_healthcheck(app: Flask, runtime: MerchantRuntime) -> None:
    """Expose a simple readiness endpoint."""

    @app.route("/healthz", methods=["GET"])
    def _healthcheck():
        status = {
            "status": "ok",
            "environment": runtime.config.environment,
            "auth_provider": "enabled" if getattr(runtime.auth_provider, "enabled", False) else "disabled",
        }
        return jsonify(status), 200


def _register_request_hooks(app: Flask, runtime: MerchantRuntime) -> None:
    """Attach request lifecycle hooks so blueprints can pull dependencies."""

    @app.before_request
    def _attach_runtime_to_request() -> None:
        request.auth_config = runtime.config
        request.firestore_factory = runtime.firestore_factory
        request.role_account_service = runtime.role_accounts
        request.tenant_hierarchy = runtime.tenant_hierarchy
        request.session_manager = runtime.sessions


def _register_blueprints(app: Flask) -> None:
    from apps.merchant_auth.http import role_bp  # noqa: WPS433

    app.register_blueprint(role_bp)


def main() -> None:  # pragma: no cover - CLI entrypoint
    app = create_app()
    port = int(os.getenv("MERCHANT_AUTH_PORT", "9090"))
    host = os.getenv("MERCHANT_AUTH_HOST", "0.0.0.0")
    logger.info(f"Starting merchant auth service on {host}:{port}")
    app.run(host=host, port=port, debug=False)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
