"""Role-account routes: invite, credential setup, sign-in and cookie sessions.

Collaborators are attached to the request by ``apps.merchant_auth.main`` so the
module stays free of import-time side effects.
"""

from __future__ import annotations

import hashlib
from typing import Any, Optional

from flask import Blueprint, g, jsonify, request

from adapters.db.firestore.base import TransactionConflictError
from app_platform.contracts import AccountRole
from app_platform.errors.api import make_error
from logging_lib import get_logger as get_structured_logger

from apps.merchant_auth.http.schemas import (
    SchemaValidationError,
    parse_check_exists,
    parse_invite,
    parse_reset,
    parse_set_credential,
    parse_set_pin,
    parse_signin,
    parse_signout,
)
from apps.merchant_auth.services import (
    AccountDisabledError,
    AccountValidationError,
    ForbiddenActionError,
    InviteAlreadyUsedError,
    InviteExpiredError,
    ProvisioningConflictError,
    ResourceNotFoundError,
    UnauthorizedRequestError,
    UpstreamServiceError,
)


role_bp = Blueprint("merchant_auth", __name__, url_prefix="/auth")

logger = get_structured_logger("merchant_auth.routes")


def _scrub_identifier(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    digest = hashlib.sha256(value.strip().lower().encode("utf-8")).hexdigest()
    return digest[:12]


def _service() -> Any:
    return getattr(request, "role_account_service", None)


def _unavailable() -> Any:
    logger.error("Role account service missing on request")
    return make_error("Service unavailable", "INTERNAL_ERROR")


def _error_response(exc: Exception, *, action: str) -> Any:
    """Translate a service exception into the JSON error envelope."""

    if isinstance(exc, (SchemaValidationError, AccountValidationError)):
        logger.info(f"{action} rejected: invalid payload", extra={"error": str(exc)})
        return make_error(str(exc), "VALIDATION_ERROR")
    if isinstance(exc, InviteAlreadyUsedError):
        return make_error(str(exc) or "Invite already used", "INVITE_ALREADY_USED")
    if isinstance(exc, InviteExpiredError):
        return make_error(str(exc) or "Invite expired", "INVITE_EXPIRED")
    if isinstance(exc, ResourceNotFoundError):
        return make_error(str(exc) or "Not found", "NOT_FOUND")
    if isinstance(exc, UnauthorizedRequestError):
        return make_error(str(exc) or "Unauthorized", "UNAUTHORIZED")
    if isinstance(exc, ForbiddenActionError):
        return make_error(str(exc) or "Forbidden", "FORBIDDEN")
    if isinstance(exc, ProvisioningConflictError):
        return make_error(str(exc) or "Conflict", "CONFLICT")
    if isinstance(exc, (UpstreamServiceError, TransactionConflictError)):
        logger.error(f"{action} failed upstream", extra={"error_type": type(exc).__name__, "error": str(exc)})
        return make_error("Internal server error", "INTERNAL_ERROR")
    logger.exception(f"{action} failed", extra={"error_type": type(exc).__name__})
    return make_error("Internal server error", "INTERNAL_ERROR")


def _admin_session(service: Any) -> Any:
    admin_role = AccountRole.ADMIN.value
    cookie = request.cookies.get(service.cookie_name(admin_role))
    return service.current_session(admin_role, cookie)


def _session_max_age() -> int:
    config = getattr(request, "auth_config", None)
    return int(getattr(config, "session_ttl_seconds", 8 * 60 * 60))


def _secure_cookies() -> bool:
    config = getattr(request, "auth_config", None)
    return bool(getattr(config, "is_production", False))


@role_bp.route("/invite", methods=["POST"])
def invite() -> Any:
    service = _service()
    if service is None:
        return _unavailable()

    payload = request.get_json(silent=True) or {}
    try:
        schema = parse_invite(payload)
        inviter = _admin_session(service)
        account = service.invite(schema.role, schema.email, schema.name, inviter=inviter)
    except Exception as exc:  # noqa: BLE001
        return _error_response(exc, action="Invite")

    g.account_id = inviter.account_id if inviter is not None else None
    logger.info(
        "Role account invite issued",
        extra={
            "role": schema.role,
            "account_id": account.account_id,
            "email_hash": _scrub_identifier(schema.email),
        },
    )
    return jsonify({"ok": True}), 200


@role_bp.route("/check-exists", methods=["POST"])
def check_exists() -> Any:
    service = _service()
    if service is None:
        return _unavailable()

    payload = request.get_json(silent=True) or {}
    try:
        schema = parse_check_exists(payload)
        exists = service.check_exists(schema.role, schema.email)
    except Exception as exc:  # noqa: BLE001
        return _error_response(exc, action="Existence check")

    return jsonify({"ok": True, "exists": bool(exists)}), 200


@role_bp.route("/set-credential", methods=["POST"])
def set_credential() -> Any:
    service = _service()
    if service is None:
        return _unavailable()

    payload = request.get_json(silent=True) or {}
    config = getattr(request, "auth_config", None)
    min_length = int(getattr(config, "password_min_length", 8))
    try:
        schema = parse_set_credential(payload, password_min_length=min_length)
        account = service.set_credential(schema.role, schema.token, schema.secret)
    except Exception as exc:  # noqa: BLE001
        return _error_response(exc, action="Set credential")

    g.account_id = account.account_id
    logger.info("Credential set from invite", extra={"role": schema.role, "account_id": account.account_id})
    return jsonify({"ok": True}), 200


@role_bp.route("/signin", methods=["POST"])
def signin() -> Any:
    service = _service()
    if service is None:
        return _unavailable()

    payload = request.get_json(silent=True) or {}
    try:
        schema = parse_signin(payload)
        result = service.sign_in(schema.role, schema.identifier, schema.secret)
    except AccountDisabledError:
        logger.info("Sign-in refused for disabled account", extra={"role": payload.get("role")})
        return make_error("Account is disabled", "FORBIDDEN")
    except UnauthorizedRequestError:
        return make_error("Invalid credentials", "UNAUTHORIZED")
    except Exception as exc:  # noqa: BLE001
        return _error_response(exc, action="Sign-in")

    g.account_id = result.account.account_id
    response = jsonify({"ok": True})
    response.set_cookie(
        result.session.cookie_name,
        result.session.session_id,
        max_age=_session_max_age(),
        httponly=True,
        secure=_secure_cookies(),
        samesite="Lax",
        path="/",
    )
    logger.info(
        "Role account signed in",
        extra={"role": schema.role, "account_id": result.account.account_id, "credential_upgraded": result.upgraded},
    )
    return response, 200


@role_bp.route("/set-pin", methods=["POST"])
def set_pin() -> Any:
    service = _service()
    if service is None:
        return _unavailable()

    payload = request.get_json(silent=True) or {}
    try:
        schema = parse_set_pin(payload)
        cookie = request.cookies.get(service.cookie_name(schema.role))
        account = service.set_own_pin(schema.role, cookie, schema.pin)
    except Exception as exc:  # noqa: BLE001
        return _error_response(exc, action="Set PIN")

    g.account_id = account.account_id
    logger.info("Self-service PIN changed", extra={"role": schema.role, "account_id": account.account_id})
    return jsonify({"ok": True}), 200


@role_bp.route("/reset-password", methods=["POST"])
def reset_password() -> Any:
    service = _service()
    if service is None:
        return _unavailable()

    payload = request.get_json(silent=True) or {}
    try:
        schema = parse_reset(payload)
    except SchemaValidationError as exc:
        return _error_response(exc, action="Reset")

    try:
        service.request_reset(schema.role, schema.email)
    except Exception:  # noqa: BLE001
        # the caller always gets the same answer
        logger.exception("Reset request failed", extra={"role": schema.role})

    return jsonify({"ok": True}), 200


@role_bp.route("/signout", methods=["POST"])
def signout() -> Any:
    service = _service()
    if service is None:
        return _unavailable()

    payload = request.get_json(silent=True) or {}
    try:
        schema = parse_signout(payload, fallback_role=request.args.get("role"))
        cookie_name = service.cookie_name(schema.role)
        service.sign_out(schema.role, request.cookies.get(cookie_name))
    except Exception as exc:  # noqa: BLE001
        return _error_response(exc, action="Sign-out")

    response = jsonify({"ok": True})
    response.delete_cookie(cookie_name, path="/", samesite="Lax", secure=_secure_cookies(), httponly=True)
    return response, 200


@role_bp.route("/session", methods=["GET"])
def current_session() -> Any:
    service = _service()
    if service is None:
        return _unavailable()

    try:
        schema = parse_signout({}, fallback_role=request.args.get("role"))
        cookie_name = service.cookie_name(schema.role)
        record = service.current_session(schema.role, request.cookies.get(cookie_name))
    except Exception as exc:  # noqa: BLE001
        return _error_response(exc, action="Session lookup")

    if record is None:
        return make_error("Not signed in", "UNAUTHORIZED")

    g.account_id = record.account_id
    return jsonify({"ok": True, "accountId": record.account_id, "role": record.role}), 200


__all__ = ["role_bp"]
