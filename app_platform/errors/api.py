"""Central API error codes and registration helpers."""

from __future__ import annotations

from typing import Any, Dict

from flask import jsonify
from werkzeug.exceptions import HTTPException

from logging_lib import get_logger

logger = get_logger("app_platform.errors")


ERRORS: Dict[str, int] = {
    'VALIDATION_ERROR': 400,
    'INVITE_ALREADY_USED': 400,
    'UNAUTHORIZED': 401,
    'FORBIDDEN': 403,
    'NOT_FOUND': 404,
    'METHOD_NOT_ALLOWED': 405,
    'CONFLICT': 409,
    'INVITE_EXPIRED': 410,
    'INTERNAL_ERROR': 500,
}

INTERNAL_MESSAGE = 'Internal server error'

_HTTP_CODES: Dict[int, str] = {
    400: 'VALIDATION_ERROR',
    401: 'UNAUTHORIZED',
    403: 'FORBIDDEN',
    404: 'NOT_FOUND',
    405: 'METHOD_NOT_ALLOWED',
    409: 'CONFLICT',
    415: 'VALIDATION_ERROR',
}


def make_error(message: str, code: str) -> Any:
    """Render the ``{ok: false, message, code}`` envelope with the mapped status."""

    status = ERRORS.get(code, 500)
    if status >= 500:
        message = INTERNAL_MESSAGE

    return jsonify({'ok': False, 'message': message, 'code': code}), status


def register_error_handlers(app) -> None:
    """Register JSON error handlers on ``app``."""

    @app.errorhandler(404)
    def _h_404(_e):
        return make_error('Not found', 'NOT_FOUND')

    @app.errorhandler(405)
    def _h_405(_e):
        return make_error('Method not allowed', 'METHOD_NOT_ALLOWED')

    @app.errorhandler(Exception)
    def _h_exc(e: Exception):
        """Handle anything the blueprints did not map themselves."""

        if isinstance(e, HTTPException):
            code = _HTTP_CODES.get(e.code or 500, 'INTERNAL_ERROR')
            return make_error(e.description or e.name, code)

        logger.exception("Unhandled exception", extra={"error_type": type(e).__name__})
        return make_error(INTERNAL_MESSAGE, 'INTERNAL_ERROR')
