"""Opaque cookie sessions for role accounts with single-active-session semantics."""

from __future__ import annotations

import logging
import secrets
from typing import Callable, Optional

from adapters.db.firestore.base import now_ms
from adapters.db.firestore.models import SessionRecord
from adapters.db.firestore.service_factory import FirestoreServiceFactory
from app_platform.config.auth import AuthConfig
from app_platform.contracts import AccountRole

from .exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)

SESSION_PREFIX = "sess_"


def new_session_id() -> str:
    return f"{SESSION_PREFIX}{secrets.token_urlsafe(32)}"


class SessionManager:
    """Issue, validate, and revoke sessions stored in the ``sessions`` collection.

    Creating a session deletes the account's earlier sessions first. The two
    steps are not atomic, so for a brief window an account may hold zero or
    two valid sessions.
    """

    def __init__(
        self,
        *,
        config: AuthConfig,
        firestore_factory: FirestoreServiceFactory,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._config = config
        self._factory = firestore_factory
        self._clock = clock

    @property
    def _sessions(self):
        return self._factory.get_session_service()

    @property
    def ttl_seconds(self) -> int:
        return int(self._config.session_ttl_seconds)

    def create_session(self, account_id: str, role: str) -> SessionRecord:
        if not account_id:
            raise ValueError("account_id is required")
        role_value = AccountRole(role).value

        self._revoke_prior(account_id)

        issued_at = self._clock()
        record = SessionRecord(
            session_id=new_session_id(),
            account_id=account_id,
            role=role_value,
            cookie_name=self._config.cookie_name_for(role_value),
            expires_at_ms=issued_at + self.ttl_seconds * 1000,
        )
        result = self._sessions.create(record)
        if not result or not getattr(result, "success", False):
            raise UpstreamServiceError("Failed to persist session")

        logger.info(
            "Session created",
            extra={"account_id": account_id, "role": role_value, "expires_at_ms": record.expires_at_ms},
        )
        return record

    def validate(self, session_id: Optional[str], *, role: Optional[str] = None) -> Optional[SessionRecord]:
        """Return the live session for ``session_id`` or ``None``.

        Expired records are left in place for :meth:`reap_expired`.
        """

        if not session_id or not session_id.startswith(SESSION_PREFIX):
            return None

        result = self._sessions.get_by_id(session_id)
        if not result.success or result.data is None:
            return None

        record = result.data
        if record.is_expired(self._clock()):
            return None
        if role is not None and record.role != AccountRole(role).value:
            return None
        return record

    def destroy(self, session_id: Optional[str]) -> None:
        """Delete the session if it exists."""

        if not session_id:
            return
        self._sessions.delete(session_id)

    def destroy_for_account(self, account_id: str) -> int:
        return self._sessions.delete_many(self._sessions.ids_for_account(account_id))

    def reap_expired(self, limit: int = 100) -> int:
        """Delete up to ``limit`` expired sessions; returns how many were removed."""

        ids = self._sessions.expired_ids(self._clock(), limit=max(1, int(limit)))
        removed = self._sessions.delete_many(ids)
        if removed:
            logger.info("Expired sessions reaped", extra={"count": removed})
        return removed

    def _revoke_prior(self, account_id: str) -> None:
        try:
            self.destroy_for_account(account_id)
        except Exception as exc:  # noqa: BLE001 - cleanup must not block sign-in
            logger.warning(
                "Failed to revoke prior sessions",
                extra={"account_id": account_id, "error": str(exc)},
            )


__all__ = ["SESSION_PREFIX", "SessionManager", "new_session_id"]
