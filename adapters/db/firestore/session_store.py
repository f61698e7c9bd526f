"""Firestore repository for role-account cookie sessions."""

from __future__ import annotations

from typing import Any, Dict, List

from google.cloud import firestore

from .base import OperationResult, TimestampedRepository
from .models import SessionRecord, create_session_record


class SessionRepository(TimestampedRepository):
    """Sessions keyed by the opaque cookie value."""

    def __init__(self, client: firestore.Client):
        super().__init__(client, "sessions")
        self._required_fields = ["session_id", "account_id", "role", "expires_at_ms"]

    def document(self, session_id: str) -> Any:
        return self.collection.document(session_id)

    def create(self, entity: SessionRecord) -> OperationResult[str]:
        try:
            data = entity.to_dict()
            self._validate_required_fields(data, self._required_fields)
            self.document(entity.session_id).set(self._add_timestamps(data))
            return OperationResult(success=True, data=entity.session_id)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("create session", exc)

    def get_by_id(self, session_id: str) -> OperationResult[SessionRecord]:
        try:
            doc = self._execute_with_retry("get session", lambda: self.document(session_id).get())
            if not doc.exists:
                return OperationResult(success=False, error="Session not found", error_code="NOT_FOUND")
            return OperationResult(success=True, data=create_session_record(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("get session", exc)

    def update(self, session_id: str, updates: Dict[str, Any]) -> OperationResult[SessionRecord]:
        try:
            doc_ref = self.document(session_id)
            doc_ref.set(self._add_timestamps(dict(updates), include_created=False), merge=True)
            doc = doc_ref.get()
            return OperationResult(success=True, data=create_session_record(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("update session", exc)

    def delete(self, session_id: str) -> OperationResult[bool]:
        try:
            self.document(session_id).delete()
            return OperationResult(success=True, data=True)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("delete session", exc)

    def ids_for_account(self, account_id: str) -> List[str]:
        """Return the ids of every session stored for ``account_id``."""

        try:
            query = self.collection.where("account_id", "==", account_id)
            docs = self._execute_with_retry("list sessions", lambda: list(query.stream()))
            return [doc.id for doc in docs]
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("list sessions", exc)

    def expired_ids(self, now_ms: int, *, limit: int = 100) -> List[str]:
        """Return up to ``limit`` ids of sessions whose expiry is in the past."""

        try:
            query = self.collection.where("expires_at_ms", "<=", now_ms).limit(limit)
            docs = self._execute_with_retry("list expired sessions", lambda: list(query.stream()))
            return [doc.id for doc in docs]
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("list expired sessions", exc)

    def delete_many(self, session_ids: List[str]) -> int:
        """Delete ``session_ids`` in a single batch, returning how many were queued."""

        if not session_ids:
            return 0
        try:
            batch = self.client.batch()
            for session_id in session_ids:
                batch.delete(self.document(session_id))
            batch.commit()
            return len(session_ids)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("delete sessions", exc)


__all__ = ["SessionRepository"]
