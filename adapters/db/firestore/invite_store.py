"""Firestore repository for invite token documents."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from google.cloud import firestore

from .base import OperationResult, TimestampedRepository
from .models import InviteToken, create_invite_token


class InviteRepository(TimestampedRepository):
    """Invites keyed by the sha256 digest of the raw token; raw tokens are never stored."""

    def __init__(self, client: firestore.Client):
        super().__init__(client, "invites")
        self._required_fields = ["token_hash", "role", "email", "expires_at_ms"]

    def document(self, token_hash: str) -> Any:
        return self.collection.document(token_hash)

    def create(self, entity: InviteToken) -> OperationResult[str]:
        try:
            data = entity.to_dict()
            self._validate_required_fields(data, self._required_fields)
            self.document(entity.token_hash).set(self._add_timestamps(data))
            return OperationResult(success=True, data=entity.token_hash)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("create invite", exc)

    def get_by_id(self, token_hash: str) -> OperationResult[InviteToken]:
        try:
            doc = self._execute_with_retry("get invite", lambda: self.document(token_hash).get())
            if not doc.exists:
                return OperationResult(success=False, error="Invite not found", error_code="NOT_FOUND")
            return OperationResult(success=True, data=create_invite_token(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("get invite", exc)

    def update(self, token_hash: str, updates: Dict[str, Any]) -> OperationResult[InviteToken]:
        try:
            doc_ref = self.document(token_hash)
            doc_ref.set(self._add_timestamps(dict(updates), include_created=False), merge=True)
            doc = doc_ref.get()
            return OperationResult(success=True, data=create_invite_token(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("update invite", exc)

    def delete(self, token_hash: str) -> OperationResult[bool]:
        try:
            self.document(token_hash).delete()
            return OperationResult(success=True, data=True)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("delete invite", exc)

    # Transactional helpers -----------------------------------------------

    def read(self, transaction: Any, token_hash: str) -> Optional[InviteToken]:
        doc = self.document(token_hash).get(transaction=transaction)
        if not doc.exists:
            return None
        return create_invite_token(doc.id, doc.to_dict())

    def stage_mark_used(self, transaction: Any, token_hash: str, *, used_at: int) -> None:
        transaction.update(
            self.document(token_hash),
            self._add_timestamps({"used": True, "used_at": used_at}, include_created=False),
        )

    # Domain helpers -------------------------------------------------------

    def list_for_recipient(self, role: str, email: str) -> List[InviteToken]:
        """Return every invite addressed to ``email`` for ``role``."""

        try:
            query = self.collection.where("email", "==", email.lower()).where("role", "==", role)
            docs = self._execute_with_retry("list invites", lambda: list(query.stream()))
            return [create_invite_token(doc.id, doc.to_dict()) for doc in docs]
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("list invites", exc)

    def list_for_account(self, account_id: str) -> List[InviteToken]:
        """Return every invite bound to ``account_id``."""

        try:
            query = self.collection.where("account_id", "==", account_id)
            docs = self._execute_with_retry("list account invites", lambda: list(query.stream()))
            return [create_invite_token(doc.id, doc.to_dict()) for doc in docs]
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("list account invites", exc)


__all__ = ["InviteRepository"]
