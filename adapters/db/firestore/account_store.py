"""Firestore repository for account profiles (the ``accounts`` collection)."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from google.cloud import firestore

from .base import OperationResult, TimestampedRepository
from .models import Account, create_account

# Sign-in identifiers are matched against these fields, in order.
LOGIN_FIELDS = ("username", "login_email", "email")


class AccountRepository(TimestampedRepository):
    """Account profiles keyed by the provider uid."""

    def __init__(self, client: firestore.Client):
        super().__init__(client, "accounts")
        self._required_fields = ["account_id", "role", "status"]

    def document(self, account_id: str) -> Any:
        return self.collection.document(account_id)

    def new_id(self) -> str:
        return self.collection.document().id

    def create(self, entity: Account) -> OperationResult[str]:
        try:
            data = entity.to_dict()
            self._validate_required_fields(data, self._required_fields)
            self.document(entity.account_id).set(self._add_timestamps(data))
            return OperationResult(success=True, data=entity.account_id)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("create account", exc)

    def get_by_id(self, account_id: str) -> OperationResult[Account]:
        try:
            doc = self._execute_with_retry("get account", lambda: self.document(account_id).get())
            if not doc.exists:
                return OperationResult(success=False, error="Account not found", error_code="NOT_FOUND")
            return OperationResult(success=True, data=create_account(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("get account", exc)

    def get(self, account_id: str) -> Optional[Account]:
        result = self.get_by_id(account_id)
        return result.data if result.success else None

    def update(self, account_id: str, updates: Dict[str, Any]) -> OperationResult[Account]:
        try:
            doc_ref = self.document(account_id)
            doc_ref.set(self._add_timestamps(dict(updates), include_created=False), merge=True)
            doc = doc_ref.get()
            return OperationResult(success=True, data=create_account(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("update account", exc)

    def delete(self, account_id: str) -> OperationResult[bool]:
        try:
            self.document(account_id).delete()
            return OperationResult(success=True, data=True)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("delete account", exc)

    # Transactional helpers -----------------------------------------------

    def read(self, transaction: Any, account_id: str) -> Optional[Account]:
        doc = self.document(account_id).get(transaction=transaction)
        if not doc.exists:
            return None
        return create_account(doc.id, doc.to_dict())

    def stage_set(self, transaction: Any, entity: Account) -> None:
        """Write the full profile, replacing whatever was stored."""

        data = entity.to_dict()
        self._validate_required_fields(data, self._required_fields)
        transaction.set(self.document(entity.account_id), self._add_timestamps(data))

    def stage_update(self, transaction: Any, account_id: str, updates: Dict[str, Any]) -> None:
        transaction.update(self.document(account_id), self._add_timestamps(dict(updates), include_created=False))

    def stage_delete(self, transaction: Any, account_id: str) -> None:
        transaction.delete(self.document(account_id))

    # Lookups --------------------------------------------------------------

    def find_one(self, field_name: str, value: str, *, role: Optional[str] = None) -> Optional[Account]:
        """Return the first account whose ``field_name`` equals ``value``."""

        try:
            query = self.collection.where(field_name, "==", value)
            if role is not None:
                query = query.where("role", "==", role)
            docs = self._execute_with_retry(f"find account by {field_name}", lambda: list(query.limit(1).stream()))
            if not docs:
                return None
            return create_account(docs[0].id, docs[0].to_dict())
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error(f"find account by {field_name}", exc)

    def find_by_login(
        self,
        identifier: str,
        *,
        role: Optional[str] = None,
        fields: Iterable[str] = LOGIN_FIELDS,
    ) -> Optional[Account]:
        """Resolve a sign-in identifier against username and email fields."""

        candidate = identifier.strip()
        if not candidate:
            return None

        for field_name in fields:
            value = candidate.lower() if field_name != "username" else candidate
            account = self.find_one(field_name, value, role=role)
            if account is not None:
                return account
        return None


__all__ = ["AccountRepository", "LOGIN_FIELDS"]
