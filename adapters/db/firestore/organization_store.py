"""Firestore repository for organization aggregates."""

from __future__ import annotations

from typing import Any, Dict, Optional, Set

from google.cloud import firestore

from .base import OperationResult, TimestampedRepository, ValidationError
from .models import Organization, create_organization

# Upper bound for a prefix range scan on string fields.
PREFIX_SENTINEL = "\uf8ff"


class OrganizationRepository(TimestampedRepository):
    """Organization repository encapsulating Firestore access patterns."""

    def __init__(self, client: firestore.Client):
        super().__init__(client, "organizations")
        self._required_fields = ["organization_id", "name", "slug", "owner_id"]

    def document(self, organization_id: str) -> Any:
        return self.collection.document(organization_id)

    def new_id(self) -> str:
        """Reserve a fresh auto-generated document id."""

        return self.collection.document().id

    # CRUD -----------------------------------------------------------------

    def create(self, entity: Organization) -> OperationResult[str]:
        """Create an organization."""

        try:
            data = entity.to_dict()
            self._validate_required_fields(data, self._required_fields)
            payload = self._add_timestamps(data)

            self.document(entity.organization_id).set(payload)

            return OperationResult[str](success=True, data=entity.organization_id)
        except Exception as exc:  # noqa: BLE001 - delegated to handler
            self._handle_firestore_error("create organization", exc)

    def get_by_id(self, organization_id: str) -> OperationResult[Organization]:
        """Get an organization by ID."""

        try:
            doc = self._execute_with_retry("get organization", lambda: self.document(organization_id).get())
            if not doc.exists:
                return OperationResult[Organization](success=False, error="Organization not found", error_code="NOT_FOUND")

            return OperationResult[Organization](success=True, data=create_organization(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("get organization", exc)

    def update(self, organization_id: str, updates: Dict[str, Any]) -> OperationResult[Organization]:
        """Update an organization."""

        try:
            payload = self._add_timestamps(dict(updates), include_created=False)
            doc_ref = self.document(organization_id)
            doc_ref.set(payload, merge=True)

            doc = doc_ref.get()
            return OperationResult[Organization](success=True, data=create_organization(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("update organization", exc)

    def delete(self, organization_id: str) -> OperationResult[bool]:
        """Delete an organization."""

        try:
            self.document(organization_id).delete()
            return OperationResult(success=True, data=True)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("delete organization", exc)

    # Transactional helpers -----------------------------------------------

    def read(self, transaction: Any, organization_id: str) -> Optional[Organization]:
        """Read an organization inside ``transaction``."""

        doc = self.document(organization_id).get(transaction=transaction)
        if not doc.exists:
            return None
        return create_organization(doc.id, doc.to_dict())

    def stage_create(self, transaction: Any, entity: Organization) -> None:
        data = entity.to_dict()
        self._validate_required_fields(data, self._required_fields)
        transaction.set(self.document(entity.organization_id), self._add_timestamps(data))

    def stage_update(self, transaction: Any, organization_id: str, updates: Dict[str, Any]) -> None:
        transaction.update(self.document(organization_id), self._add_timestamps(dict(updates), include_created=False))

    # Domain helpers -------------------------------------------------------

    def find_by_owner(self, owner_id: str) -> Optional[Organization]:
        """Return the organization owned by ``owner_id`` if any."""

        try:
            query = self.collection.where("owner_id", "==", owner_id).limit(1)
            docs = self._execute_with_retry("find organization by owner", lambda: list(query.stream()))
            if not docs:
                return None
            return create_organization(docs[0].id, docs[0].to_dict())
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("find organization by owner", exc)

    def slugs_with_prefix(self, base: str) -> Set[str]:
        """Return every organization slug that starts with ``base``."""

        if not base:
            raise ValidationError("slug prefix is required")

        try:
            query = (
                self.collection.where("slug", ">=", base)
                .where("slug", "<=", base + PREFIX_SENTINEL)
            )
            docs = self._execute_with_retry("scan organization slugs", lambda: list(query.stream()))
            return {str((doc.to_dict() or {}).get("slug")) for doc in docs}
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("scan organization slugs", exc)

    def increment_counters(self, organization_id: str, **deltas: int) -> OperationResult[bool]:
        """Apply server-side increments to the named counters."""

        updates: Dict[str, Any] = {name: firestore.Increment(delta) for name, delta in deltas.items() if delta}
        if not updates:
            return OperationResult(success=True, data=False)

        try:
            self.document(organization_id).update(self._add_timestamps(updates, include_created=False))
            return OperationResult(success=True, data=True)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("increment organization counters", exc)


__all__ = ["OrganizationRepository", "PREFIX_SENTINEL"]
