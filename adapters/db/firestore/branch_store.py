"""Firestore repositories for the branch and cashier sub-collections."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set, Tuple

from google.cloud import firestore

from .base import OperationResult, TimestampedRepository, ValidationError
from .models import Branch, Cashier, create_branch, create_cashier
from .organization_store import PREFIX_SENTINEL

BranchKey = Tuple[str, str]
CashierKey = Tuple[str, str, str]


class BranchRepository(TimestampedRepository):
    """Branches live at ``organizations/{orgId}/branches/{branchId}``."""

    def __init__(self, client: firestore.Client):
        super().__init__(client, "organizations")
        self._required_fields = ["branch_id", "organization_id", "name", "slug", "username", "branch_number"]

    def branches(self, organization_id: str) -> Any:
        return self.collection.document(organization_id).collection("branches")

    def document(self, organization_id: str, branch_id: str) -> Any:
        return self.branches(organization_id).document(branch_id)

    def new_id(self, organization_id: str) -> str:
        return self.branches(organization_id).document().id

    def create(self, entity: Branch) -> OperationResult[BranchKey]:
        try:
            data = entity.to_dict()
            self._validate_required_fields(data, self._required_fields)
            self.document(entity.organization_id, entity.branch_id).set(self._add_timestamps(data))
            return OperationResult(success=True, data=(entity.organization_id, entity.branch_id))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("create branch", exc)

    def get_by_id(self, entity_id: BranchKey) -> OperationResult[Branch]:
        organization_id, branch_id = entity_id
        try:
            doc = self._execute_with_retry("get branch", lambda: self.document(organization_id, branch_id).get())
            if not doc.exists:
                return OperationResult(success=False, error="Branch not found", error_code="NOT_FOUND")
            return OperationResult(success=True, data=create_branch(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("get branch", exc)

    def get(self, organization_id: str, branch_id: str) -> Optional[Branch]:
        result = self.get_by_id((organization_id, branch_id))
        return result.data if result.success else None

    def update(self, entity_id: BranchKey, updates: Dict[str, Any]) -> OperationResult[Branch]:
        organization_id, branch_id = entity_id
        try:
            doc_ref = self.document(organization_id, branch_id)
            doc_ref.set(self._add_timestamps(dict(updates), include_created=False), merge=True)
            doc = doc_ref.get()
            return OperationResult(success=True, data=create_branch(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("update branch", exc)

    def delete(self, entity_id: BranchKey) -> OperationResult[bool]:
        organization_id, branch_id = entity_id
        try:
            self.document(organization_id, branch_id).delete()
            return OperationResult(success=True, data=True)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("delete branch", exc)

    # Transactional helpers -----------------------------------------------

    def read(self, transaction: Any, organization_id: str, branch_id: str) -> Optional[Branch]:
        doc = self.document(organization_id, branch_id).get(transaction=transaction)
        if not doc.exists:
            return None
        return create_branch(doc.id, doc.to_dict())

    def stage_create(self, transaction: Any, entity: Branch) -> None:
        data = entity.to_dict()
        self._validate_required_fields(data, self._required_fields)
        transaction.set(self.document(entity.organization_id, entity.branch_id), self._add_timestamps(data))

    def stage_update(self, transaction: Any, organization_id: str, branch_id: str, updates: Dict[str, Any]) -> None:
        transaction.update(
            self.document(organization_id, branch_id),
            self._add_timestamps(dict(updates), include_created=False),
        )

    # Domain helpers -------------------------------------------------------

    def slugs_with_prefix(self, organization_id: str, base: str) -> Set[str]:
        """Return every branch slug in the organization that starts with ``base``."""

        if not base:
            raise ValidationError("slug prefix is required")

        try:
            query = (
                self.branches(organization_id)
                .where("slug", ">=", base)
                .where("slug", "<=", base + PREFIX_SENTINEL)
            )
            docs = self._execute_with_retry("scan branch slugs", lambda: list(query.stream()))
            return {str((doc.to_dict() or {}).get("slug")) for doc in docs}
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("scan branch slugs", exc)


class CashierRepository(TimestampedRepository):
    """Cashier listing rows at ``organizations/{orgId}/branches/{branchId}/cashiers/{cashierId}``."""

    def __init__(self, client: firestore.Client):
        super().__init__(client, "organizations")
        self._required_fields = ["cashier_id", "organization_id", "branch_id", "account_id", "username", "cashier_number"]

    def cashiers(self, organization_id: str, branch_id: str) -> Any:
        return (
            self.collection.document(organization_id)
            .collection("branches")
            .document(branch_id)
            .collection("cashiers")
        )

    def document(self, organization_id: str, branch_id: str, cashier_id: str) -> Any:
        return self.cashiers(organization_id, branch_id).document(cashier_id)

    def new_id(self, organization_id: str, branch_id: str) -> str:
        return self.cashiers(organization_id, branch_id).document().id

    def create(self, entity: Cashier) -> OperationResult[CashierKey]:
        try:
            data = entity.to_dict()
            self._validate_required_fields(data, self._required_fields)
            self.document(entity.organization_id, entity.branch_id, entity.cashier_id).set(self._add_timestamps(data))
            return OperationResult(success=True, data=(entity.organization_id, entity.branch_id, entity.cashier_id))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("create cashier", exc)

    def get_by_id(self, entity_id: CashierKey) -> OperationResult[Cashier]:
        organization_id, branch_id, cashier_id = entity_id
        try:
            doc = self.document(organization_id, branch_id, cashier_id).get()
            if not doc.exists:
                return OperationResult(success=False, error="Cashier not found", error_code="NOT_FOUND")
            return OperationResult(success=True, data=create_cashier(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("get cashier", exc)

    def update(self, entity_id: CashierKey, updates: Dict[str, Any]) -> OperationResult[Cashier]:
        organization_id, branch_id, cashier_id = entity_id
        try:
            doc_ref = self.document(organization_id, branch_id, cashier_id)
            doc_ref.set(self._add_timestamps(dict(updates), include_created=False), merge=True)
            doc = doc_ref.get()
            return OperationResult(success=True, data=create_cashier(doc.id, doc.to_dict()))
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("update cashier", exc)

    def delete(self, entity_id: CashierKey) -> OperationResult[bool]:
        organization_id, branch_id, cashier_id = entity_id
        try:
            self.document(organization_id, branch_id, cashier_id).delete()
            return OperationResult(success=True, data=True)
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("delete cashier", exc)

    def list_for_branch(self, organization_id: str, branch_id: str) -> List[Cashier]:
        try:
            docs = self._execute_with_retry(
                "list cashiers",
                lambda: list(self.cashiers(organization_id, branch_id).stream()),
            )
            return [create_cashier(doc.id, doc.to_dict()) for doc in docs]
        except Exception as exc:  # noqa: BLE001
            self._handle_firestore_error("list cashiers", exc)

    # Transactional helpers -----------------------------------------------

    def read(self, transaction: Any, organization_id: str, branch_id: str, cashier_id: str) -> Optional[Cashier]:
        doc = self.document(organization_id, branch_id, cashier_id).get(transaction=transaction)
        if not doc.exists:
            return None
        return create_cashier(doc.id, doc.to_dict())

    def stage_create(self, transaction: Any, entity: Cashier) -> None:
        data = entity.to_dict()
        self._validate_required_fields(data, self._required_fields)
        transaction.set(
            self.document(entity.organization_id, entity.branch_id, entity.cashier_id),
            self._add_timestamps(data),
        )

    def stage_delete(self, transaction: Any, organization_id: str, branch_id: str, cashier_id: str) -> None:
        transaction.delete(self.document(organization_id, branch_id, cashier_id))


__all__ = ["BranchKey", "BranchRepository", "CashierKey", "CashierRepository"]
