"""Service factory for creating and managing Firestore repositories."""

import logging
from typing import Any, Callable, Dict, Optional, TypeVar

from google.cloud import firestore

from .account_store import AccountRepository
from .base import FirestoreError
from .branch_store import BranchRepository, CashierRepository
from .client import get_firestore_client
from .invite_store import InviteRepository
from .organization_store import OrganizationRepository
from .session_store import SessionRepository
from .transactions import FirestoreTransactionRunner, TransactionRunner

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FirestoreServiceFactory:
    """
    Manual DI factory for Firestore repositories.
    Boundary-first: the Firestore client and the transaction runner are injectable.
    Lifetimes: default singleton per factory instance.
    """

    def __init__(
        self,
        client: Optional[firestore.Client] = None,
        *,
        config: Optional[Any] = None,
        transaction_runner: Optional[TransactionRunner] = None,
    ):
        """Pass a client directly for tests; otherwise a client is built from ``config`` on demand."""

        self._client = client
        self.config = config
        self._transaction_runner = transaction_runner
        self._repositories: Dict[str, Any] = {}

    @property
    def client(self) -> firestore.Client:
        """Get or create the Firestore client."""

        if self._client is None:
            self._client = get_firestore_client(self.config)
            if self._client is None:
                raise FirestoreError("Firestore client is not configured", error_code="UNAVAILABLE")

        return self._client

    @property
    def transaction_runner(self) -> TransactionRunner:
        if self._transaction_runner is None:
            self._transaction_runner = FirestoreTransactionRunner(
                self.client,
                max_attempts=int(getattr(self.config, 'transaction_max_attempts', 5) or 5),
            )
        return self._transaction_runner

    def run_transaction(self, fn: Callable[[Any], T]) -> T:
        """Run ``fn(transaction)`` through the configured transaction runner."""

        return self.transaction_runner.run(fn)

    def batch(self) -> Any:
        return self.client.batch()

    def _get_repository(self, key: str, factory: Callable[[firestore.Client], Any]) -> Any:
        """Memoize repository instances by key."""

        if key not in self._repositories:
            self._repositories[key] = factory(self.client)

        return self._repositories[key]

    def get_organization_service(self) -> OrganizationRepository:
        return self._get_repository('organizations', OrganizationRepository)

    def get_branch_service(self) -> BranchRepository:
        return self._get_repository('branches', BranchRepository)

    def get_cashier_service(self) -> CashierRepository:
        return self._get_repository('cashiers', CashierRepository)

    def get_account_service(self) -> AccountRepository:
        return self._get_repository('accounts', AccountRepository)

    def get_invite_service(self) -> InviteRepository:
        return self._get_repository('invites', InviteRepository)

    def get_session_service(self) -> SessionRepository:
        return self._get_repository('sessions', SessionRepository)

    def reset_repositories(self) -> None:
        """Reset all repositories (for testing)."""

        self._repositories.clear()

    def health_check(self) -> Dict[str, Any]:
        """Perform a lightweight connectivity check against Firestore."""

        try:
            # collections() is lazy; advancing it forces one API round trip
            _ = next(iter(self.client.collections()), None)
            return {'status': 'healthy', 'client_initialized': True}
        except Exception as e:
            logger.error(f"Firestore health check failed: {e}")
            return {'status': 'unhealthy', 'error': str(e), 'client_initialized': self._client is not None}


def build_service_factory_with_config(config) -> FirestoreServiceFactory:
    """Composition-root helper: build a factory using config to obtain a client."""

    return FirestoreServiceFactory(client=None, config=config)
