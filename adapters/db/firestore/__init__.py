"""Firestore repositories and factories."""

from .account_store import AccountRepository  # noqa: F401
from .base import FirestoreError, OperationResult, TransactionConflictError  # noqa: F401
from .branch_store import BranchRepository, CashierRepository  # noqa: F401
from .invite_store import InviteRepository  # noqa: F401
from .organization_store import OrganizationRepository  # noqa: F401
from .service_factory import FirestoreServiceFactory, build_service_factory_with_config  # noqa: F401
from .session_store import SessionRepository  # noqa: F401
from .transactions import FirestoreTransactionRunner, TransactionRunner  # noqa: F401
