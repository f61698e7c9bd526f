"""Base classes and interfaces for the Firestore data access layer."""

import logging
import os
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Protocol, TypeVar

from google.api_core.exceptions import NotFound, PermissionDenied

from app_platform.utils.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

T = TypeVar('T')
K = TypeVar('K')


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds."""

    return int(time.time() * 1000)


@dataclass
class OperationResult(Generic[T]):
    """Result of a database operation."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class FirestoreError(Exception):
    """Base exception for Firestore operations."""

    def __init__(self, message: str, error_code: str = "FIRESTORE_ERROR", original_error: Optional[Exception] = None):
        super().__init__(message)
        self.error_code = error_code
        self.original_error = original_error


class PermissionError(FirestoreError):
    """Permission denied error."""

    def __init__(self, message: str = "Permission denied", original_error: Optional[Exception] = None):
        super().__init__(message, "PERMISSION_DENIED", original_error)


class NotFoundError(FirestoreError):
    """Resource not found error."""

    def __init__(self, message: str = "Resource not found", original_error: Optional[Exception] = None):
        super().__init__(message, "NOT_FOUND", original_error)


class ValidationError(FirestoreError):
    """Data validation error."""

    def __init__(self, message: str = "Validation failed", original_error: Optional[Exception] = None):
        super().__init__(message, "VALIDATION_ERROR", original_error)


class TransactionConflictError(FirestoreError):
    """A transaction kept conflicting with concurrent writers and gave up."""

    def __init__(self, message: str = "Transaction retries exhausted", original_error: Optional[Exception] = None):
        super().__init__(message, "TRANSACTION_CONFLICT", original_error)


class FirestoreClientBoundary(Protocol):
    """Boundary-first protocol for Firestore-like clients used by repositories."""

    def collection(self, name: str) -> Any: ...
    def collections(self) -> Any: ...
    def batch(self) -> Any: ...


@dataclass
class RetryPolicy:
    """Retry/backoff and time budget settings for repository operations."""

    op_timeout_s: float = 0.25
    max_retries: int = 2        # 3 attempts total
    backoff_base_s: float = 0.01
    backoff_factor: float = 2.0
    backoff_cap_s: float = 0.05

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            op_timeout_s=float(os.getenv("FS_OP_TIMEOUT_S", "0.25")),
            max_retries=int(os.getenv("FS_MAX_RETRIES", "2")),
            backoff_base_s=float(os.getenv("FS_BACKOFF_BASE_S", "0.01")),
            backoff_factor=float(os.getenv("FS_BACKOFF_FACTOR", "2.0")),
            backoff_cap_s=float(os.getenv("FS_BACKOFF_CAP_S", "0.05")),
        )


class BaseRepository(ABC, Generic[T, K]):
    """Base repository interface for Firestore operations."""

    def __init__(
        self,
        client: FirestoreClientBoundary,
        collection_name: str,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self._client = client
        self._collection = client.collection(collection_name)
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._policy = retry_policy or RetryPolicy.from_env()
        self._breaker = breaker or CircuitBreaker(
            failure_threshold=int(os.getenv("FS_BREAKER_THRESHOLD", "5")),
            window_seconds=int(os.getenv("FS_BREAKER_WINDOW_S", "30")),
            half_open_after_s=int(os.getenv("FS_BREAKER_RESET_S", "15")),
        )

    @property
    def client(self) -> FirestoreClientBoundary:
        """Firestore client (read-only)."""

        return self._client

    @property
    def collection(self) -> Any:
        """Collection reference (read-only)."""

        return self._collection

    @abstractmethod
    def create(self, entity: T) -> OperationResult[K]:
        """Create a new entity."""

    @abstractmethod
    def get_by_id(self, entity_id: K) -> OperationResult[T]:
        """Get entity by ID."""

    @abstractmethod
    def update(self, entity_id: K, updates: Dict[str, Any]) -> OperationResult[T]:
        """Update entity by ID."""

    @abstractmethod
    def delete(self, entity_id: K) -> OperationResult[bool]:
        """Delete entity by ID."""

    def _handle_firestore_error(self, operation: str, error: Exception) -> None:
        """Convert driver errors to repository exceptions and raise them."""

        if isinstance(error, FirestoreError):
            raise error
        if isinstance(error, PermissionDenied):
            self.logger.error(f"Permission denied during {operation}: {error}")
            raise PermissionError(f"Permission denied during {operation}", error)
        if isinstance(error, NotFound):
            self.logger.error(f"Resource not found during {operation}: {error}")
            raise NotFoundError(f"Resource not found during {operation}", error)

        self.logger.error(f"Unexpected error during {operation}: {error}")
        raise FirestoreError(f"Error during {operation}: {str(error)}", original_error=error)

    def _validate_required_fields(self, data: Dict[str, Any], required_fields: List[str]) -> None:
        """Validate that required fields are present."""

        missing_fields = [name for name in required_fields if name not in data or data[name] is None]
        if missing_fields:
            raise ValidationError(f"Missing required fields: {', '.join(missing_fields)}")

    def _execute_with_retry(self, op_name: str, func: Callable[[], T]) -> T:
        """Execute func with bounded retries and a soft time budget under the breaker.

        The last exception is raised for the caller to route through
        ``_handle_firestore_error``. Never wrap transactional work in this;
        transactions carry their own retry loop.
        """

        if not self._breaker.allow_call():
            raise FirestoreError(f"Breaker open for operation: {op_name}", error_code="UNAVAILABLE")

        start = time.monotonic()
        attempt = 0
        while True:
            try:
                result = func()
                self._breaker.on_success()
                return result
            except (NotFound, PermissionDenied):
                raise
            except Exception as exc:
                if (time.monotonic() - start) >= self._policy.op_timeout_s or attempt >= self._policy.max_retries:
                    self._breaker.on_failure(exc)
                    raise

                sleep_ceiling = min(
                    self._policy.backoff_cap_s,
                    self._policy.backoff_base_s * (self._policy.backoff_factor ** attempt),
                )
                time.sleep(random.uniform(0.0, max(0.0, sleep_ceiling)))
                attempt += 1


class TimestampedRepository(BaseRepository[T, K]):
    """Repository with automatic millisecond timestamp management."""

    def _add_timestamps(self, data: Dict[str, Any], include_created: bool = True) -> Dict[str, Any]:
        """Stamp ``updated_at`` and, for new documents, ``created_at``."""

        stamp = now_ms()
        if include_created:
            data.setdefault('created_at', stamp)
        data['updated_at'] = stamp
        return data
