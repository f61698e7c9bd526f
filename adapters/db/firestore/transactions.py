"""Store-agnostic transaction boundary backed by Firestore optimistic transactions."""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol, TypeVar

from google.api_core.exceptions import Aborted
from google.cloud import firestore

from .base import TransactionConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionRunner(Protocol):
    """Runs ``fn(transaction)`` atomically, retrying it on write conflicts.

    ``fn`` must perform every read before its first write and must be safe to
    re-run from the top. Exceptions raised by ``fn`` abort the attempt and
    propagate unchanged.
    """

    def run(self, fn: Callable[[Any], T]) -> T: ...


class FirestoreTransactionRunner:
    """``TransactionRunner`` over ``google.cloud.firestore.transactional``."""

    def __init__(self, client: firestore.Client, *, max_attempts: int = 5) -> None:
        self._client = client
        self._max_attempts = max(1, int(max_attempts))

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def run(self, fn: Callable[[Any], T]) -> T:
        transaction = self._client.transaction(max_attempts=self._max_attempts)

        @firestore.transactional
        def _invoke(tx: firestore.Transaction) -> T:
            return fn(tx)

        try:
            return _invoke(transaction)
        except ValueError as exc:
            # the driver reports exhausted retries as ValueError chained from Aborted
            if isinstance(exc.__cause__, Aborted):
                logger.warning(
                    "Firestore transaction gave up after conflicts",
                    extra={"max_attempts": self._max_attempts},
                )
                raise TransactionConflictError(original_error=exc) from exc
            raise


__all__ = ["FirestoreTransactionRunner", "TransactionRunner"]
