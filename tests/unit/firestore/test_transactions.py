"""Tests for the Firestore transaction runner."""

from unittest.mock import Mock

import pytest
from google.api_core.exceptions import Aborted

from adapters.db.firestore import transactions as transactions_module
from adapters.db.firestore.base import TransactionConflictError
from adapters.db.firestore.transactions import FirestoreTransactionRunner


@pytest.fixture
def passthrough_transactional(monkeypatch):
    """Replace the driver's retry decorator with a direct call."""

    monkeypatch.setattr(transactions_module.firestore, "transactional", lambda fn: fn)


def test_runs_callable_with_driver_transaction(passthrough_transactional):
    client = Mock()
    runner = FirestoreTransactionRunner(client, max_attempts=3)

    result = runner.run(lambda tx: ("ran", tx))

    client.transaction.assert_called_once_with(max_attempts=3)
    assert result == ("ran", client.transaction.return_value)


def test_max_attempts_is_at_least_one():
    assert FirestoreTransactionRunner(Mock(), max_attempts=0).max_attempts == 1


def test_exhausted_retries_become_conflict_error(passthrough_transactional):
    runner = FirestoreTransactionRunner(Mock(), max_attempts=2)

    def contended(tx):
        raise ValueError("Failed to commit transaction in 2 attempts.") from Aborted("contention")

    with pytest.raises(TransactionConflictError) as exc_info:
        runner.run(contended)

    assert exc_info.value.error_code == "TRANSACTION_CONFLICT"
    assert isinstance(exc_info.value.original_error, ValueError)


def test_plain_value_errors_propagate(passthrough_transactional):
    runner = FirestoreTransactionRunner(Mock())

    def invalid(tx):
        raise ValueError("bad input")

    with pytest.raises(ValueError, match="bad input"):
        runner.run(invalid)


def test_domain_errors_propagate_unchanged(passthrough_transactional):
    class Refused(Exception):
        pass

    runner = FirestoreTransactionRunner(Mock())

    def refuse(tx):
        raise Refused()

    with pytest.raises(Refused):
        runner.run(refuse)
