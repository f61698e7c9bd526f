"""Tests for cookie sessions."""

from __future__ import annotations

import pytest

from apps.merchant_auth.services.sessions import SESSION_PREFIX


@pytest.fixture
def sessions(runtime):
    return runtime.sessions


def test_create_session_persists_record(sessions, fs_client, clock):
    record = sessions.create_session("acct-1", "cashier")

    assert record.session_id.startswith(SESSION_PREFIX)
    assert record.cookie_name == "cashier_session"
    assert record.expires_at_ms == clock.now() + 8 * 3600 * 1000

    stored = fs_client.dump(f"sessions/{record.session_id}")
    assert stored["account_id"] == "acct-1"
    assert stored["role"] == "cashier"


def test_validate_returns_live_session(sessions):
    record = sessions.create_session("acct-1", "admin")

    assert sessions.validate(record.session_id).account_id == "acct-1"
    assert sessions.validate(record.session_id, role="admin") is not None


@pytest.mark.parametrize("session_id", [None, "", "not-a-session", f"{SESSION_PREFIX}unknown"])
def test_validate_rejects_unknown_ids(sessions, session_id):
    assert sessions.validate(session_id) is None


def test_validate_rejects_other_role(sessions):
    record = sessions.create_session("acct-1", "cashier")

    assert sessions.validate(record.session_id, role="branch-manager") is None


def test_new_session_revokes_previous(sessions, fs_client):
    first = sessions.create_session("acct-1", "cashier")
    second = sessions.create_session("acct-1", "cashier")

    assert sessions.validate(first.session_id) is None
    assert sessions.validate(second.session_id) is not None
    assert fs_client.dump(f"sessions/{first.session_id}") is None


def test_sessions_of_other_accounts_survive(sessions):
    mine = sessions.create_session("acct-1", "cashier")
    sessions.create_session("acct-2", "cashier")

    assert sessions.validate(mine.session_id) is not None


def test_expired_sessions_are_invalid_until_reaped(sessions, fs_client, clock):
    old = sessions.create_session("acct-1", "admin")
    clock.advance(8 * 3600)
    fresh = sessions.create_session("acct-2", "admin")

    assert sessions.validate(old.session_id) is None
    assert fs_client.dump(f"sessions/{old.session_id}") is not None

    assert sessions.reap_expired() == 1
    assert fs_client.dump(f"sessions/{old.session_id}") is None
    assert sessions.validate(fresh.session_id) is not None


def test_destroy(sessions):
    record = sessions.create_session("acct-1", "staff")

    sessions.destroy(record.session_id)
    sessions.destroy(None)

    assert sessions.validate(record.session_id) is None
