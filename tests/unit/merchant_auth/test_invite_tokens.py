"""Tests for one-time invite tokens."""

from __future__ import annotations

import pytest

from apps.merchant_auth.services import (
    AccountValidationError,
    InviteAlreadyUsedError,
    InviteExpiredError,
    InviteNotFoundError,
    InviteTokenManager,
)
from apps.merchant_auth.services.invite_tokens import hash_token


@pytest.fixture
def invites(runtime) -> InviteTokenManager:
    return runtime.invites


def test_only_the_digest_is_stored(invites, fs_client):
    raw = invites.issue("admin", "Root@LankaQR.lk", "Root")

    stored = fs_client.dump(f"invites/{hash_token(raw)}")
    assert stored is not None
    assert stored["email"] == "root@lankaqr.lk"
    assert stored["used"] is False
    assert raw not in str(stored)
    assert fs_client.paths("invites/") == [f"invites/{hash_token(raw)}"]


def test_onboarding_and_reset_ttls(invites, fs_client, clock):
    onboarding = invites.issue("staff", "a@lankaqr.lk")
    reset = invites.issue("staff", "b@lankaqr.lk", purpose="reset")

    assert fs_client.dump(f"invites/{hash_token(onboarding)}")["expires_at_ms"] == clock.now() + 24 * 3600 * 1000
    assert fs_client.dump(f"invites/{hash_token(reset)}")["expires_at_ms"] == clock.now() + 60 * 60 * 1000


def test_consume_once(invites):
    raw = invites.issue("admin", "root@lankaqr.lk", "Root", account_id="acct-1")

    claim = invites.consume(raw, role="admin")

    assert claim.email == "root@lankaqr.lk"
    assert claim.account_id == "acct-1"
    assert claim.purpose == "onboarding"
    with pytest.raises(InviteAlreadyUsedError):
        invites.consume(raw, role="admin")


def test_concurrent_consume_has_one_winner(invites, tx_runner):
    raw = invites.issue("admin", "root@lankaqr.lk", "Root", account_id="acct-1")
    winners = []
    tx_runner.inject(lambda: winners.append(invites.consume(raw, role="admin")))

    with pytest.raises(InviteAlreadyUsedError):
        invites.consume(raw, role="admin")

    assert [claim.account_id for claim in winners] == ["acct-1"]


def test_revoke_for_account_drops_unused_invites(invites, fs_client):
    used = invites.issue("branch-manager", "nimal@acme.lk", account_id="slot-1")
    invites.consume(used)
    pending = invites.issue("branch-manager", "kumari@acme.lk", account_id="slot-1")
    other = invites.issue("branch-manager", "sunil@acme.lk", account_id="slot-2")

    assert invites.revoke_for_account("slot-1") == 1

    assert fs_client.dump(f"invites/{hash_token(pending)}") is None
    assert fs_client.dump(f"invites/{hash_token(used)}")["used"] is True
    assert fs_client.dump(f"invites/{hash_token(other)}") is not None
    with pytest.raises(InviteNotFoundError):
        invites.consume(pending)


def test_apply_runs_inside_the_consuming_transaction(invites, fs_client):
    raw = invites.issue("admin", "root@lankaqr.lk")
    seen = []

    def _apply(tx, claim):
        seen.append(claim.role)
        raise RuntimeError("credential write failed")

    with pytest.raises(RuntimeError):
        invites.consume(raw, apply=_apply)

    assert seen == ["admin"]
    assert fs_client.dump(f"invites/{hash_token(raw)}")["used"] is False
    assert invites.consume(raw).role == "admin"


def test_expired_invite_is_rejected_and_deleted(invites, fs_client, clock):
    raw = invites.issue("staff", "s@lankaqr.lk")
    clock.advance(24 * 3600)

    with pytest.raises(InviteExpiredError):
        invites.consume(raw)

    assert fs_client.dump(f"invites/{hash_token(raw)}") is None


def test_unknown_and_mismatched_role_are_not_found(invites):
    raw = invites.issue("staff", "s@lankaqr.lk")

    with pytest.raises(InviteNotFoundError):
        invites.consume("not-a-real-token")
    with pytest.raises(InviteNotFoundError):
        invites.consume("")
    with pytest.raises(InviteNotFoundError):
        invites.consume(raw, role="admin")


def test_issue_purges_stale_invites_for_recipient(invites, fs_client, clock):
    used = invites.issue("staff", "s@lankaqr.lk")
    invites.consume(used)
    expired = invites.issue("staff", "s@lankaqr.lk")
    clock.advance(25 * 3600)

    fresh = invites.issue("staff", "s@lankaqr.lk")

    assert fs_client.dump(f"invites/{hash_token(used)}") is None
    assert fs_client.dump(f"invites/{hash_token(expired)}") is None
    assert fs_client.dump(f"invites/{hash_token(fresh)}") is not None


def test_issue_requires_email(invites):
    with pytest.raises(AccountValidationError):
        invites.issue("staff", "  ")
