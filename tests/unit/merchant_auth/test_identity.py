"""Tests for dual-identity provisioning: profile document plus provider user."""

from __future__ import annotations

import pytest

from apps.merchant_auth.services import (
    AccountDraft,
    AccountValidationError,
    ForbiddenActionError,
    InviteAlreadyUsedError,
    InviteExpiredError,
    ProvisioningConflictError,
    ResourceNotFoundError,
    UpstreamServiceError,
)
from apps.merchant_auth.services.identity import claims_for
from apps.merchant_auth.services.invite_tokens import hash_token


def _admin_draft(email: str = "Root@LankaQR.lk") -> AccountDraft:
    return AccountDraft(role="admin", display_name="Root", email=email)


def test_provision_with_credential_writes_active_profile_and_enables_provider(runtime, fs_client, provider):
    account = runtime.identity.provision_with_credential("acct-1", "correct-horse", _admin_draft())

    stored = fs_client.dump("accounts/acct-1")
    assert stored["status"] == "active"
    assert stored["email"] == "root@lankaqr.lk"
    assert stored["login_email"] == "root@lankaqr.lk"
    assert stored["account_type"] == "platform"
    assert stored["credential_hash"].startswith("$argon2id$")
    assert stored["credential_algorithm"] == "argon2id"
    assert "correct-horse" not in str(stored)

    user = provider.users["acct-1"]
    assert user.disabled is False
    assert user.email == "root@lankaqr.lk"
    assert user.claims == claims_for(account)
    assert user.claims["role"] == "admin"
    assert user.claims["permissionsVersion"] == 1


def test_deferred_provisioning_blocks_provider_and_sends_setup_link(runtime, fs_client, provider, notifier):
    runtime.identity.provision_deferred("acct-2", _admin_draft())

    assert fs_client.dump("accounts/acct-2")["status"] == "pending"
    assert fs_client.dump("accounts/acct-2")["credential_hash"] is None
    assert provider.users["acct-2"].disabled is True

    sent = notifier.last
    assert sent.email == "root@lankaqr.lk"
    assert sent.purpose == "onboarding"
    assert sent.link.startswith("https://merchant.test/admin/set-password?token=")


def test_activation_from_invite_enables_account_once(runtime, fs_client, provider, notifier):
    runtime.identity.provision_deferred("acct-3", _admin_draft())
    token = notifier.last.token

    account = runtime.identity.activate_from_invite(token, "correct-horse", role="admin")

    assert account.is_active
    stored = fs_client.dump("accounts/acct-3")
    assert stored["status"] == "active"
    assert runtime.credentials.verify("correct-horse", stored["credential_hash"])
    assert provider.users["acct-3"].disabled is False

    with pytest.raises(InviteAlreadyUsedError):
        runtime.identity.activate_from_invite(token, "another-pass", role="admin")


def test_activation_refuses_disabled_account(runtime, fs_client, notifier):
    runtime.identity.provision_deferred("acct-4", _admin_draft())
    token = notifier.last.token
    runtime.identity.suspend("acct-4")

    with pytest.raises(ForbiddenActionError):
        runtime.identity.activate_from_invite(token, "correct-horse")

    assert fs_client.dump("accounts/acct-4")["status"] == "disabled"


def test_invite_for_another_email_is_discarded(runtime, fs_client):
    runtime.identity.provision_deferred("acct-13", _admin_draft())
    stale = runtime.invites.issue("admin", "someone-else@lankaqr.lk", account_id="acct-13")

    with pytest.raises(InviteExpiredError):
        runtime.identity.activate_from_invite(stale, "correct-horse", role="admin")

    assert fs_client.dump(f"invites/{hash_token(stale)}") is None
    assert fs_client.dump("accounts/acct-13")["status"] == "pending"


def test_onboarding_invite_for_active_account_is_discarded(runtime, fs_client):
    runtime.identity.provision_with_credential("acct-14", "correct-horse", _admin_draft())
    stale = runtime.invites.issue("admin", "root@lankaqr.lk", account_id="acct-14")

    with pytest.raises(InviteExpiredError):
        runtime.identity.activate_from_invite(stale, "attacker-pass", role="admin")

    assert runtime.credentials.verify("correct-horse", fs_client.dump("accounts/acct-14")["credential_hash"])


def test_deferred_provisioning_requires_contact_email(runtime, fs_client, provider):
    with pytest.raises(AccountValidationError):
        runtime.identity.provision_deferred("acct-5", AccountDraft(role="staff", display_name="No Mail"))

    assert fs_client.dump("accounts/acct-5") is None
    assert "acct-5" not in provider.users


def test_failed_delivery_keeps_invite_usable(runtime, fs_client, notifier):
    notifier.fail = True
    runtime.identity.provision_deferred("acct-6", _admin_draft())

    assert notifier.sent == []
    assert fs_client.paths("invites/")

    notifier.fail = False
    assert runtime.identity.resend_invite("acct-6") is True
    assert notifier.last.email == "root@lankaqr.lk"


def test_resend_invite_rejects_active_account(runtime):
    runtime.identity.provision_with_credential("acct-7", "correct-horse", _admin_draft())

    with pytest.raises(ProvisioningConflictError):
        runtime.identity.resend_invite("acct-7")


def test_suspend_clears_credential_and_disables_provider(runtime, fs_client, provider):
    runtime.identity.provision_with_credential("acct-8", "correct-horse", _admin_draft())

    account = runtime.identity.suspend("acct-8")

    assert account.is_disabled
    stored = fs_client.dump("accounts/acct-8")
    assert stored["status"] == "disabled"
    assert stored["credential_hash"] is None
    assert provider.users["acct-8"].disabled is True


def test_provider_sync_failure_surfaces_and_retry_converges(runtime, fs_client, provider):
    provider.fail_with = UpstreamServiceError("provider unavailable")

    with pytest.raises(UpstreamServiceError):
        runtime.identity.provision_with_credential("acct-9", "correct-horse", _admin_draft())

    assert fs_client.dump("accounts/acct-9")["status"] == "active"
    assert "acct-9" not in provider.users

    runtime.identity.provision_with_credential("acct-9", "correct-horse", _admin_draft())

    assert provider.users["acct-9"].disabled is False
    assert provider.users["acct-9"].claims["role"] == "admin"


def test_disable_removes_both_halves(runtime, fs_client, provider):
    runtime.identity.provision_with_credential("acct-10", "correct-horse", _admin_draft())

    removed = runtime.identity.disable("acct-10")

    assert removed is not None
    assert fs_client.dump("accounts/acct-10") is None
    assert "acct-10" not in provider.users


def test_disable_missing_account_is_not_an_error(runtime, provider):
    assert runtime.identity.disable("ghost") is None
    assert ("delete_user", "ghost") in provider.calls


def test_upgrade_credential_persists_new_hash(runtime, fs_client):
    runtime.identity.provision_with_credential("acct-11", "correct-horse", _admin_draft())
    replacement = runtime.credentials.hash("correct-horse")

    assert runtime.identity.upgrade_credential("acct-11", replacement) is True
    assert fs_client.dump("accounts/acct-11")["credential_hash"] == replacement


def test_reprovisioning_keeps_creation_time(runtime, fs_client):
    runtime.identity.provision_with_credential("acct-12", "correct-horse", _admin_draft())
    created_at = fs_client.dump("accounts/acct-12")["created_at"]

    runtime.identity.provision_with_credential("acct-12", "new-password", _admin_draft())

    assert fs_client.dump("accounts/acct-12")["created_at"] == created_at


def test_owner_sets_own_pin_and_keeps_it_across_reprovisioning(runtime, fs_client):
    tenant = runtime.tenant_hierarchy
    tenant.onboard_individual("solo-1", display_name="Sunil", email="sunil@example.lk")

    runtime.identity.set_own_pin("solo-1", "2468")
    stored = fs_client.dump("accounts/solo-1")
    assert stored["credential_algorithm"] == "argon2id"
    assert runtime.credentials.verify("2468", stored["credential_hash"])

    tenant.create_organization("solo-1", "Sunil Traders", email="sunil@example.lk")

    stored = fs_client.dump("accounts/solo-1")
    assert stored["role"] == "company-owner"
    assert runtime.credentials.verify("2468", stored["credential_hash"])


@pytest.mark.parametrize("pin", ["12", "12ab", ""])
def test_set_own_pin_requires_digits(runtime, pin):
    runtime.tenant_hierarchy.onboard_individual("solo-2", email="solo@example.lk")

    with pytest.raises(AccountValidationError):
        runtime.identity.set_own_pin("solo-2", pin)


def test_set_own_pin_is_limited_to_self_service_roles(runtime):
    runtime.identity.provision_with_credential("acct-15", "correct-horse", _admin_draft())

    with pytest.raises(ForbiddenActionError):
        runtime.identity.set_own_pin("acct-15", "2468")
    with pytest.raises(ResourceNotFoundError):
        runtime.identity.set_own_pin("ghost", "2468")
