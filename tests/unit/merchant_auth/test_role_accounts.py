"""Tests for the role-account invite, credential and sign-in flows."""

from __future__ import annotations

import hashlib

import pytest

from apps.merchant_auth.services import (
    AccountDisabledError,
    AccountDraft,
    AccountValidationError,
    ActorScope,
    ForbiddenActionError,
    InviteNotFoundError,
    ProvisioningConflictError,
    UnauthorizedRequestError,
)

ADMIN_EMAIL = "root@lankaqr.lk"
ADMIN_PASSWORD = "admin-pass-1"


@pytest.fixture
def accounts(runtime):
    return runtime.role_accounts


@pytest.fixture
def admin_session(runtime, accounts):
    runtime.identity.provision_with_credential(
        "admin-1", ADMIN_PASSWORD, AccountDraft(role="admin", display_name="Root", email=ADMIN_EMAIL)
    )
    return accounts.sign_in("admin", ADMIN_EMAIL, ADMIN_PASSWORD).session


@pytest.fixture
def colombo_cashier(runtime):
    tenant = runtime.tenant_hierarchy
    org = tenant.create_organization("owner-1", "Acme", email="owner@acme.lk")
    branch = tenant.create_branch(org.organization_id, "Colombo", "owner-1")
    owner = ActorScope(account_id="owner-1", role="company-owner", organization_id=org.organization_id)
    tenant.upsert_branch_manager(org.organization_id, branch.branch_id, "owner-1", "Nimal", pin="4821")
    return tenant.create_cashier(org.organization_id, branch.branch_id, owner, "Kamal", "1234")


# ----------------------------------------------------------------------
# Invites
# ----------------------------------------------------------------------


def test_invite_requires_admin_session(accounts):
    with pytest.raises(UnauthorizedRequestError):
        accounts.invite("staff", "s@lankaqr.lk", "Sam")


def test_invite_rejects_non_admin_session(accounts, admin_session, runtime):
    staff_session = runtime.sessions.create_session("staff-x", "staff")

    with pytest.raises(UnauthorizedRequestError):
        accounts.invite("staff", "s@lankaqr.lk", "Sam", inviter=staff_session)


def test_invite_creates_pending_account_and_sends_link(accounts, admin_session, fs_client, notifier):
    account = accounts.invite("staff", "s@lankaqr.lk", "Sam", inviter=admin_session)

    stored = fs_client.dump(f"accounts/{account.account_id}")
    assert stored["status"] == "pending"
    assert stored["role"] == "staff"
    assert notifier.last.email == "s@lankaqr.lk"
    assert notifier.last.link.startswith("https://merchant.test/staff/set-password?token=")


def test_reinvite_pending_account_reuses_identity(accounts, admin_session, notifier):
    first = accounts.invite("staff", "s@lankaqr.lk", "Sam", inviter=admin_session)
    second = accounts.invite("staff", "s@lankaqr.lk", "Sam", inviter=admin_session)

    assert first.account_id == second.account_id
    assert len(notifier.sent) == 2


def test_invite_active_account_conflicts(accounts, admin_session):
    with pytest.raises(ProvisioningConflictError):
        accounts.invite("admin", ADMIN_EMAIL, "Root", inviter=admin_session)


@pytest.mark.parametrize("role", ["branch-manager", "cashier", "owner", ""])
def test_only_platform_roles_are_invitable(accounts, admin_session, role):
    with pytest.raises(AccountValidationError):
        accounts.invite(role, "s@lankaqr.lk", inviter=admin_session)


def test_invite_without_admin_requirement(runtime, accounts, notifier):
    runtime.config.invite_requires_admin_session = False

    accounts.invite("admin", "first@lankaqr.lk", "First")

    assert notifier.last.email == "first@lankaqr.lk"


def test_check_exists(accounts, admin_session):
    assert accounts.check_exists("admin", ADMIN_EMAIL) is True
    assert accounts.check_exists("admin", "ROOT@lankaqr.lk") is True
    assert accounts.check_exists("staff", ADMIN_EMAIL) is False
    assert accounts.check_exists("admin", "nobody@lankaqr.lk") is False


# ----------------------------------------------------------------------
# Credential setup
# ----------------------------------------------------------------------


def test_set_credential_then_sign_in(accounts, admin_session, notifier):
    accounts.invite("staff", "s@lankaqr.lk", "Sam", inviter=admin_session)

    account = accounts.set_credential("staff", notifier.last.token, "staff-pass-1")
    result = accounts.sign_in("staff", "s@lankaqr.lk", "staff-pass-1")

    assert account.is_active
    assert result.account.account_id == account.account_id
    assert result.session.cookie_name == "staff_session"


def test_set_credential_enforces_password_length(accounts, admin_session, notifier):
    accounts.invite("staff", "s@lankaqr.lk", "Sam", inviter=admin_session)

    with pytest.raises(AccountValidationError):
        accounts.set_credential("staff", notifier.last.token, "short")


def test_set_credential_for_pin_roles_requires_pin(runtime, accounts, notifier, colombo_cashier):
    branch_id = colombo_cashier.branch_id
    org_id = colombo_cashier.organization_id
    runtime.tenant_hierarchy.upsert_branch_manager(
        org_id, branch_id, "owner-1", "Kumari", {"email": "kumari@acme.lk"}
    )
    token = notifier.last.token

    with pytest.raises(AccountValidationError):
        accounts.set_credential("branch-manager", token, "not-a-pin")

    account = accounts.set_credential("branch-manager", token, "7777")
    assert account.is_active
    assert accounts.sign_in("branch-manager", "acme-colombo", "7777").account.account_id == f"{branch_id}-manager"


def test_token_for_another_role_is_not_found(accounts, admin_session, notifier):
    accounts.invite("staff", "s@lankaqr.lk", "Sam", inviter=admin_session)

    with pytest.raises(InviteNotFoundError):
        accounts.set_credential("admin", notifier.last.token, "staff-pass-1")


# ----------------------------------------------------------------------
# Sign-in
# ----------------------------------------------------------------------


def test_cashier_signs_in_with_username_or_virtual_email(accounts, colombo_cashier):
    by_username = accounts.sign_in("cashier", "acme-colombo-1", "1234")
    by_email = accounts.sign_in("cashier", "acme-colombo-1@lqr.internal", "1234")

    assert by_username.account.account_id == colombo_cashier.account_id
    assert by_email.account.account_id == colombo_cashier.account_id


def test_wrong_pin_is_rejected(accounts, colombo_cashier):
    with pytest.raises(UnauthorizedRequestError):
        accounts.sign_in("cashier", "acme-colombo-1", "9999")


def test_role_must_match_account(accounts, colombo_cashier):
    with pytest.raises(UnauthorizedRequestError):
        accounts.sign_in("branch-manager", "acme-colombo-1", "1234")


def test_unknown_identifier_is_rejected(accounts):
    with pytest.raises(UnauthorizedRequestError):
        accounts.sign_in("cashier", "nobody", "1234")


def test_pending_account_cannot_sign_in(accounts, admin_session):
    accounts.invite("staff", "s@lankaqr.lk", "Sam", inviter=admin_session)

    with pytest.raises(UnauthorizedRequestError):
        accounts.sign_in("staff", "s@lankaqr.lk", "anything-long")


def test_disabled_account_is_refused(runtime, accounts, colombo_cashier):
    runtime.identity.suspend(colombo_cashier.account_id)

    with pytest.raises(AccountDisabledError):
        accounts.sign_in("cashier", "acme-colombo-1", "1234")


def test_legacy_digest_is_upgraded_on_sign_in(accounts, fs_client):
    fs_client.put(
        "accounts/legacy-1",
        {
            "account_id": "legacy-1",
            "role": "staff",
            "status": "active",
            "email": "old@lankaqr.lk",
            "login_email": "old@lankaqr.lk",
            "credential_hash": hashlib.sha256(b"old-password").hexdigest(),
            "credential_algorithm": "sha256",
        },
    )

    result = accounts.sign_in("staff", "old@lankaqr.lk", "old-password")

    assert result.upgraded is True
    stored = fs_client.dump("accounts/legacy-1")
    assert stored["credential_hash"].startswith("$argon2id$")
    assert stored["credential_algorithm"] == "argon2id"
    assert accounts.sign_in("staff", "old@lankaqr.lk", "old-password").upgraded is False


def test_second_sign_in_replaces_first_session(accounts, colombo_cashier):
    first = accounts.sign_in("cashier", "acme-colombo-1", "1234").session
    second = accounts.sign_in("cashier", "acme-colombo-1", "1234").session

    assert accounts.current_session("cashier", first.session_id) is None
    assert accounts.current_session("cashier", second.session_id).account_id == colombo_cashier.account_id


def test_session_ends_when_account_is_suspended(runtime, accounts, colombo_cashier):
    session = accounts.sign_in("cashier", "acme-colombo-1", "1234").session

    runtime.identity.suspend(colombo_cashier.account_id)

    assert accounts.current_session("cashier", session.session_id) is None


def test_sign_out(accounts, admin_session):
    accounts.sign_out("admin", admin_session.session_id)

    assert accounts.current_session("admin", admin_session.session_id) is None


# ----------------------------------------------------------------------
# Reset
# ----------------------------------------------------------------------


def test_reset_sends_link_to_existing_account(accounts, admin_session, notifier):
    accounts.request_reset("admin", ADMIN_EMAIL)

    assert notifier.last.purpose == "reset"
    assert notifier.last.link.startswith("https://merchant.test/admin/set-password?token=")


def test_reset_for_unknown_account_sends_nothing(accounts, notifier):
    accounts.request_reset("admin", "nobody@lankaqr.lk")

    assert notifier.sent == []


def test_reset_token_sets_new_password(accounts, admin_session, notifier):
    accounts.request_reset("admin", ADMIN_EMAIL)

    accounts.set_credential("admin", notifier.last.token, "brand-new-pass")

    assert accounts.sign_in("admin", ADMIN_EMAIL, "brand-new-pass").account.account_id == "admin-1"
    with pytest.raises(UnauthorizedRequestError):
        accounts.sign_in("admin", ADMIN_EMAIL, ADMIN_PASSWORD)


# ----------------------------------------------------------------------
# Self-service merchant PINs
# ----------------------------------------------------------------------


@pytest.fixture
def owner_with_pin(runtime):
    tenant = runtime.tenant_hierarchy
    tenant.create_organization("owner-1", "Acme", email="Owner@Acme.lk", phone="+94771234567")
    runtime.identity.set_own_pin("owner-1", "2468")
    return "owner-1"


def test_owner_signs_in_with_pin_by_email_or_phone(accounts, owner_with_pin):
    by_email = accounts.sign_in("company-owner", "owner@acme.lk", "2468")
    by_phone = accounts.sign_in("company-owner", "+94771234567", "2468")

    assert by_email.account.account_id == owner_with_pin
    assert by_phone.account.account_id == owner_with_pin
    assert by_phone.session.cookie_name == "company_owner_session"
    with pytest.raises(UnauthorizedRequestError):
        accounts.sign_in("company-owner", "owner@acme.lk", "1357")


def test_federated_owner_without_pin_cannot_use_pin_sign_in(runtime, accounts):
    runtime.tenant_hierarchy.onboard_individual("solo-1", email="solo@example.lk")

    with pytest.raises(UnauthorizedRequestError):
        accounts.sign_in("individual", "solo@example.lk", "2468")


def test_owner_changes_pin_with_live_session(accounts, owner_with_pin):
    session = accounts.sign_in("company-owner", "owner@acme.lk", "2468").session

    accounts.set_own_pin("company-owner", session.session_id, "1357")

    assert accounts.sign_in("company-owner", "owner@acme.lk", "1357").account.account_id == owner_with_pin
    with pytest.raises(UnauthorizedRequestError):
        accounts.sign_in("company-owner", "owner@acme.lk", "2468")


def test_pin_change_requires_session_and_self_service_role(accounts, colombo_cashier):
    with pytest.raises(UnauthorizedRequestError):
        accounts.set_own_pin("company-owner", None, "1357")

    cashier_session = accounts.sign_in("cashier", "acme-colombo-1", "1234").session
    with pytest.raises(ForbiddenActionError):
        accounts.set_own_pin("cashier", cashier_session.session_id, "1357")


def test_owner_pin_reset_link(accounts, owner_with_pin, notifier):
    accounts.request_reset("company-owner", "owner@acme.lk")

    assert notifier.last.link.startswith("https://merchant.test/reset-pin?token=")
    accounts.set_credential("company-owner", notifier.last.token, "9753")

    assert accounts.sign_in("company-owner", "owner@acme.lk", "9753").account.account_id == owner_with_pin
