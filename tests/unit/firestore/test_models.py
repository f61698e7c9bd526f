"""Tests for the Firestore domain models."""

import pytest

from adapters.db.firestore.models import (
    Account,
    Branch,
    InviteToken,
    Organization,
    create_account,
    create_branch,
    create_invite_token,
    manager_slot_id,
)


class TestOrganization:
    def test_requires_identity_fields(self):
        with pytest.raises(ValueError):
            Organization(organization_id="org-1", name="Acme", slug="", owner_id="owner-1")

    def test_to_dict_skips_unset_values(self):
        org = Organization(organization_id="org-1", name="Acme", slug="acme", owner_id="owner-1")

        data = org.to_dict()

        assert data["slug"] == "acme"
        assert data["next_branch_number"] == 1
        assert "address" not in data
        assert "id" not in data


class TestBranch:
    def test_manager_slot_defaults_from_branch_id(self):
        branch = Branch(
            branch_id="br-1",
            organization_id="org-1",
            name="Colombo",
            slug="colombo",
            username="acme-colombo",
            branch_number=1,
        )

        assert branch.manager_account_id == "br-1-manager" == manager_slot_id("br-1")

    def test_manager_pointer_round_trips_as_null(self):
        branch = Branch(
            branch_id="br-1",
            organization_id="org-1",
            name="Colombo",
            slug="colombo",
            username="acme-colombo",
            branch_number=1,
        )

        data = branch.to_dict()

        assert "manager_id" in data
        assert data["manager_id"] is None

    def test_branch_number_must_be_positive(self):
        with pytest.raises(ValueError):
            Branch(
                branch_id="br-1",
                organization_id="org-1",
                name="Colombo",
                slug="colombo",
                username="acme-colombo",
                branch_number=0,
            )

    def test_create_branch_uses_document_id(self):
        branch = create_branch(
            "br-9",
            {"organization_id": "org-1", "name": "Kandy", "slug": "kandy", "username": "acme-kandy", "branch_number": 2},
        )

        assert branch.id == "br-9"
        assert branch.branch_id == "br-9"


class TestAccount:
    def test_rejects_unknown_role(self):
        with pytest.raises(ValueError):
            Account(account_id="acct-1", role="superuser")

    def test_rejects_unknown_status(self):
        with pytest.raises(ValueError):
            Account(account_id="acct-1", role="cashier", status="archived")

    def test_credential_fields_always_written(self):
        account = Account(account_id="acct-1", role="cashier", status="active")

        data = account.to_dict()

        assert data["credential_hash"] is None
        assert data["credential_algorithm"] is None
        assert "email" not in data
        assert account.is_active
        assert not account.is_disabled

    def test_create_account_ignores_unknown_fields(self):
        account = create_account("acct-1", {"role": "admin", "status": "disabled", "legacy_flag": True})

        assert account.account_id == "acct-1"
        assert account.is_disabled
        assert not hasattr(account, "legacy_flag")


class TestInviteToken:
    def test_expiry_boundary_is_inclusive(self):
        invite = InviteToken(token_hash="h", role="staff", email="s@lankaqr.lk", expires_at_ms=1_000)

        assert not invite.is_expired(999)
        assert invite.is_expired(1_000)

    def test_rejects_unknown_purpose(self):
        with pytest.raises(ValueError):
            create_invite_token("h", {"role": "staff", "email": "s@lankaqr.lk", "expires_at_ms": 1, "purpose": "promo"})
