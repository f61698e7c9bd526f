"""Organization, branch, manager, and cashier provisioning.

Sequence numbers are allocated inside store transactions and never skip or
repeat on committed writes. Slug uniqueness is checked with a lookup before
the transaction; two simultaneous requests for the same name can still pick
the same slug.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from adapters.db.firestore.base import now_ms
from adapters.db.firestore.models import Account, Branch, Cashier, Organization
from adapters.db.firestore.service_factory import FirestoreServiceFactory
from app_platform.config.auth import AuthConfig
from app_platform.contracts import AccountRole
from app_platform.schemas import is_pin

from .exceptions import (
    AccountValidationError,
    ForbiddenActionError,
    ProvisioningConflictError,
    ResourceNotFoundError,
    UnauthorizedRequestError,
)
from .identity import AccountDraft, IdentityProvisioner
from .invite_tokens import InviteTokenManager
from .naming import (
    BRANCH_SLUG_PREFIX,
    branch_slug,
    branch_username,
    cashier_username,
    derive_unique_slug,
    organization_slug_base,
    slugify,
    virtual_email,
)
from .sessions import SessionManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ActorScope:
    """Who is acting and which tenant they are bound to."""

    account_id: str
    role: str
    organization_id: Optional[str] = None
    branch_id: Optional[str] = None

    @classmethod
    def from_account(cls, account: Account) -> "ActorScope":
        return cls(
            account_id=account.account_id,
            role=account.role,
            organization_id=account.organization_id,
            branch_id=account.branch_id,
        )


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def _require_name(value: Optional[str], label: str) -> str:
    cleaned = _clean(value)
    if not cleaned:
        raise AccountValidationError(f"{label} is required")
    return cleaned


class TenantHierarchyService:
    """Creates and deletes the Organization -> Branch -> Cashier hierarchy."""

    def __init__(
        self,
        *,
        config: AuthConfig,
        firestore_factory: FirestoreServiceFactory,
        identity: IdentityProvisioner,
        invites: InviteTokenManager,
        sessions: SessionManager,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._config = config
        self._factory = firestore_factory
        self._identity = identity
        self._invites = invites
        self._sessions = sessions
        self._clock = clock

    @property
    def _organizations(self):
        return self._factory.get_organization_service()

    @property
    def _branches(self):
        return self._factory.get_branch_service()

    @property
    def _cashiers(self):
        return self._factory.get_cashier_service()

    # ------------------------------------------------------------------
    # Owners
    # ------------------------------------------------------------------
    def onboard_individual(
        self,
        account_id: str,
        *,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Account:
        """Write an individual merchant profile for a natively signed-in user."""

        def _build(_tx: Any, existing: Optional[Account]) -> AccountDraft:
            if existing is not None and existing.organization_id:
                raise ProvisioningConflictError("Account already belongs to an organization")
            return AccountDraft(
                role=AccountRole.INDIVIDUAL.value,
                display_name=_clean(display_name),
                email=_clean(email),
                phone=_clean(phone),
            )

        account = self._identity.provision_federated(account_id, _build)
        logger.info("Individual merchant onboarded", extra={"account_id": account_id})
        return account

    def create_organization(
        self,
        owner_id: str,
        name: str,
        *,
        owner_display_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        registration_number: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Organization:
        """Create an organization and link ``owner_id`` to it as company owner."""

        org_name = _require_name(name, "Organization name")
        if not owner_id:
            raise AccountValidationError("owner_id is required")

        base = organization_slug_base(org_name)
        slug = derive_unique_slug(base, self._organizations.slugs_with_prefix(base))
        organization_id = self._organizations.new_id()
        state: Dict[str, Organization] = {}

        def _build(tx: Any, existing: Optional[Account]) -> AccountDraft:
            if existing is not None and existing.organization_id:
                raise ProvisioningConflictError("Owner is already linked to an organization")

            organization = Organization(
                organization_id=organization_id,
                name=org_name,
                slug=slug,
                owner_id=owner_id,
                registration_number=_clean(registration_number),
                address=_clean(address),
            )
            self._organizations.stage_create(tx, organization)
            state["organization"] = organization
            return AccountDraft(
                role=AccountRole.COMPANY_OWNER.value,
                display_name=_clean(owner_display_name) or org_name,
                organization_id=organization_id,
                email=_clean(email),
                phone=_clean(phone),
            )

        self._identity.provision_federated(owner_id, _build)
        organization = state["organization"]
        logger.info(
            "Organization created",
            extra={"organization_id": organization_id, "slug": slug, "owner_id": owner_id},
        )
        return organization

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------
    def create_branch(self, organization_id: str, name: str, actor_id: str) -> Branch:
        """Allocate the next branch number and write the branch in one transaction."""

        branch_name = _require_name(name, "Branch name")
        branch_id = self._branches.new_id(organization_id)
        base = slugify(branch_name) or f"{BRANCH_SLUG_PREFIX}-{branch_id[:5].lower()}"
        slug = branch_slug(branch_name, branch_id, self._branches.slugs_with_prefix(organization_id, base))

        def _txn(tx: Any) -> Branch:
            organization = self._organizations.read(tx, organization_id)
            if organization is None:
                raise ResourceNotFoundError("Organization not found")
            if organization.owner_id != actor_id:
                raise UnauthorizedRequestError("Not authorized to add branches")

            number = int(organization.next_branch_number or 1)
            branch = Branch(
                branch_id=branch_id,
                organization_id=organization_id,
                name=branch_name,
                slug=slug,
                username=branch_username(organization.slug, slug),
                branch_number=number,
            )
            self._branches.stage_create(tx, branch)
            self._organizations.stage_update(tx, organization_id, {"next_branch_number": number + 1})
            return branch

        branch = self._factory.run_transaction(_txn)
        self._bump_counters(organization_id, branch_count=1)
        logger.info(
            "Branch created",
            extra={
                "organization_id": organization_id,
                "branch_id": branch.branch_id,
                "branch_number": branch.branch_number,
                "username": branch.username,
            },
        )
        return branch

    def delete_branch(self, organization_id: str, branch_id: str, actor_id: str) -> int:
        """Delete a branch, its cashiers, and its manager identity; returns cashiers removed."""

        self._require_owner(organization_id, actor_id, "Not authorized to remove branches")
        branch = self._branches.get(organization_id, branch_id)
        if branch is None:
            raise ResourceNotFoundError("Branch not found")

        cashiers = self._cashiers.list_for_branch(organization_id, branch_id)
        account_ids = [branch.manager_account_id] + [cashier.account_id for cashier in cashiers]

        batch = self._factory.batch()
        batch.delete(self._branches.document(organization_id, branch_id))
        for cashier in cashiers:
            batch.delete(self._cashiers.document(organization_id, branch_id, cashier.cashier_id))
        self._identity.stage_purge(batch, account_ids)
        batch.commit()

        self._bump_counters(organization_id, branch_count=-1, cashier_count=-len(cashiers))
        self._identity.drop_provider_users(account_ids)
        for account_id in account_ids:
            self._revoke_access(account_id)
        logger.info(
            "Branch deleted",
            extra={"organization_id": organization_id, "branch_id": branch_id, "cashiers_removed": len(cashiers)},
        )
        return len(cashiers)

    # ------------------------------------------------------------------
    # Branch managers
    # ------------------------------------------------------------------
    def upsert_branch_manager(
        self,
        organization_id: str,
        branch_id: str,
        actor_id: str,
        display_name: str,
        contact: Optional[Mapping[str, Any]] = None,
        pin: Optional[str] = None,
    ) -> Account:
        """Provision the branch's fixed manager slot, inline with ``pin`` or through an invite.

        Reassigning a manager re-provisions the same slot identity. Invites and
        sessions held by the previous assignee are revoked.
        """

        manager_name = _require_name(display_name, "Manager name")
        contact_email = _clean((contact or {}).get("email"))
        contact_phone = _clean((contact or {}).get("phone"))
        if pin is not None and not is_pin(pin):
            raise AccountValidationError("PIN must be 4 to 6 digits")
        if pin is None and not contact_email:
            raise AccountValidationError("A contact email is required when no PIN is supplied")

        self._require_owner(organization_id, actor_id, "Not authorized to manage this branch")
        branch = self._branches.get(organization_id, branch_id)
        if branch is None:
            raise ResourceNotFoundError("Branch not found")
        slot_id = branch.manager_account_id

        def _build(tx: Any, _existing: Optional[Account]) -> AccountDraft:
            organization = self._organizations.read(tx, organization_id)
            current = self._branches.read(tx, organization_id, branch_id)
            if organization is None or current is None:
                raise ResourceNotFoundError("Branch not found")
            if organization.owner_id != actor_id:
                raise UnauthorizedRequestError("Not authorized to manage this branch")

            self._branches.stage_update(
                tx,
                organization_id,
                branch_id,
                {
                    "manager_id": slot_id,
                    "manager_name": manager_name,
                    "manager_contact": {"email": contact_email, "phone": contact_phone},
                },
            )
            return AccountDraft(
                role=AccountRole.BRANCH_MANAGER.value,
                display_name=manager_name,
                organization_id=organization_id,
                branch_id=branch_id,
                username=current.username,
                email=contact_email,
                login_email=virtual_email(current.username, self._config.virtual_login_domain),
                phone=contact_phone,
            )

        self._invites.revoke_for_account(slot_id)
        if pin is not None:
            account = self._identity.provision_with_credential(slot_id, pin, _build)
        else:
            account = self._identity.provision_deferred(slot_id, _build)
        self._sessions.destroy_for_account(slot_id)

        logger.info(
            "Branch manager provisioned",
            extra={
                "organization_id": organization_id,
                "branch_id": branch_id,
                "account_id": slot_id,
                "deferred": pin is None,
            },
        )
        return account

    def suspend_branch_manager(self, organization_id: str, branch_id: str, actor_id: str) -> bool:
        """Detach the active manager and disable the slot identity; ``False`` if none is assigned."""

        self._require_owner(organization_id, actor_id, "Not authorized to manage this branch")
        branch = self._branches.get(organization_id, branch_id)
        if branch is None:
            raise ResourceNotFoundError("Branch not found")
        if not branch.manager_id:
            return False

        self._branches.update(
            (organization_id, branch_id),
            {"manager_id": None, "manager_name": None, "manager_contact": None},
        )
        self._identity.suspend(branch.manager_id)
        self._revoke_access(branch.manager_id)
        return True

    def remove_branch_manager(self, organization_id: str, branch_id: str, actor_id: str) -> bool:
        """Delete the slot identity and clear the pointer; ``False`` if nothing existed."""

        self._require_owner(organization_id, actor_id, "Not authorized to manage this branch")
        branch = self._branches.get(organization_id, branch_id)
        if branch is None:
            raise ResourceNotFoundError("Branch not found")

        removed = self._identity.disable(branch.manager_account_id)
        self._revoke_access(branch.manager_account_id)
        return removed is not None

    # ------------------------------------------------------------------
    # Cashiers
    # ------------------------------------------------------------------
    def create_cashier(
        self,
        organization_id: str,
        branch_id: str,
        actor: ActorScope,
        display_name: str,
        pin: str,
    ) -> Cashier:
        """Allocate the branch's next cashier number and provision the cashier with ``pin``."""

        cashier_name = _require_name(display_name, "Cashier name")
        if not is_pin(pin):
            raise AccountValidationError("PIN must be 4 to 6 digits")
        self._authorize_branch_actor(actor, organization_id, branch_id)

        cashier_id = self._cashiers.new_id(organization_id, branch_id)
        state: Dict[str, Cashier] = {}

        def _build(tx: Any, _existing: Optional[Account]) -> AccountDraft:
            branch = self._branches.read(tx, organization_id, branch_id)
            if branch is None:
                raise ResourceNotFoundError("Branch not found")
            self._confirm_actor(tx, actor, organization_id, branch)

            number = int(branch.next_cashier_number or 1)
            username = cashier_username(branch.username, number)
            cashier = Cashier(
                cashier_id=cashier_id,
                organization_id=organization_id,
                branch_id=branch_id,
                account_id=cashier_id,
                username=username,
                display_name=cashier_name,
                cashier_number=number,
            )
            self._branches.stage_update(tx, organization_id, branch_id, {"next_cashier_number": number + 1})
            self._cashiers.stage_create(tx, cashier)
            state["cashier"] = cashier
            return AccountDraft(
                role=AccountRole.CASHIER.value,
                display_name=cashier_name,
                organization_id=organization_id,
                branch_id=branch_id,
                username=username,
                login_email=virtual_email(username, self._config.virtual_login_domain),
            )

        self._identity.provision_with_credential(cashier_id, pin, _build)
        cashier = state["cashier"]
        self._bump_counters(organization_id, cashier_count=1)
        logger.info(
            "Cashier created",
            extra={
                "organization_id": organization_id,
                "branch_id": branch_id,
                "cashier_id": cashier_id,
                "cashier_number": cashier.cashier_number,
                "actor_role": actor.role,
            },
        )
        return cashier

    def delete_cashier(self, organization_id: str, branch_id: str, cashier_id: str, actor: ActorScope) -> None:
        """Remove the cashier row, profile, and provider user."""

        self._authorize_branch_actor(actor, organization_id, branch_id)
        state: Dict[str, bool] = {"row_found": False}

        def _detach(tx: Any, _existing: Optional[Account]) -> None:
            row = self._cashiers.read(tx, organization_id, branch_id, cashier_id)
            if row is None:
                raise ResourceNotFoundError("Cashier not found")
            branch = self._branches.read(tx, organization_id, branch_id)
            if branch is None:
                raise ResourceNotFoundError("Branch not found")
            self._confirm_actor(tx, actor, organization_id, branch)
            self._cashiers.stage_delete(tx, organization_id, branch_id, cashier_id)
            state["row_found"] = True

        self._identity.disable(cashier_id, detach=_detach)
        self._sessions.destroy_for_account(cashier_id)
        if state["row_found"]:
            self._bump_counters(organization_id, cashier_count=-1)
        logger.info(
            "Cashier deleted",
            extra={"organization_id": organization_id, "branch_id": branch_id, "cashier_id": cashier_id},
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _require_owner(self, organization_id: str, actor_id: str, message: str) -> Organization:
        result = self._organizations.get_by_id(organization_id)
        if not result.success or result.data is None:
            raise ResourceNotFoundError("Organization not found")
        if result.data.owner_id != actor_id:
            raise UnauthorizedRequestError(message)
        return result.data

    @staticmethod
    def _authorize_branch_actor(actor: ActorScope, organization_id: str, branch_id: str) -> None:
        """Managers act only on their own branch; owners only inside their organization."""

        if actor.role == AccountRole.BRANCH_MANAGER.value:
            if actor.branch_id != branch_id or actor.organization_id != organization_id:
                raise ForbiddenActionError("Not authorized to manage this branch")
            return
        if actor.role == AccountRole.COMPANY_OWNER.value:
            if actor.organization_id != organization_id:
                raise ForbiddenActionError("Not authorized for this organization")
            return
        raise ForbiddenActionError("Role cannot manage cashiers")

    def _confirm_actor(self, tx: Any, actor: ActorScope, organization_id: str, branch: Branch) -> None:
        """Re-check the actor against stored state inside the transaction."""

        if actor.role == AccountRole.BRANCH_MANAGER.value:
            if not branch.manager_id or branch.manager_id != actor.account_id:
                raise ForbiddenActionError("Not the active manager of this branch")
            return
        organization = self._organizations.read(tx, organization_id)
        if organization is None or organization.owner_id != actor.account_id:
            raise ForbiddenActionError("Not authorized for this organization")

    def _revoke_access(self, account_id: str) -> None:
        self._invites.revoke_for_account(account_id)
        self._sessions.destroy_for_account(account_id)

    def _bump_counters(self, organization_id: str, **deltas: int) -> None:
        try:
            self._organizations.increment_counters(organization_id, **deltas)
        except Exception as exc:  # noqa: BLE001 - counters trail the committed write
            logger.warning(
                "Failed to update organization counters",
                extra={"organization_id": organization_id, "deltas": deltas, "error": str(exc)},
            )


__all__ = ["ActorScope", "TenantHierarchyService"]
