"""Provisioning of the dual account identity: profile document plus provider user.

Callers never write either half directly. Every mutation goes through
:class:`IdentityProvisioner`, which re-derives the permission set from the
role table and re-applies it to the provider claims on each change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, Union

from adapters.db.firestore.base import now_ms
from adapters.db.firestore.models import Account
from adapters.db.firestore.service_factory import FirestoreServiceFactory
from app_platform.config.auth import AuthConfig
from app_platform.contracts import (
    PERMISSIONS_VERSION,
    AccountRole,
    AccountStatus,
    InvitePurpose,
    account_type_for,
    permissions_for,
    role_account_spec,
)
from app_platform.schemas import is_pin

from .credentials import PinCredentialService
from .exceptions import (
    AccountDisabledError,
    AccountValidationError,
    ForbiddenActionError,
    InviteExpiredError,
    ProviderUserNotFoundError,
    ProvisioningConflictError,
    ResourceNotFoundError,
    UpstreamServiceError,
)
from .invite_tokens import InviteClaim, InviteTokenManager, email_fingerprint
from .notifier import LoggingNotifier, Notifier, build_setup_link

logger = logging.getLogger(__name__)

DEFAULT_SET_CREDENTIAL_PATH = "/set-credential"


class IdentityProvider(Protocol):
    """Provider half of an identity; see ``Auth0ManagementClient``."""

    @property
    def enabled(self) -> bool: ...

    def ensure_user(
        self,
        account_id: str,
        *,
        email: Optional[str],
        display_name: Optional[str] = None,
        disabled: bool = False,
    ) -> None: ...

    def set_disabled(self, account_id: str, disabled: bool) -> None: ...

    def set_claims(self, account_id: str, claims: Mapping[str, Any]) -> None: ...

    def delete_user(self, account_id: str) -> None: ...


@dataclass(slots=True)
class AccountDraft:
    """Caller-supplied half of a profile; role-derived fields are filled in here."""

    role: str
    display_name: Optional[str] = None
    organization_id: Optional[str] = None
    branch_id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    login_email: Optional[str] = None
    phone: Optional[str] = None


# builder(transaction, existing_profile) -> draft; reads first, then writes
DraftBuilder = Callable[[Any, Optional[Account]], AccountDraft]
DraftSource = Union[AccountDraft, DraftBuilder]

# detach(transaction, existing_profile); reads first, then writes
DetachFn = Callable[[Any, Optional[Account]], None]


def claims_for(account: Account) -> dict[str, Any]:
    """Provider claims for ``account``; unset tenant references are omitted."""

    claims: dict[str, Any] = {
        "role": account.role,
        "accountType": account.account_type,
        "organizationId": account.organization_id,
        "branchId": account.branch_id,
        "permissions": list(account.permissions),
        "permissionsVersion": account.permissions_version,
    }
    return {key: value for key, value in claims.items() if value is not None}


class IdentityProvisioner:
    """Creates, activates, suspends, and removes account identities for every role."""

    def __init__(
        self,
        *,
        config: AuthConfig,
        firestore_factory: FirestoreServiceFactory,
        credentials: PinCredentialService,
        invites: InviteTokenManager,
        provider: IdentityProvider,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._config = config
        self._factory = firestore_factory
        self._credentials = credentials
        self._invites = invites
        self._provider = provider
        self._notifier = notifier or LoggingNotifier()
        self._clock = clock

    @property
    def _accounts(self):
        return self._factory.get_account_service()

    @property
    def _branches(self):
        return self._factory.get_branch_service()

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------
    def provision_with_credential(self, account_id: str, secret: str, draft: DraftSource) -> Account:
        """Write an active profile with ``secret`` hashed inline and enable the provider user."""

        credential_hash = self._hash_secret(secret)
        account = self._commit_profile(
            account_id,
            draft,
            status=AccountStatus.ACTIVE,
            credential_hash=credential_hash,
        )
        self._sync_provider(account, disabled=False)
        logger.info(
            "Account provisioned with credential",
            extra={"account_id": account_id, "role": account.role},
        )
        return account

    def provision_deferred(self, account_id: str, draft: DraftSource) -> Account:
        """Write a pending profile, block the provider user, and send a setup link.

        Delivery failures are logged; the invite stays valid and can be resent.
        """

        account = self._commit_profile(
            account_id,
            draft,
            status=AccountStatus.PENDING,
            credential_hash=None,
            require_email=True,
        )
        self._sync_provider(account, disabled=True)
        raw_token = self._invites.issue(
            account.role,
            account.email or "",
            account.display_name or "",
            purpose=InvitePurpose.ONBOARDING,
            account_id=account.account_id,
        )
        self._deliver(account, raw_token, InvitePurpose.ONBOARDING)
        logger.info(
            "Account provisioned pending credential setup",
            extra={"account_id": account_id, "role": account.role},
        )
        return account

    def provision_federated(self, account_id: str, draft: DraftSource) -> Account:
        """Active profile signed in through the provider; a self-set PIN is carried over."""

        account = self._commit_profile(
            account_id,
            draft,
            status=AccountStatus.ACTIVE,
            credential_hash=None,
            keep_credential=True,
        )
        self._sync_provider(account, disabled=False)
        return account

    def activate_from_invite(self, raw_token: str, secret: str, *, role: Optional[str] = None) -> Account:
        """Consume ``raw_token``, set the credential, and enable the account.

        The invite is marked used in the same transaction that writes the
        credential, so a token can activate at most once. An invite addressed
        to an email the account no longer carries, or an onboarding invite for
        an account that is no longer pending, is discarded as stale.
        """

        credential_hash = self._hash_secret(secret)
        at_ms = self._clock()
        state: dict[str, Account] = {}

        def _apply(tx: Any, claim: InviteClaim) -> None:
            existing = self._accounts.read(tx, claim.account_id) if claim.account_id else None
            if existing is None:
                raise ResourceNotFoundError("Account not found")
            if existing.is_disabled:
                raise ForbiddenActionError("Account is disabled")
            if (claim.email or "").lower() != (existing.email or "").lower():
                raise InviteExpiredError("Invite is no longer valid")
            if claim.purpose == InvitePurpose.ONBOARDING.value and existing.status != AccountStatus.PENDING.value:
                raise InviteExpiredError("Invite is no longer valid")

            updates = {
                "status": AccountStatus.ACTIVE.value,
                "credential_hash": credential_hash,
                "credential_algorithm": self._credentials.algorithm,
                "credential_updated_at": at_ms,
            }
            self._accounts.stage_update(tx, existing.account_id, updates)
            existing.status = AccountStatus.ACTIVE.value
            existing.credential_hash = credential_hash
            existing.credential_algorithm = self._credentials.algorithm
            existing.credential_updated_at = at_ms
            state["account"] = existing

        claim = self._invites.consume(raw_token, role=role, apply=_apply)
        account = state["account"]
        self._sync_provider(account, disabled=False)
        logger.info(
            "Credential set from invite",
            extra={"account_id": account.account_id, "role": account.role, "purpose": claim.purpose},
        )
        return account

    def set_own_pin(self, account_id: str, pin: str) -> Account:
        """Set the sign-in PIN of an authenticated self-service merchant.

        ``account_id`` must come from a verified provider token or session.
        Only roles whose gateway entry allows self-service PINs are accepted.
        """

        if not is_pin(pin):
            raise AccountValidationError("PIN must be 4 to 6 digits")
        credential_hash = self._hash_secret(pin)
        at_ms = self._clock()

        def _txn(tx: Any) -> Account:
            existing = self._accounts.read(tx, account_id)
            if existing is None:
                raise ResourceNotFoundError("Account not found")
            if existing.is_disabled:
                raise AccountDisabledError("Account is disabled")
            spec = role_account_spec(existing.role)
            if spec is None or not spec.self_service_pin:
                raise ForbiddenActionError("Role cannot set its own PIN")

            self._accounts.stage_update(
                tx,
                account_id,
                {
                    "credential_hash": credential_hash,
                    "credential_algorithm": self._credentials.algorithm,
                    "credential_updated_at": at_ms,
                },
            )
            existing.credential_hash = credential_hash
            existing.credential_algorithm = self._credentials.algorithm
            existing.credential_updated_at = at_ms
            return existing

        account = self._factory.run_transaction(_txn)
        logger.info("Self-service PIN set", extra={"account_id": account_id, "role": account.role})
        return account

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def suspend(self, account_id: str) -> Account:
        """Disable the account and clear its credential while keeping the profile."""

        at_ms = self._clock()

        def _txn(tx: Any) -> Account:
            existing = self._accounts.read(tx, account_id)
            if existing is None:
                raise ResourceNotFoundError("Account not found")
            self._accounts.stage_update(
                tx,
                account_id,
                {
                    "status": AccountStatus.DISABLED.value,
                    "credential_hash": None,
                    "credential_algorithm": None,
                    "credential_updated_at": at_ms,
                },
            )
            existing.status = AccountStatus.DISABLED.value
            existing.credential_hash = None
            existing.credential_algorithm = None
            return existing

        account = self._factory.run_transaction(_txn)
        try:
            self._provider.set_disabled(account_id, True)
        except ProviderUserNotFoundError:
            logger.warning("Provider user missing while suspending", extra={"account_id": account_id})
        logger.info("Account suspended", extra={"account_id": account_id, "role": account.role})
        return account

    def disable(self, account_id: str, *, detach: Optional[DetachFn] = None) -> Optional[Account]:
        """Delete the profile and provider user; returns the removed profile, if any.

        A branch manager pointer that targets the account is cleared in the
        same transaction. ``detach`` may remove further back-references.
        Missing records are not an error.
        """

        def _txn(tx: Any) -> Optional[Account]:
            existing = self._accounts.read(tx, account_id)
            branch = None
            if existing is not None and existing.organization_id and existing.branch_id:
                branch = self._branches.read(tx, existing.organization_id, existing.branch_id)
            if detach is not None:
                detach(tx, existing)
            if branch is not None and branch.manager_id == account_id:
                self._branches.stage_update(
                    tx,
                    branch.organization_id,
                    branch.branch_id,
                    {"manager_id": None, "manager_name": None, "manager_contact": None},
                )
            if existing is not None:
                self._accounts.stage_delete(tx, account_id)
            return existing

        removed = self._factory.run_transaction(_txn)
        self.drop_provider_users([account_id])
        logger.info(
            "Account identity removed",
            extra={"account_id": account_id, "profile_found": removed is not None},
        )
        return removed

    def stage_purge(self, batch: Any, account_ids: Iterable[str]) -> None:
        """Queue profile deletes on a caller-owned write batch."""

        for account_id in account_ids:
            batch.delete(self._accounts.document(account_id))

    def drop_provider_users(self, account_ids: Iterable[str]) -> None:
        """Best-effort provider deletes for identities whose profiles are gone."""

        for account_id in account_ids:
            try:
                self._provider.delete_user(account_id)
            except ProviderUserNotFoundError:
                continue
            except UpstreamServiceError as exc:
                logger.warning(
                    "Provider user delete failed",
                    extra={"account_id": account_id, "error": str(exc)},
                )

    def resend_invite(self, account_id: str) -> bool:
        """Re-issue an onboarding token for a pending account; returns delivery success."""

        account = self._accounts.get(account_id)
        if account is None:
            raise ResourceNotFoundError("Account not found")
        if account.status != AccountStatus.PENDING.value:
            raise ProvisioningConflictError("Account is not awaiting credential setup")
        if not account.email:
            raise AccountValidationError("Account has no deliverable email")

        raw_token = self._invites.issue(
            account.role,
            account.email,
            account.display_name or "",
            purpose=InvitePurpose.ONBOARDING,
            account_id=account.account_id,
        )
        return self._deliver(account, raw_token, InvitePurpose.ONBOARDING)

    def send_reset(self, account: Account) -> bool:
        """Issue a short-lived reset token to the account's real email."""

        if not account.email:
            logger.info("Reset skipped: account has no deliverable email", extra={"account_id": account.account_id})
            return False
        raw_token = self._invites.issue(
            account.role,
            account.email,
            account.display_name or "",
            purpose=InvitePurpose.RESET,
            account_id=account.account_id,
        )
        return self._deliver(account, raw_token, InvitePurpose.RESET)

    def upgrade_credential(self, account_id: str, encoded_hash: str) -> bool:
        """Persist a re-hashed credential after a legacy match; failures are logged only."""

        try:
            result = self._accounts.update(
                account_id,
                {
                    "credential_hash": encoded_hash,
                    "credential_algorithm": self._credentials.algorithm,
                    "credential_updated_at": self._clock(),
                },
            )
            return bool(result and result.success)
        except Exception as exc:  # noqa: BLE001 - sign-in already succeeded
            logger.warning(
                "Failed to persist upgraded credential",
                extra={"account_id": account_id, "error": str(exc)},
            )
            return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _hash_secret(self, secret: str) -> str:
        try:
            return self._credentials.hash(secret)
        except ValueError as exc:
            raise AccountValidationError(str(exc)) from exc

    def _commit_profile(
        self,
        account_id: str,
        draft: DraftSource,
        *,
        status: AccountStatus,
        credential_hash: Optional[str],
        require_email: bool = False,
        keep_credential: bool = False,
    ) -> Account:
        if not account_id:
            raise AccountValidationError("account_id is required")
        at_ms = self._clock()

        def _txn(tx: Any) -> Account:
            existing = self._accounts.read(tx, account_id)
            resolved = draft(tx, existing) if callable(draft) else draft
            account = self._materialize(
                account_id,
                resolved,
                existing,
                status=status,
                credential_hash=credential_hash,
                at_ms=at_ms,
            )
            if keep_credential and existing is not None and existing.credential_hash and not account.credential_hash:
                account.credential_hash = existing.credential_hash
                account.credential_algorithm = existing.credential_algorithm
                account.credential_updated_at = existing.credential_updated_at
            if require_email and not account.email:
                raise AccountValidationError("A contact email is required to send a setup link")
            self._accounts.stage_set(tx, account)
            return account

        return self._factory.run_transaction(_txn)

    def _materialize(
        self,
        account_id: str,
        draft: AccountDraft,
        existing: Optional[Account],
        *,
        status: AccountStatus,
        credential_hash: Optional[str],
        at_ms: int,
    ) -> Account:
        role = AccountRole(draft.role)
        email = draft.email.strip().lower() if draft.email else None
        login_email = draft.login_email.strip().lower() if draft.login_email else email
        return Account(
            account_id=account_id,
            role=role.value,
            status=status.value,
            account_type=account_type_for(role).value,
            organization_id=draft.organization_id,
            branch_id=draft.branch_id,
            username=draft.username,
            email=email,
            login_email=login_email,
            phone=draft.phone,
            display_name=draft.display_name,
            permissions=list(permissions_for(role)),
            permissions_version=PERMISSIONS_VERSION,
            credential_hash=credential_hash,
            credential_algorithm=self._credentials.algorithm if credential_hash else None,
            credential_updated_at=at_ms if credential_hash else None,
            created_at=existing.created_at if existing is not None else None,
        )

    def _sync_provider(self, account: Account, *, disabled: bool) -> None:
        try:
            self._provider.ensure_user(
                account.account_id,
                email=account.login_email or account.email,
                display_name=account.display_name,
                disabled=disabled,
            )
            self._provider.set_claims(account.account_id, claims_for(account))
        except UpstreamServiceError as exc:
            # the profile is committed; repeating the operation converges both halves
            logger.error(
                "Provider sync failed after profile write",
                extra={"account_id": account.account_id, "role": account.role, "error": str(exc)},
            )
            raise

    def _deliver(self, account: Account, raw_token: str, purpose: InvitePurpose) -> bool:
        spec = role_account_spec(account.role)
        path = spec.set_credential_path if spec is not None else DEFAULT_SET_CREDENTIAL_PATH
        link = build_setup_link(self._config.app_origin, path, raw_token)
        try:
            self._notifier.send_setup_link(account.email or "", account.display_name or "", link, purpose.value)
            return True
        except Exception as exc:  # noqa: BLE001 - delivery is best-effort
            logger.warning(
                "Setup link delivery failed",
                extra={
                    "account_id": account.account_id,
                    "email_hash": email_fingerprint(account.email),
                    "purpose": purpose.value,
                    "error": str(exc),
                },
            )
            return False


__all__ = [
    "AccountDraft",
    "DetachFn",
    "DraftBuilder",
    "DraftSource",
    "IdentityProvider",
    "IdentityProvisioner",
    "claims_for",
]
