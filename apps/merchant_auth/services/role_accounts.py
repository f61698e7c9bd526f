"""Invite, credential, and cookie-session flows for roles without native provider login."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from adapters.db.firestore.account_store import LOGIN_FIELDS
from adapters.db.firestore.models import Account, SessionRecord
from adapters.db.firestore.service_factory import FirestoreServiceFactory
from app_platform.config.auth import AuthConfig
from app_platform.contracts import AccountRole, CredentialKind, RoleAccountSpec, role_account_spec
from app_platform.schemas import is_pin

from .credentials import PinCredentialService
from .exceptions import (
    AccountDisabledError,
    AccountValidationError,
    ForbiddenActionError,
    ProvisioningConflictError,
    UnauthorizedRequestError,
)
from .identity import AccountDraft, IdentityProvisioner
from .invite_tokens import email_fingerprint
from .sessions import SessionManager

logger = logging.getLogger(__name__)

EMAIL_LOGIN_FIELDS = ("email", "login_email")
PHONE_LOGIN_FIELDS = EMAIL_LOGIN_FIELDS + ("phone",)


@dataclass(frozen=True, slots=True)
class SignInResult:
    account: Account
    session: SessionRecord
    upgraded: bool = False


class RoleAccountService:
    """Backs the role-account HTTP surface (admin, staff, branch manager, cashier)."""

    def __init__(
        self,
        *,
        config: AuthConfig,
        firestore_factory: FirestoreServiceFactory,
        credentials: PinCredentialService,
        identity: IdentityProvisioner,
        sessions: SessionManager,
    ) -> None:
        self._config = config
        self._factory = firestore_factory
        self._credentials = credentials
        self._identity = identity
        self._sessions = sessions

    @property
    def _accounts(self):
        return self._factory.get_account_service()

    @staticmethod
    def spec_for(role: Optional[str]) -> RoleAccountSpec:
        spec = role_account_spec(role or "")
        if spec is None:
            raise AccountValidationError("Unknown role")
        return spec

    def cookie_name(self, role: str) -> str:
        return self._config.cookie_name_for(self.spec_for(role).role.value)

    # ------------------------------------------------------------------
    def invite(
        self,
        role: str,
        email: str,
        name: str = "",
        *,
        inviter: Optional[SessionRecord] = None,
        trusted: bool = False,
    ) -> Account:
        """Provision a pending account for ``email`` and send its setup link.

        A still-pending account is re-invited in place; an active one is a conflict.
        ``trusted`` callers (operator tooling) skip the admin session check.
        """

        spec = self.spec_for(role)
        if not spec.invitable:
            raise AccountValidationError("Role cannot be invited")
        if self._config.invite_requires_admin_session and not trusted:
            if inviter is None or inviter.role != AccountRole.ADMIN.value:
                raise UnauthorizedRequestError("Admin session required")

        role_value = spec.role.value
        existing = self._accounts.find_one("email", email, role=role_value)
        if existing is not None and existing.is_active:
            raise ProvisioningConflictError("Account already exists")
        if existing is not None and existing.is_disabled:
            raise ProvisioningConflictError("Account is disabled")

        account_id = existing.account_id if existing is not None else self._accounts.new_id()
        account = self._identity.provision_deferred(
            account_id,
            AccountDraft(role=role_value, display_name=name or None, email=email),
        )
        logger.info(
            "Role account invited",
            extra={"role": role_value, "account_id": account_id, "reinvite": existing is not None},
        )
        return account

    def check_exists(self, role: str, email: str) -> bool:
        spec = self.spec_for(role)
        account = self._accounts.find_by_login(email, role=spec.role.value, fields=EMAIL_LOGIN_FIELDS)
        return account is not None

    def set_credential(self, role: str, token: str, secret: str) -> Account:
        spec = self.spec_for(role)
        self._check_secret(spec, secret)
        return self._identity.activate_from_invite(token, secret, role=spec.role.value)

    def sign_in(self, role: str, identifier: str, secret: str) -> SignInResult:
        """Verify the credential and open a fresh session.

        A matching legacy digest is replaced with a modern hash; failing to
        persist the upgrade does not fail the sign-in.
        """

        spec = self.spec_for(role)
        account = self._accounts.find_by_login(identifier, role=spec.role.value, fields=self._login_fields(spec))
        if account is None:
            logger.info(
                "Sign-in failed: unknown identifier",
                extra={"role": spec.role.value, "identifier_hash": email_fingerprint(identifier)},
            )
            raise UnauthorizedRequestError("Invalid credentials")
        if account.is_disabled:
            raise AccountDisabledError("Account is disabled")
        if not account.is_active or not account.credential_hash:
            raise UnauthorizedRequestError("No credential set for this account")

        matched, upgraded_hash = self._credentials.verify_and_upgrade(secret, account.credential_hash)
        if not matched:
            logger.info("Sign-in failed: bad credential", extra={"role": spec.role.value, "account_id": account.account_id})
            raise UnauthorizedRequestError("Invalid credentials")

        upgraded = False
        if upgraded_hash is not None:
            upgraded = self._identity.upgrade_credential(account.account_id, upgraded_hash)

        session = self._sessions.create_session(account.account_id, spec.role.value)
        return SignInResult(account=account, session=session, upgraded=upgraded)

    def request_reset(self, role: str, email: str) -> None:
        """Send a reset link when the account exists; the caller learns nothing either way."""

        spec = self.spec_for(role)
        account = self._accounts.find_one("email", email, role=spec.role.value)
        if account is None or account.is_disabled:
            logger.info(
                "Reset requested for unknown or disabled account",
                extra={"role": spec.role.value, "email_hash": email_fingerprint(email)},
            )
            return
        self._identity.send_reset(account)

    def set_own_pin(self, role: str, session_id: Optional[str], pin: str) -> Account:
        """Change the PIN of the merchant signed in with ``session_id``."""

        spec = self.spec_for(role)
        if not spec.self_service_pin:
            raise ForbiddenActionError("Role cannot set its own PIN")
        record = self.current_session(spec.role.value, session_id)
        if record is None:
            raise UnauthorizedRequestError("Not signed in")
        return self._identity.set_own_pin(record.account_id, pin)

    def sign_out(self, role: str, session_id: Optional[str]) -> None:
        self.spec_for(role)
        self._sessions.destroy(session_id)

    def current_session(self, role: str, session_id: Optional[str]) -> Optional[SessionRecord]:
        """The live session for ``session_id`` whose account is still active."""

        spec = self.spec_for(role)
        record = self._sessions.validate(session_id, role=spec.role.value)
        if record is None:
            return None
        account = self._accounts.get(record.account_id)
        if account is None or not account.is_active:
            return None
        return record

    @staticmethod
    def _login_fields(spec: RoleAccountSpec) -> tuple[str, ...]:
        if spec.username_login:
            return LOGIN_FIELDS
        if spec.phone_login:
            return PHONE_LOGIN_FIELDS
        return EMAIL_LOGIN_FIELDS

    def _check_secret(self, spec: RoleAccountSpec, secret: str) -> None:
        if spec.credential is CredentialKind.PIN:
            if not is_pin(secret):
                raise AccountValidationError("PIN must be 4 to 6 digits")
            return
        min_length = int(self._config.password_min_length)
        if not isinstance(secret, str) or len(secret) < min_length:
            raise AccountValidationError(f"Password must be at least {min_length} characters")


__all__ = ["RoleAccountService", "SignInResult"]
