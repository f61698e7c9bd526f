"""One-time invite tokens for deferred credential setup and resets."""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Callable, Optional

from adapters.db.firestore.base import now_ms
from adapters.db.firestore.invite_store import InviteRepository
from adapters.db.firestore.models import InviteToken
from adapters.db.firestore.transactions import TransactionRunner
from app_platform.config.auth import AuthConfig
from app_platform.contracts import AccountRole, InvitePurpose

from .exceptions import (
    AccountValidationError,
    InviteAlreadyUsedError,
    InviteExpiredError,
    InviteNotFoundError,
    UpstreamServiceError,
)

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def hash_token(raw_token: str) -> str:
    """sha256 hex digest used as the invite document id."""

    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def email_fingerprint(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    return hashlib.sha256(email.lower().encode("utf-8")).hexdigest()[:12]


@dataclass(frozen=True, slots=True)
class InviteClaim:
    """What a successfully consumed invite vouches for."""

    token_hash: str
    role: str
    email: str
    name: str
    purpose: str
    account_id: Optional[str]


# apply(transaction, claim) runs inside the consuming transaction
InviteApplyFn = Callable[[Any, InviteClaim], None]


class InviteTokenManager:
    """Issue and consume hashed, single-use, time-bound invite tokens."""

    def __init__(
        self,
        *,
        invites: InviteRepository,
        transactions: TransactionRunner,
        config: AuthConfig,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._invites = invites
        self._transactions = transactions
        self._config = config
        self._clock = clock

    def ttl_ms(self, purpose: InvitePurpose | str) -> int:
        if InvitePurpose(purpose) is InvitePurpose.RESET:
            return max(1, int(self._config.reset_invite_ttl_minutes)) * 60 * 1000
        return max(1, int(self._config.onboarding_invite_ttl_hours)) * 60 * 60 * 1000

    def issue(
        self,
        role: str,
        email: str,
        name_hint: str = "",
        *,
        purpose: InvitePurpose | str = InvitePurpose.ONBOARDING,
        account_id: Optional[str] = None,
    ) -> str:
        """Mint a token for ``email`` and return the raw value.

        Only the digest is persisted. Earlier invites to the same recipient that
        are already used or expired are removed first.
        """

        role_value = AccountRole(role).value
        normalized_email = (email or "").strip().lower()
        if not normalized_email:
            raise AccountValidationError("Invite email is required")

        purpose_value = InvitePurpose(purpose).value
        issued_at = self._clock()

        self._purge_stale(role_value, normalized_email, issued_at)

        raw_token = secrets.token_urlsafe(TOKEN_BYTES)
        token_hash = hash_token(raw_token)
        invite = InviteToken(
            token_hash=token_hash,
            role=role_value,
            email=normalized_email,
            name=name_hint or "",
            purpose=purpose_value,
            account_id=account_id,
            expires_at_ms=issued_at + self.ttl_ms(purpose_value),
        )

        result = self._invites.create(invite)
        if not result or not getattr(result, "success", False):
            raise UpstreamServiceError("Failed to persist invite record")

        logger.info(
            "Invite token minted",
            extra={
                "role": role_value,
                "purpose": purpose_value,
                "email_hash": email_fingerprint(normalized_email),
                "expires_at_ms": invite.expires_at_ms,
            },
        )
        return raw_token

    def consume(
        self,
        raw_token: str,
        *,
        role: Optional[str] = None,
        apply: Optional[InviteApplyFn] = None,
    ) -> InviteClaim:
        """Redeem ``raw_token`` exactly once.

        The used-flag check, ``apply(tx, claim)`` and the used-flag write share
        one transaction, so concurrent redemptions of one token cannot both
        commit. ``apply`` must do all of its reads before its first write.
        An invite addressed to another role is reported as not found.
        """

        if not raw_token:
            raise InviteNotFoundError("Invite not found")

        token_hash = hash_token(raw_token)
        at_ms = self._clock()

        def _txn(tx: Any) -> InviteClaim:
            invite = self._invites.read(tx, token_hash)
            if invite is None:
                raise InviteNotFoundError("Invite not found")
            if role is not None and invite.role != AccountRole(role).value:
                raise InviteNotFoundError("Invite not found")
            if invite.used:
                raise InviteAlreadyUsedError("Invite already used")
            if invite.is_expired(at_ms):
                raise InviteExpiredError("Invite expired")

            claim = InviteClaim(
                token_hash=token_hash,
                role=invite.role,
                email=invite.email,
                name=invite.name,
                purpose=invite.purpose,
                account_id=invite.account_id,
            )
            if apply is not None:
                apply(tx, claim)
            self._invites.stage_mark_used(tx, token_hash, used_at=at_ms)
            return claim

        try:
            claim = self._transactions.run(_txn)
        except InviteExpiredError:
            self._discard(token_hash)
            raise

        logger.info(
            "Invite consumed",
            extra={"role": claim.role, "purpose": claim.purpose, "email_hash": email_fingerprint(claim.email)},
        )
        return claim

    def revoke_for_account(self, account_id: str) -> int:
        """Delete every unused invite bound to ``account_id``; returns how many were removed."""

        if not account_id:
            return 0
        revoked = 0
        for invite in self._invites.list_for_account(account_id):
            if invite.used:
                continue
            self._invites.delete(invite.token_hash)
            revoked += 1
        if revoked:
            logger.info("Outstanding invites revoked", extra={"account_id": account_id, "count": revoked})
        return revoked

    def _purge_stale(self, role: str, email: str, at_ms: int) -> None:
        try:
            for invite in self._invites.list_for_recipient(role, email):
                if invite.used or invite.is_expired(at_ms):
                    self._invites.delete(invite.token_hash)
        except Exception as exc:  # noqa: BLE001 - cleanup is opportunistic
            logger.warning(
                "Failed to purge stale invites",
                extra={"role": role, "email_hash": email_fingerprint(email), "error": str(exc)},
            )

    def _discard(self, token_hash: str) -> None:
        try:
            self._invites.delete(token_hash)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to delete expired invite", extra={"error": str(exc)})


__all__ = ["InviteApplyFn", "InviteClaim", "InviteTokenManager", "email_fingerprint", "hash_token"]
