"""PIN and password hashing with opportunistic legacy-digest migration."""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
from typing import Optional, Tuple

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from app_platform.config.auth import AuthConfig

logger = logging.getLogger(__name__)

MODERN_ALGORITHM = "argon2id"
LEGACY_ALGORITHM = "sha256"
_MODERN_PREFIX = "$argon2"
_LEGACY_PATTERN = re.compile(r"^[0-9a-f]{64}$")


class PinCredentialService:
    """Hashes, verifies, and migrates PIN and password credentials.

    Secrets are peppered with a server-held value before Argon2id hashing; the
    random per-hash salt is managed by argon2-cffi. Legacy credentials are bare
    hex sha256 digests of the secret and are only ever verified, never produced.
    """

    def __init__(
        self,
        *,
        pepper: str = "",
        memory_cost_kib: int = 65536,
        time_cost: int = 3,
        parallelism: int = 1,
    ) -> None:
        self._pepper = pepper
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost_kib,
            parallelism=parallelism,
            type=Type.ID,
        )

    @classmethod
    def from_config(cls, config: AuthConfig) -> "PinCredentialService":
        return cls(
            pepper=config.pin_pepper,
            memory_cost_kib=config.argon2_memory_kib,
            time_cost=config.argon2_time_cost,
            parallelism=config.argon2_parallelism,
        )

    @property
    def algorithm(self) -> str:
        return MODERN_ALGORITHM

    def hash(self, secret: str) -> str:
        """Return an encoded Argon2id hash of ``secret`` plus the pepper."""

        if not isinstance(secret, str) or not secret:
            raise ValueError("secret must be a non-empty string")
        return self._hasher.hash(secret + self._pepper)

    def verify(self, secret: str, encoded_hash: Optional[str]) -> bool:
        """Check ``secret`` against a stored hash; any failure is a mismatch, never an error."""

        if not isinstance(secret, str) or not isinstance(encoded_hash, str) or not encoded_hash:
            return False

        if self.is_modern_hash(encoded_hash):
            try:
                return self._hasher.verify(encoded_hash, secret + self._pepper)
            except (VerifyMismatchError, VerificationError, InvalidHash):
                return False
            except Exception:  # noqa: BLE001 - malformed parameters surface as assorted errors
                logger.warning("Credential verification raised unexpectedly", exc_info=True)
                return False

        if self.is_legacy_hash(encoded_hash):
            return self._verify_legacy(secret, encoded_hash)

        return False

    @staticmethod
    def is_modern_hash(value: Optional[str]) -> bool:
        return isinstance(value, str) and value.startswith(_MODERN_PREFIX)

    @staticmethod
    def is_legacy_hash(value: Optional[str]) -> bool:
        return isinstance(value, str) and _LEGACY_PATTERN.match(value) is not None

    def verify_and_upgrade(self, secret: str, encoded_hash: Optional[str]) -> Tuple[bool, Optional[str]]:
        """Verify ``secret``; on a legacy match also return a replacement modern hash.

        Returns ``(matched, upgraded_hash)`` where ``upgraded_hash`` is ``None``
        unless the stored value should be replaced.
        """

        if not self.verify(secret, encoded_hash):
            return False, None

        if self.is_legacy_hash(encoded_hash):
            logger.info("Legacy credential matched; issuing modern hash")
            return True, self.hash(secret)

        return True, None

    @staticmethod
    def _verify_legacy(secret: str, digest: str) -> bool:
        candidate = hashlib.sha256(secret.encode("utf-8")).hexdigest()
        return hmac.compare_digest(candidate, digest.lower())


__all__ = ["LEGACY_ALGORITHM", "MODERN_ALGORITHM", "PinCredentialService"]
