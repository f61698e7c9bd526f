"""Merchant authentication and provisioning configuration management."""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Dict

logger = logging.getLogger(__name__)


def _default_cookie_names() -> Dict[str, str]:
    return {
        "individual": "individual_session",
        "company-owner": "company_owner_session",
        "admin": "admin_session",
        "staff": "staff_session",
        "branch-manager": "branch_manager_session",
        "cashier": "cashier_session",
    }


def _bool_env(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class AuthConfig:
    """Credential, invite, and session configuration for the merchant service."""

    environment: str = "development"

    # Firestore configuration
    use_firestore: bool = True
    gcp_project_id: str | None = None
    firestore_emulator_host: str | None = None
    transaction_max_attempts: int = 5

    # Credential hashing
    pin_pepper: str = ""
    argon2_memory_kib: int = 65536
    argon2_time_cost: int = 3
    argon2_parallelism: int = 1
    password_min_length: int = 8

    # Virtual identities
    virtual_login_domain: str = "lqr.internal"

    # Session settings
    session_ttl_seconds: int = 8 * 60 * 60
    session_cookie_names: Dict[str, str] = field(default_factory=_default_cookie_names)

    # Invite settings
    onboarding_invite_ttl_hours: int = 24
    reset_invite_ttl_minutes: int = 60
    invite_requires_admin_session: bool = True
    app_origin: str = "http://localhost:3000"
    app_name: str = "LankaQR"

    # Outbound mail
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    mail_from: str = "no-reply@lankaqr.local"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    def cookie_name_for(self, role: str) -> str:
        """Return the session cookie name configured for ``role``."""

        key = str(getattr(role, "value", role))
        name = self.session_cookie_names.get(key)
        if name:
            return name
        return f"{key.replace('-', '_')}_session"

    @classmethod
    def from_env(cls) -> "AuthConfig":
        """Load configuration from environment variables."""

        logger.info("Loading auth configuration from environment variables")
        cookie_names = _default_cookie_names()
        for role in list(cookie_names):
            env_key = f"SESSION_COOKIE_{role.replace('-', '_').upper()}"
            if os.getenv(env_key):
                cookie_names[role] = os.environ[env_key]

        return cls(
            environment=os.getenv("MERCHANT_ENV", "development"),
            use_firestore=_bool_env("USE_FIRESTORE", "1"),
            gcp_project_id=os.getenv("GOOGLE_CLOUD_PROJECT"),
            firestore_emulator_host=os.getenv("FIRESTORE_EMULATOR_HOST"),
            transaction_max_attempts=int(os.getenv("FS_TRANSACTION_MAX_ATTEMPTS", "5")),
            pin_pepper=os.getenv("PIN_PEPPER", ""),
            argon2_memory_kib=int(os.getenv("ARGON2_MEMORY_KIB", "65536")),
            argon2_time_cost=int(os.getenv("ARGON2_TIME_COST", "3")),
            argon2_parallelism=int(os.getenv("ARGON2_PARALLELISM", "1")),
            password_min_length=int(os.getenv("PASSWORD_MIN_LENGTH", "8")),
            virtual_login_domain=os.getenv("VIRTUAL_LOGIN_DOMAIN", "lqr.internal"),
            session_ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", str(8 * 60 * 60))),
            session_cookie_names=cookie_names,
            onboarding_invite_ttl_hours=int(os.getenv("INVITE_TTL_HOURS", "24")),
            reset_invite_ttl_minutes=int(os.getenv("RESET_INVITE_TTL_MINUTES", "60")),
            invite_requires_admin_session=_bool_env("INVITE_REQUIRES_ADMIN_SESSION", "1"),
            app_origin=os.getenv("APP_ORIGIN", f"http://localhost:{os.getenv('PORT', '3000')}"),
            app_name=os.getenv("APP_NAME", "LankaQR"),
            smtp_host=os.getenv("SMTP_HOST"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_username=os.getenv("SMTP_USERNAME"),
            smtp_password=os.getenv("SMTP_PASSWORD"),
            smtp_use_tls=_bool_env("SMTP_USE_TLS", "1"),
            mail_from=os.getenv("MAIL_FROM") or os.getenv("SMTP_USERNAME") or "no-reply@lankaqr.local",
        )

    @classmethod
    def from_file(cls, config_path: str) -> "AuthConfig":
        """Load configuration from JSON file, falling back to the environment."""

        try:
            logger.info(f"Loading auth configuration from file: {config_path}")
            with open(config_path, "r") as f:
                data = json.load(f)
            known = {item.name for item in fields(cls)}
            unknown = sorted(set(data) - known)
            if unknown:
                logger.warning(f"Ignoring unknown auth config keys: {', '.join(unknown)}")
            config = cls(**{key: value for key, value in data.items() if key in known})
            logger.info("Auth configuration loaded successfully")
            return config
        except FileNotFoundError:
            logger.warning(f"Auth config file not found: {config_path}, using environment")
            return cls.from_env()
        except Exception as e:
            logger.error(f"Error loading auth config from {config_path}: {e}")
            return cls.from_env()

    def validate(self) -> bool:
        """Validate configuration settings."""

        logger.info("Validating auth configuration")

        if not self.pin_pepper:
            if self.is_production:
                logger.warning("PIN_PEPPER is empty in production; credential hashes are unpeppered")
            else:
                logger.info("PIN_PEPPER not set")

        if self.argon2_memory_kib < 8 * max(1, self.argon2_parallelism):
            logger.warning(f"Argon2 memory cost too low: {self.argon2_memory_kib} KiB")

        if self.argon2_time_cost < 1:
            logger.warning(f"Argon2 time cost too low: {self.argon2_time_cost}")

        if self.session_ttl_seconds < 300:  # Minimum 5 minutes
            logger.warning(f"Session TTL too short: {self.session_ttl_seconds}s")

        if self.password_min_length < 8:
            logger.warning(f"Password minimum length too low: {self.password_min_length}")

        if self.transaction_max_attempts < 1:
            logger.warning("transaction_max_attempts must be positive")

        if self.smtp_host and not self.smtp_username:
            logger.warning(
                "SMTP host configured without credentials",
                extra={"smtp_host": self.smtp_host},
            )

        if len(set(self.session_cookie_names.values())) != len(self.session_cookie_names):
            logger.warning("Session cookie names are not unique per role")

        logger.info("Auth configuration validation completed")

        return True
