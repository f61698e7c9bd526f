"""Delivery of credential setup links."""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Protocol
from urllib.parse import quote

from app_platform.config.auth import AuthConfig
from app_platform.contracts import InvitePurpose

from .exceptions import NotificationError
from .invite_tokens import email_fingerprint

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Sends a setup link to a recipient. Raises ``NotificationError`` on failure."""

    def send_setup_link(self, email: str, name: str, link: str, purpose: str) -> None: ...


def build_setup_link(origin: str, path: str, raw_token: str) -> str:
    return f"{origin.rstrip('/')}{path}?token={quote(raw_token, safe='')}"


class LoggingNotifier:
    """Fallback used when no mail transport is configured; records that a link was produced."""

    def send_setup_link(self, email: str, name: str, link: str, purpose: str) -> None:
        logger.info(
            "Setup link generated without a mail transport",
            extra={"email_hash": email_fingerprint(email), "purpose": purpose},
        )


@dataclass(frozen=True)
class SmtpSettings:
    """SMTP configuration for sending setup emails."""
    host: str
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    from_email: Optional[str] = None
    app_name: str = "LankaQR"


class SmtpNotifier:
    def __init__(self, settings: SmtpSettings, *, timeout_seconds: float = 15.0) -> None:
        self._settings = settings
        self._timeout = timeout_seconds

    def _build_message(self, email: str, name: str, link: str, purpose: str) -> EmailMessage:
        app_name = self._settings.app_name
        if purpose == InvitePurpose.RESET.value:
            subject = f"Reset your {app_name} credential"
            intro = "We received a request to reset your credential."
        else:
            subject = f"Set up your {app_name} account"
            intro = "An account has been created for you."

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["To"] = email
        if self._settings.from_email:
            msg["From"] = self._settings.from_email
        greeting = f"Hello {name}," if name else "Hello,"
        msg.set_content(
            f"{greeting}\n\n{intro}\nUse the link below to choose your credential:\n\n{link}\n\n"
            "This link can be used once and expires soon.\n"
        )
        return msg

    def send_setup_link(self, email: str, name: str, link: str, purpose: str) -> None:
        cfg = self._settings
        msg = self._build_message(email, name, link, purpose)
        try:
            context = ssl.create_default_context()
            if cfg.use_tls:
                with smtplib.SMTP(cfg.host, cfg.port, timeout=self._timeout) as server:
                    server.ehlo()
                    server.starttls(context=context)
                    server.ehlo()
                    if cfg.username and cfg.password:
                        server.login(cfg.username, cfg.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(cfg.host, cfg.port, context=context, timeout=self._timeout) as server:
                    if cfg.username and cfg.password:
                        server.login(cfg.username, cfg.password)
                    server.send_message(msg)
            logger.debug("Setup email sent", extra={"email_hash": email_fingerprint(email), "purpose": purpose})
        except Exception as exc:
            logger.error("Setup email failed: %s", exc, extra={"email_hash": email_fingerprint(email)})
            raise NotificationError("Failed to send setup email via SMTP") from exc


def build_notifier(config: AuthConfig) -> Notifier:
    """SMTP when a host is configured, otherwise the logging fallback."""

    if not config.smtp_host:
        return LoggingNotifier()
    return SmtpNotifier(
        SmtpSettings(
            host=config.smtp_host,
            port=int(config.smtp_port),
            username=config.smtp_username,
            password=config.smtp_password,
            use_tls=bool(config.smtp_use_tls),
            from_email=config.mail_from,
            app_name=config.app_name,
        )
    )


__all__ = ["LoggingNotifier", "Notifier", "SmtpNotifier", "SmtpSettings", "build_notifier", "build_setup_link"]
