"""Tests for setup-link delivery."""

from __future__ import annotations

from typing import Any, List

import pytest

from apps.merchant_auth.services import LoggingNotifier, NotificationError, SmtpNotifier, build_notifier
from apps.merchant_auth.services import notifier as notifier_module
from apps.merchant_auth.services.notifier import SmtpSettings, build_setup_link


class _FakeSMTP:
    instances: List["_FakeSMTP"] = []
    fail_on_send = False

    def __init__(self, host: str, port: int, **kwargs: Any) -> None:
        self.host = host
        self.port = port
        self.calls: List[str] = []
        self.messages: List[Any] = []
        _FakeSMTP.instances.append(self)

    def __enter__(self) -> "_FakeSMTP":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.calls.append("quit")

    def ehlo(self) -> None:
        self.calls.append("ehlo")

    def starttls(self, context=None) -> None:
        self.calls.append("starttls")

    def login(self, username: str, password: str) -> None:
        self.calls.append(f"login:{username}")

    def send_message(self, msg) -> None:
        if _FakeSMTP.fail_on_send:
            raise OSError("connection reset")
        self.messages.append(msg)


@pytest.fixture
def fake_smtp(monkeypatch):
    _FakeSMTP.instances = []
    _FakeSMTP.fail_on_send = False
    monkeypatch.setattr(notifier_module.smtplib, "SMTP", _FakeSMTP)
    monkeypatch.setattr(notifier_module.smtplib, "SMTP_SSL", _FakeSMTP)
    return _FakeSMTP


def _smtp_notifier(**overrides: Any) -> SmtpNotifier:
    values = dict(host="smtp.test", port=587, username="mailer", password="pw", from_email="no-reply@lankaqr.lk")
    values.update(overrides)
    return SmtpNotifier(SmtpSettings(**values))


def test_setup_link_quotes_token():
    assert build_setup_link("https://app.test/", "/cashier/set-pin", "a+b/c") == (
        "https://app.test/cashier/set-pin?token=a%2Bb%2Fc"
    )


def test_onboarding_mail_over_starttls(fake_smtp):
    _smtp_notifier().send_setup_link("s@lankaqr.lk", "Sam", "https://app.test/x?token=t", "onboarding")

    server = fake_smtp.instances[0]
    assert (server.host, server.port) == ("smtp.test", 587)
    assert server.calls[:4] == ["ehlo", "starttls", "ehlo", "login:mailer"]
    msg = server.messages[0]
    assert msg["Subject"] == "Set up your LankaQR account"
    assert msg["To"] == "s@lankaqr.lk"
    assert msg["From"] == "no-reply@lankaqr.lk"
    assert "https://app.test/x?token=t" in msg.get_content()
    assert "Hello Sam," in msg.get_content()


def test_reset_mail_subject(fake_smtp):
    _smtp_notifier(use_tls=False, port=465).send_setup_link("s@lankaqr.lk", "", "https://app.test/x", "reset")

    server = fake_smtp.instances[0]
    assert "starttls" not in server.calls
    assert server.messages[0]["Subject"] == "Reset your LankaQR credential"


def test_transport_failure_raises_notification_error(fake_smtp):
    fake_smtp.fail_on_send = True

    with pytest.raises(NotificationError):
        _smtp_notifier().send_setup_link("s@lankaqr.lk", "Sam", "https://app.test/x", "onboarding")


def test_build_notifier_picks_transport(auth_config):
    assert isinstance(build_notifier(auth_config), LoggingNotifier)

    auth_config.smtp_host = "smtp.test"
    notifier = build_notifier(auth_config)

    assert isinstance(notifier, SmtpNotifier)


def test_logging_notifier_never_raises():
    LoggingNotifier().send_setup_link("s@lankaqr.lk", "Sam", "https://app.test/x", "onboarding")
