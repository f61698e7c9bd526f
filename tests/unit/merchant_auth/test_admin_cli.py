"""Tests for the merchant admin command line tool."""

from __future__ import annotations

import json

import pytest

from scripts.merchant_admin import main


def _account_ids(fs_client):
    return [path.split("/", 1)[1] for path in fs_client.paths("accounts/")]


def test_init_config_writes_defaults_without_secrets(tmp_path):
    path = tmp_path / "configs" / "auth_config.json"

    assert main(["--config", str(path), "init-config"]) == 0

    data = json.loads(path.read_text())
    assert data["session_ttl_seconds"] == 28800
    assert "pin_pepper" not in data
    assert "smtp_password" not in data

    path.write_text("{}")
    assert main(["--config", str(path), "init-config"]) == 0
    assert path.read_text() == "{}"


def test_invite_bootstraps_admin_without_session(runtime, notifier, fs_client):
    assert main(["invite", "Root@LankaQR.lk", "--name", "Root"], runtime=runtime) == 0

    assert notifier.last.email == "root@lankaqr.lk"
    assert notifier.last.link.startswith("https://merchant.test/admin/set-password?token=")
    [account_id] = _account_ids(fs_client)
    assert fs_client.dump(f"accounts/{account_id}")["status"] == "pending"


def test_invite_rejects_gateway_only_roles(runtime):
    with pytest.raises(SystemExit):
        main(["invite", "x@lankaqr.lk", "--role", "cashier"], runtime=runtime)


def test_resend_invite(runtime, notifier, fs_client):
    main(["invite", "staff@lankaqr.lk", "--role", "staff"], runtime=runtime)
    [account_id] = _account_ids(fs_client)

    assert main(["resend-invite", account_id], runtime=runtime) == 0
    assert len(notifier.sent) == 2
    assert main(["resend-invite", "missing"], runtime=runtime) == 1


def test_remove_account_revokes_sessions(runtime, fs_client):
    main(["invite", "staff@lankaqr.lk", "--role", "staff"], runtime=runtime)
    [account_id] = _account_ids(fs_client)
    runtime.sessions.create_session(account_id, "staff")

    assert main(["remove-account", account_id], runtime=runtime) == 0
    assert fs_client.dump(f"accounts/{account_id}") is None
    assert fs_client.paths("sessions/") == []
    assert main(["remove-account", account_id], runtime=runtime) == 1


def test_reap_sessions_runs_batches(runtime, fs_client, clock):
    for account_id in ("a1", "a2", "a3"):
        runtime.sessions.create_session(account_id, "cashier")
    clock.advance(9 * 3600)

    assert main(["reap-sessions", "--limit", "2"], runtime=runtime) == 0
    assert fs_client.paths("sessions/") == []


def test_missing_command_prints_help(capsys):
    assert main([]) == 1
    assert "Merchant Auth Admin Tool" in capsys.readouterr().out
