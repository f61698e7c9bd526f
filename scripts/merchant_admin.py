#!/usr/bin/env python3
"""Merchant auth administration tool.

Operator entry point for bootstrapping the first admin, re-sending setup
links, removing accounts and reaping expired sessions.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from typing import Optional, Sequence

from app_platform.config.auth import AuthConfig
from apps.merchant_auth import MerchantRuntime, bootstrap_runtime

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = 'configs/app/auth_config.json'

# Never written to disk; supplied through the environment.
_SECRET_KEYS = ('pin_pepper', 'smtp_password')


def init_config(config_path: str) -> bool:
    """Write a default configuration file unless one exists."""
    logger.info("Setting up merchant auth configuration")

    if os.path.exists(config_path):
        logger.info("Auth configuration already exists")
        return True

    data = {key: value for key, value in asdict(AuthConfig()).items() if key not in _SECRET_KEYS}
    try:
        os.makedirs(os.path.dirname(config_path) or '.', exist_ok=True)
        with open(config_path, 'w') as f:
            json.dump(data, f, indent=2, sort_keys=True)
        logger.info(f"Auth configuration written to {config_path}")
        return True
    except OSError as e:
        logger.error(f"Failed to write auth configuration: {e}")
        return False


def invite_account(runtime: MerchantRuntime, role: str, email: str, name: str = '') -> bool:
    """Invite an admin or staff member without an admin session."""
    logger.info(f"Inviting {role} account")

    try:
        account = runtime.role_accounts.invite(role, email.strip().lower(), name, trusted=True)
    except Exception as e:
        logger.error(f"Failed to invite account: {e}")
        return False

    print(f"Invited {role} account {account.account_id}")
    return True


def resend_invite(runtime: MerchantRuntime, account_id: str) -> bool:
    """Issue a fresh onboarding link for a pending account."""
    logger.info(f"Re-sending invite for account: {account_id}")

    try:
        delivered = runtime.identity.resend_invite(account_id)
    except Exception as e:
        logger.error(f"Failed to re-send invite: {e}")
        return False

    if not delivered:
        logger.warning("Invite issued but delivery failed")
    return delivered


def remove_account(runtime: MerchantRuntime, account_id: str) -> bool:
    """Remove an account identity and revoke its sessions."""
    logger.info(f"Removing account: {account_id}")

    try:
        account = runtime.identity.disable(account_id)
    except Exception as e:
        logger.error(f"Failed to remove account: {e}")
        return False

    if account is None:
        logger.error(f"Account {account_id} not found")
        return False

    revoked = runtime.sessions.destroy_for_account(account_id)
    print(f"Removed account {account_id}; revoked {revoked} session(s)")
    return True


def reap_sessions(runtime: MerchantRuntime, limit: int, max_batches: int) -> int:
    """Delete expired sessions in batches of ``limit``; returns the total removed."""
    total = 0
    for _ in range(max(1, max_batches)):
        removed = runtime.sessions.reap_expired(limit)
        total += removed
        if removed < limit:
            break

    print(f"Reaped {total} expired session(s)")
    return total


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Merchant Auth Admin Tool')
    parser.add_argument('--config', default=os.getenv('AUTH_CONFIG_PATH', DEFAULT_CONFIG_PATH), help='Config path')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('init-config', help='Write a default configuration file')

    invite_parser = subparsers.add_parser('invite', help='Invite an admin or staff account')
    invite_parser.add_argument('email', help='Recipient email')
    invite_parser.add_argument('--role', default='admin', choices=['admin', 'staff'], help='Account role')
    invite_parser.add_argument('--name', default='', help='Display name')

    resend_parser = subparsers.add_parser('resend-invite', help='Re-send an onboarding link')
    resend_parser.add_argument('account_id', help='Account id')

    remove_parser = subparsers.add_parser('remove-account', help='Remove an account identity')
    remove_parser.add_argument('account_id', help='Account id')

    reap_parser = subparsers.add_parser('reap-sessions', help='Delete expired sessions')
    reap_parser.add_argument('--limit', type=int, default=100, help='Batch size')
    reap_parser.add_argument('--max-batches', type=int, default=50, help='Upper bound on batches')

    return parser


def main(argv: Optional[Sequence[str]] = None, *, runtime: Optional[MerchantRuntime] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == 'init-config':
        return 0 if init_config(args.config) else 1

    runtime = runtime or bootstrap_runtime(config_path=args.config)

    if args.command == 'invite':
        success = invite_account(runtime, args.role, args.email, args.name)
    elif args.command == 'resend-invite':
        success = resend_invite(runtime, args.account_id)
    elif args.command == 'remove-account':
        success = remove_account(runtime, args.account_id)
    else:
        reap_sessions(runtime, args.limit, args.max_batches)
        success = True

    return 0 if success else 1


if __name__ == '__main__':
    sys.exit(main())
