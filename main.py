#!/usr/bin/env python3
"""
Campus auth -- administrative command line.

Self-registration over the API only ever creates students. Faculty and admin
accounts (including the first admin) are provisioned here.

Usage:
  python main.py create-user --email dean@campus.edu --role admin
  python main.py create-user --email prof@campus.edu --role faculty --name "Prof. Rao"
  python main.py purge-reset-tokens

Environment variables:
  SECRET_KEY     Required unless DEBUG=true (see core/config.py).
  DATABASE_URL   SQLAlchemy URL of the credential store. Defaults to auth/campusauth.db.
"""

import argparse
import getpass
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from auth.errors import AuthError
from auth.models import Registration, Role
from auth.passwords import PasswordHasher
from auth.reset_tokens import ResetTokenManager
from auth.service import AuthService
from auth.store import CredentialStore
from auth.tokens import SessionTokenIssuer, SigningKeySet
from core.config import get_settings


def _open_store(db_url: Optional[str], hasher: PasswordHasher) -> CredentialStore:
    return CredentialStore(hasher, db_url=db_url or get_settings().database_url)


def _prompt_password() -> str:
    """Read a new password twice without echoing it."""
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Confirm password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return first


def cmd_create_user(args: argparse.Namespace) -> int:
    settings = get_settings()
    hasher = PasswordHasher()
    store = _open_store(args.db_url, hasher)
    try:
        service = AuthService(
            store,
            hasher,
            ResetTokenManager(),
            SessionTokenIssuer(SigningKeySet.from_settings(settings), settings.token_expire_seconds),
        )
        password = args.password if args.password is not None else _prompt_password()
        user = service.create_account(
            Registration(email=args.email, password=password, user_name=args.name, phone_number=args.phone),
            Role(args.role),
        )
    except AuthError as e:
        print(f"  [!] {e.message}")
        return 1
    finally:
        store.close()
    print(f"  Created {user.role} account id={user.id} ({user.email})")
    return 0


def cmd_purge_reset_tokens(args: argparse.Namespace) -> int:
    store = _open_store(args.db_url, PasswordHasher())
    try:
        purged = store.purge_expired_reset_tokens(datetime.now(timezone.utc))
    except AuthError as e:
        print(f"  [!] {e.message}")
        return 1
    finally:
        store.close()
    print(f"  Purged {purged} expired reset token(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Campus auth administration")
    parser.add_argument("--db-url", help="Override DATABASE_URL for this command")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create an account with any role")
    create.add_argument("--email", required=True)
    create.add_argument("--role", choices=[r.value for r in Role], default=Role.faculty.value)
    create.add_argument("--name", dest="name", help="Display name")
    create.add_argument("--phone", help="Phone number")
    # Prefer the interactive prompt; --password exists for provisioning scripts.
    create.add_argument("--password", help=argparse.SUPPRESS)
    create.set_defaults(func=cmd_create_user)

    purge = sub.add_parser("purge-reset-tokens", help="Clear expired password reset tokens")
    purge.set_defaults(func=cmd_purge_reset_tokens)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s %(message)s")
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
