#!/usr/bin/env python3
"""
Job board management CLI.

Usage:
  python main.py init-db
  python main.py create-admin --name "Site Admin" --email admin@example.com
  python main.py verify-employer 12
  python main.py verify-employer 12 --revoke
  python main.py stats

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the job board database (default: ./jobboard.db)
  SECRET_KEY    Required unless DEBUG=true (see core/config.py)
"""

import argparse
import getpass
import json
import re
import sys
from typing import Optional

from api.models import EMAIL_PATTERN
from api.routes.v1.admin import collect_stats
from auth.models import ROLE_ADMIN, User
from auth.store import PrincipalStore
from auth.tokens import hash_password
from board.store import BoardStore
from core.config import get_settings

_EMAIL_RE = re.compile(EMAIL_PATTERN)


def _stores(db_url: str) -> tuple[PrincipalStore, BoardStore]:
    return PrincipalStore(db_url), BoardStore(db_url)


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create every table and index. Safe to run repeatedly."""
    principals, board = _stores(args.database_url)
    principals.close()
    board.close()
    print(f"  Database ready: {args.database_url}")
    return 0


def cmd_create_admin(args: argparse.Namespace) -> int:
    email = args.email.strip().lower()
    if not _EMAIL_RE.match(email):
        print(f"  [!] '{args.email}' is not a valid email address.")
        return 2
    password = args.password or getpass.getpass("  Password: ")
    if len(password) < 6 or len(password) > 72:
        print("  [!] Password must be between 6 and 72 characters.")
        return 2

    principals = PrincipalStore(args.database_url)
    try:
        if principals.email_exists(email):
            print(f"  [!] An account with email {email} already exists.")
            return 1
        user_id = principals.create_user(
            User(name=args.name, email=email, role=ROLE_ADMIN, hashed_password=hash_password(password))
        )
    finally:
        principals.close()
    print(f"  Admin created: id={user_id} email={email}")
    return 0


def cmd_verify_employer(args: argparse.Namespace) -> int:
    principals = PrincipalStore(args.database_url)
    try:
        if not principals.update_employer(args.employer_id, is_verified=not args.revoke):
            print(f"  [!] Employer {args.employer_id} not found.")
            return 1
    finally:
        principals.close()
    state = "unverified" if args.revoke else "verified"
    print(f"  Employer {args.employer_id} is now {state}.")
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    principals, board = _stores(args.database_url)
    try:
        stats = collect_stats(principals, board)
    finally:
        principals.close()
        board.close()
    if args.json:
        print(json.dumps(stats.model_dump(), indent=2))
        return 0
    print("\nJob Board -- Platform Stats")
    print("-" * 40)
    for key, value in stats.model_dump().items():
        if isinstance(value, dict):
            print(f"  {key}:")
            for status, count in sorted(value.items()):
                print(f"    {status:<14} {count}")
        else:
            print(f"  {key:<20} {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobboard",
        description="Maintenance commands for the job board database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init-db
  python main.py create-admin --name "Site Admin" --email admin@example.com
  python main.py verify-employer 12
  python main.py stats --json
        """,
    )
    parser.add_argument(
        "--database-url",
        default=None,
        metavar="URL",
        help="SQLAlchemy database URL (default: DATABASE_URL from the environment)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p_init = sub.add_parser("init-db", help="Create tables and indexes")
    p_init.set_defaults(func=cmd_init_db)

    p_admin = sub.add_parser("create-admin", help="Create an admin user")
    p_admin.add_argument("--name", required=True, help="Display name")
    p_admin.add_argument("--email", required=True, help="Login email")
    p_admin.add_argument("--password", default=None, help="Password (prompted when omitted)")
    p_admin.set_defaults(func=cmd_create_admin)

    p_verify = sub.add_parser("verify-employer", help="Mark an employer as verified")
    p_verify.add_argument("employer_id", type=int, help="Employer id")
    p_verify.add_argument("--revoke", action="store_true", help="Remove verification instead")
    p_verify.set_defaults(func=cmd_verify_employer)

    p_stats = sub.add_parser("stats", help="Print platform counts")
    p_stats.add_argument("--json", action="store_true", help="Output structured JSON")
    p_stats.set_defaults(func=cmd_stats)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    if args.database_url is None:
        args.database_url = get_settings().database_url
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
