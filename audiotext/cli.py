# audiotext/cli.py
"""
audiotext-admin: operator commands that bypass the HTTP API.

  audiotext-admin hash-password            # prints a hash for a prompted password
  audiotext-admin create-admin EMAIL NAME  # creates (or promotes) an admin account
  audiotext-admin prune-activity --days 90 # deletes activity log entries older than N days
"""
from __future__ import annotations

import argparse
import getpass
import logging
import sys
from typing import List, Optional

from audiotext.config import load_settings
from audiotext.db import ActivityLogRepository, UserRepository, create_tables, make_engine, make_session_factory
from audiotext.db.models import Role
from audiotext.passwords import generate_secure_password, hash_password, validate_password_strength


def _read_password(generate: bool) -> str:
    if generate:
        password = generate_secure_password(16)
        print(f"Generated password: {password}")
        return password
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        raise SystemExit("Passwords do not match")
    problems = validate_password_strength(password)
    if problems:
        raise SystemExit("\n".join(problems))
    return password


def cmd_hash_password(args: argparse.Namespace) -> int:
    print(hash_password(_read_password(args.generate)))
    return 0


def cmd_create_admin(args: argparse.Namespace) -> int:
    settings = load_settings()
    engine = make_engine(settings.database_url)
    create_tables(engine)
    db = make_session_factory(engine)()
    try:
        users = UserRepository(db)
        existing = users.find_by_email(args.email)
        if existing is not None:
            users.update(existing, role=Role.admin, is_active=True)
            print(f"Promoted {existing.email} to admin")
            return 0
        user = users.create(
            email=args.email,
            name=args.name,
            password_hash=hash_password(_read_password(args.generate)),
            role=Role.admin,
            email_verified=True,
        )
        print(f"Created admin {user.email} (id={user.id})")
        return 0
    finally:
        db.close()


def cmd_prune_activity(args: argparse.Namespace) -> int:
    if args.days < 1:
        raise SystemExit("--days must be at least 1")
    settings = load_settings()
    engine = make_engine(settings.database_url)
    create_tables(engine)
    db = make_session_factory(engine)()
    try:
        user_id = None
        if args.email:
            user = UserRepository(db).find_by_email(args.email)
            if user is None:
                raise SystemExit(f"No user with email {args.email}")
            user_id = user.id
        removed = ActivityLogRepository(db).delete_older_than(args.days, user_id=user_id)
        print(f"Removed {removed} activity entries older than {args.days} days")
        return 0
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="audiotext-admin")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("hash-password", help="print a password hash in the stored format")
    p.add_argument("--generate", action="store_true", help="generate a random strong password")
    p.set_defaults(func=cmd_hash_password)

    p = sub.add_parser("create-admin", help="create an admin user, or promote an existing one")
    p.add_argument("email")
    p.add_argument("name")
    p.add_argument("--generate", action="store_true", help="generate a random strong password")
    p.set_defaults(func=cmd_create_admin)

    p = sub.add_parser("prune-activity", help="delete old activity log entries")
    p.add_argument("--days", type=int, default=90, help="keep entries newer than this many days")
    p.add_argument("--email", help="only prune this user's entries")
    p.set_defaults(func=cmd_prune_activity)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s:%(name)s:%(message)s")
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
