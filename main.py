#!/usr/bin/env python3
"""
QuizDesk -- command-line entry point.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000
  python main.py serve --reload
  python main.py create-user --email admin@example.com --username admin
  python main.py create-user --email lead@example.com --username lead --role manager

create-user prompts for the password unless --password is given. It is the
only way to create the first account with the superadmin role.

Environment variables (or .env):
  SECRET_KEY    Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL  SQLAlchemy URL. Defaults to sqlite:///quizdesk.db.
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from api.models import EMAIL_PATTERN
from auth.models import ROLE_SUPERADMIN, ROLES, User
from auth.permissions import CAN_MANAGE_USERS
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings


def _serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)


def _create_user(args: argparse.Namespace) -> int:
    email = args.email.strip().lower()
    username = args.username.strip()
    if not EMAIL_PATTERN.match(email):
        print(f"  [!] '{args.email}' is not a valid email address.")
        return 1
    if len(username) < 3:
        print("  [!] Username must be at least 3 characters long.")
        return 1

    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Repeat password: "):
            print("  [!] Passwords do not match.")
            return 1
    if len(password) < 6:
        print("  [!] Password must be at least 6 characters long.")
        return 1
    if len(password.encode("utf-8")) > 72:
        print("  [!] Password must be at most 72 bytes long.")
        return 1

    store = UserStore(get_settings().database_url)
    first_account = not store.has_users()
    try:
        if store.find_conflict(email, username) is not None:
            print("  [!] A user with this email or username already exists.")
            return 1
        user_id = store.create_user(
            User(email=email, username=username, role=args.role, hashed_password=hash_password(password))
        )
    except IntegrityError:
        print("  [!] A user with this email or username already exists.")
        return 1
    finally:
        store.close()

    print(f"  Created {args.role} '{username}' (id {user_id}).")
    if first_account and args.role not in CAN_MANAGE_USERS:
        print("  [!] This is the first account and it cannot manage users. Create an admin or superadmin as well.")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="quizdesk",
        description="QuizDesk quiz server and administration commands.",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the API server with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")

    create = sub.add_parser("create-user", help="Create an account directly in the database.")
    create.add_argument("--email", required=True)
    create.add_argument("--username", required=True)
    create.add_argument(
        "--role",
        choices=ROLES,
        default=ROLE_SUPERADMIN,
        help="Role for the new account (default: superadmin)",
    )
    create.add_argument("--password", help="Password. Prompted for when omitted.")

    args = parser.parse_args()

    if args.command == "serve":
        _serve(args)
        return 0
    if args.command == "create-user":
        return _create_user(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
