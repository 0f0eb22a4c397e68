#!/usr/bin/env python3
"""
Acquisitions API -- administrative command line.

Usage:
  python main.py create-user --name "Ada Admin" --email ada@example.com --role admin
  python main.py create-user --name "Bob" --email bob@example.com --password s3cret!
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 3000 --reload

create-user checks its values against the sign-up body model and then goes
through the same AuthService as POST /api/auth/sign-up, so field rules, the
email uniqueness check and password hashing are identical. When
--password is omitted the password is read with getpass (no echo, not kept in
shell history).

Environment variables (see core/config.py):
  SECRET_KEY     Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL   SQLAlchemy URL. Defaults to sqlite:///acquisitions.db.
"""

import argparse
import getpass
import sys
from typing import Optional

from pydantic import ValidationError as RequestInvalid

from api.models import SignUpRequest, field_errors
from auth.errors import AuthError, DuplicateEmailError, ValidationError
from auth.models import Role
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from core.config import get_settings


def _read_password() -> str:
    password = getpass.getpass("Password: ")
    if getpass.getpass("Confirm password: ") != password:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return password


def _sign_up_request(args: argparse.Namespace, password: str) -> SignUpRequest:
    """Apply the POST /api/auth/sign-up body rules to the command line values."""
    try:
        return SignUpRequest(name=args.name, email=args.email, password=password, role=args.role)
    except RequestInvalid as exc:
        details = [detail.model_dump() for detail in field_errors(exc.errors())]
        raise ValidationError("Invalid user details", details=details) from exc


def create_user(args: argparse.Namespace) -> int:
    password = args.password or _read_password()

    try:
        request = _sign_up_request(args, password)
    except ValidationError as exc:
        print(f"  [!] {exc.message}:")
        for detail in exc.details:
            print(f"      {detail['field']}: {detail['message']}")
        return 1

    settings = get_settings()
    store = UserStore(settings.database_url)
    try:
        identity = AuthService(store, PasswordHasher()).register(
            request.name, request.email, request.role, request.password
        )
    except DuplicateEmailError:
        print(f"  [!] A user with email '{request.email}' already exists.")
        return 1
    except AuthError as exc:
        print(f"  [!] Could not create user: {exc}")
        return 1
    finally:
        store.close()

    print(f"  Created {identity.role.value} '{identity.email}' (id={identity.id}).")
    return 0


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="acquisitions",
        description="Acquisitions API administration.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_user = sub.add_parser("create-user", help="Register a user directly in the credential store")
    p_user.add_argument("--name", required=True)
    p_user.add_argument("--email", required=True)
    p_user.add_argument("--role", choices=[r.value for r in Role], default=Role.user.value)
    p_user.add_argument("--password", help="Omit to be prompted without echo")
    p_user.set_defaults(func=create_user)

    p_serve = sub.add_parser("serve", help="Run the API with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=3000)
    p_serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    p_serve.set_defaults(func=serve)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
