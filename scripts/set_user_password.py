"""Create or update a Glamlink login from the command line.

Public registration only creates ``user`` and ``professional`` accounts,
so this is how admin accounts (magazine editors, support staff) get a
password locally.

    python scripts/set_user_password.py editor@glamlink.net s3cret --role admin --name "Issue Editor"
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from glamlink import create_app
from glamlink.extensions import db
from glamlink.models import AuthAccount, User
from glamlink.validation import is_valid_email

ROLES = ("user", "professional", "admin")


def set_password(email: str, password: str, role: str | None = None, name: str | None = None, app=None) -> None:
    """Hash ``password`` onto the account for ``email``, creating it if needed.

    An existing account keeps its role unless ``role`` is given. New
    accounts default to ``user`` and are named after the email's local part.
    """
    app = app or create_app()

    with app.app_context():
        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(name=name or email.split("@")[0], email=email, role=role or "user")
            db.session.add(user)
            db.session.flush()
            print(f"Created {user.role} account {email}")
        else:
            if role and user.role != role:
                print(f"Role for {email}: {user.role} -> {role}")
                user.role = role
            if name:
                user.name = name

        account = AuthAccount.query.filter_by(user_id=user.user_id).first()
        if account is None:
            account = AuthAccount(user_id=user.user_id)
            db.session.add(account)
        account.password_hash = generate_password_hash(password)
        db.session.commit()

        if user.role != "admin" and email in app.config["ADMIN_EMAILS"]:
            print(f"Note: {email} is listed in ADMIN_EMAILS and will be treated as an admin")

        print(f"Password set for {user.role} {email}")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or update a Glamlink login.")
    parser.add_argument("email", help="Account email; stored lower-cased")
    parser.add_argument("password", help="Plain-text password to hash and store")
    parser.add_argument("--role", choices=ROLES, help="Account role; existing accounts keep theirs when omitted")
    parser.add_argument("--name", help="Display name; defaults to the email's local part for new accounts")
    args = parser.parse_args(argv)

    args.email = args.email.strip().lower()
    if not is_valid_email(args.email):
        parser.error(f"not a valid email address: {args.email}")
    if len(args.password) < 8:
        parser.error("password must be at least 8 characters")
    return args


def main() -> None:
    args = parse_args()
    set_password(args.email, args.password, args.role, args.name)


if __name__ == "__main__":
    main()
