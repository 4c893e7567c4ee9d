"""
Create Dashboard User
=====================
Creates (or updates) a staff or admin account for the review dashboard.

Usage (from project root, with the package installed):
    python backend/scripts/create_user.py --email admin@truenorthadvocates.org --role admin
    python backend/scripts/create_user.py --email jane.doe@truenorthadvocates.org --name "Jane Doe"

Flags:
    --email     EMAIL   (required) The user's email address
    --name      NAME    (optional) Display name. If omitted, derived from email.
    --role      ROLE    (optional) One of: admin, staff, user. Default: staff
    --password  PW      (optional) If omitted, a temporary password is generated and printed.

Uses DATABASE_URL from the environment, like the API.
"""

import argparse
import secrets
import sys

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from tna_intake.core.database import SessionLocal, init_db
from tna_intake.core.security import hash_password
from tna_intake.models.user import User, UserRole


VALID_ROLES = sorted(role.value for role in UserRole)


def generate_temp_password() -> str:
    """Readable temporary password (12 chars URL-safe)."""
    return secrets.token_urlsafe(9)


def name_from_email(email: str) -> str:
    """
    Derive a display name from the email local part.
    Examples:
        admin@example.org       -> "Admin"
        jane.smith@example.org  -> "Jane Smith"
    """
    local = email.split("@")[0]
    return " ".join(part.capitalize() for part in local.split(".") if part)


def main():
    parser = argparse.ArgumentParser(
        description="Create a dashboard user for the True North Advocates intake API."
    )
    parser.add_argument("--email", required=True, help="The user's email address (required)")
    parser.add_argument("--name", default=None, help="Display name (optional)")
    parser.add_argument(
        "--role",
        default=UserRole.STAFF.value,
        choices=VALID_ROLES,
        help="The role to assign (default: staff)",
    )
    parser.add_argument("--password", default=None, help="Password (optional; generated if omitted)")
    args = parser.parse_args()

    email = args.email.strip().lower()
    if "@" not in email:
        print(f"  [FAIL] Not an email address: {email}")
        sys.exit(1)

    name = args.name.strip() if args.name else name_from_email(email)
    password = args.password or generate_temp_password()

    print("=" * 60)
    print("  CREATE DASHBOARD USER")
    print("=" * 60)

    init_db()
    db = SessionLocal()
    try:
        user = db.query(User).filter(func.lower(User.email) == email).first()
        if user is None:
            user = User(email=email, name=name)
            db.add(user)
            action = "Created"
        else:
            action = "Updated"
        user.name = name
        user.role = args.role
        user.password_hash = hash_password(password)
        user.is_active = True
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        print(f"  [FAIL] Could not save user: {e}")
        sys.exit(1)
    finally:
        db.close()

    print(f"  [OK] {action} user {email} (ID: {user.id})")
    print(f"  Name:     {name}")
    print(f"  Role:     {args.role}")
    if not args.password:
        print(f"  Temp PW:  {password}")
    print()


if __name__ == "__main__":
    main()
