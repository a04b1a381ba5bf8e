"""
Create the admin account, or promote and reset an existing user.

Usage (from backend/):
  python scripts/create_admin.py --email admin@example.com --password 'S3curePass'
Falls back to ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME.
"""

from __future__ import annotations

import argparse
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlalchemy import select  # noqa: E402

from app.config import admin_seed_email, admin_seed_name, admin_seed_password, is_sqlite  # noqa: E402
from app.db import init_db, session_scope  # noqa: E402
from app.models import User  # noqa: E402
from app.security import hash_password  # noqa: E402


def main() -> None:
    ap = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    ap.add_argument("--email", default=admin_seed_email())
    ap.add_argument("--password", default=admin_seed_password())
    ap.add_argument("--name", default=admin_seed_name())
    args = ap.parse_args()

    email = (args.email or "").strip().lower()
    if not email or not args.password:
        raise SystemExit("--email and --password (or ADMIN_EMAIL / ADMIN_PASSWORD) are required")

    if is_sqlite():
        init_db()

    with session_scope() as db:
        user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if user:
            user.role = "admin"
            user.is_active = True
            user.password_hash = hash_password(args.password)
            print(f"Updated existing user {email}: role=admin, password reset.")
        else:
            db.add(User(name=args.name, email=email, role="admin", password_hash=hash_password(args.password)))
            print(f"Created admin {email}.")


if __name__ == "__main__":
    main()
