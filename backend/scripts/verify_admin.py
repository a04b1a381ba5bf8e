"""
Operator check for the admin account: exists, role, active, password match.

Unlike the login endpoint this tells "not found" and "wrong password" apart.
"""

from __future__ import annotations

import argparse
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlalchemy import select  # noqa: E402

from app.config import admin_seed_email, admin_seed_password  # noqa: E402
from app.db import session_scope  # noqa: E402
from app.models import User  # noqa: E402
from app.security import verify_password  # noqa: E402


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", default=admin_seed_email())
    ap.add_argument("--password", default=admin_seed_password())
    args = ap.parse_args()
    email = (args.email or "").strip().lower()
    if not email:
        raise SystemExit("--email (or ADMIN_EMAIL) is required")

    with session_scope() as db:
        user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if not user:
            print(f"NOT FOUND: no user with email {email}")
            return 1
        print(f"found:  {user.email} (id={user.id})")
        print(f"role:   {user.role}{'' if user.role == 'admin' else '  <-- not admin'}")
        print(f"active: {user.is_active}")
        if args.password:
            ok = verify_password(args.password, user.password_hash)
            print(f"password: {'matches' if ok else 'WRONG'}")
            if not ok:
                return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
