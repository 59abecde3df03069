#!/usr/bin/env python3
"""Assign a role (user/admin/instructor) to an existing account.

The change is recorded in the audit trail with the first admin account as actor.

Usage:
  python scripts/set_role.py --email jane@example.com --role instructor
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.robostaan.constants import ROLE_ADMIN, ROLES  # noqa: E402
from app.robostaan.models import User  # noqa: E402
from app.robostaan.modules.profiles.models import UserProfile  # noqa: E402
from app.robostaan.modules.profiles.service import ensure_profile, set_role  # noqa: E402
from scripts._db_utils import resolve_database_url, script_session  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="Account email")
    parser.add_argument("--role", required=True, choices=ROLES)
    parser.add_argument("--reason", default="Assigned via scripts/set_role.py")
    args = parser.parse_args()

    with script_session(resolve_database_url()) as s:
        user = s.query(User).filter(User.email.ilike(args.email.strip())).one_or_none()
        if not user:
            print(f"User not found: {args.email}")
            return
        actor = (
            s.query(User)
            .join(UserProfile, UserProfile.user_id == User.id)
            .filter(UserProfile.role == ROLE_ADMIN, User.is_active.is_(True))
            .order_by(User.id.asc())
            .first()
        )
        if actor is None:
            print("No admin account found. Run python scripts/init_db.py first.")
            return

        profile = ensure_profile(s, user)
        if profile.role == args.role:
            print(f"{args.email} already has role {args.role}")
            return
        set_role(s, profile, args.role, actor, reason=args.reason)
        print(f"Role {args.role} assigned to {args.email}")


if __name__ == "__main__":
    main()
