#!/usr/bin/env python3
"""
Digital Metrology System - Role Assignment
Grants a role to an existing user. Roles are never assigned through the API;
a freshly registered user is a regular_user until this script is run.

Usage:
    python scripts/assign_role.py --email jane@lab.example --role technician
    DATABASE_URL=postgresql+asyncpg://... python scripts/assign_role.py --email admin@lab.example --role admin
"""

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "backend"))

from auth import set_user_role  # noqa: E402
from database import get_db_context  # noqa: E402
from models import AppRole  # noqa: E402


async def run(email: str, role: AppRole) -> int:
    async with get_db_context() as db:
        try:
            profile = await set_user_role(db, email, role)
        except LookupError as e:
            print(f"❌ {e}")
            return 1
    print(f"✅ {profile.email} is now {role.value}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Assign a role to a Digital Metrology System user")
    parser.add_argument("--email", type=str, required=True, help="Email of the registered user")
    parser.add_argument(
        "--role", type=str, required=True,
        choices=[r.value for r in AppRole], help="Role to grant",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.email, AppRole(args.role))))


if __name__ == "__main__":
    main()
