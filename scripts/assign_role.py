#!/usr/bin/env python3
"""
Script to assign a role (admin, guard, student) to an institute email.

Usage:
    python scripts/assign_role.py 200101001@iiti.ac.in admin [phone]
"""
import sys
from pathlib import Path

# Add parent directory to the system path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.errors import HostelError
from database.connection import Database
from database.models import AppRole
from services.role_service import RoleService
import config


def assign_role(email: str, role_value: str, phone_number: str = None):
    """Create a role assignment for an email."""
    try:
        role = AppRole(role_value.strip().lower())
    except ValueError:
        print(f"Error: role must be one of {', '.join(r.value for r in AppRole)}")
        sys.exit(1)

    config.db = Database(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW
    )
    config.db.create_tables()

    try:
        with config.db.get_session() as db:
            user = RoleService.assign(db, email, role, phone_number)
            print(f"\n✓ Role assigned successfully!")
            print(f"  Email: {user.email}")
            print(f"  Role: {user.role.value}")
    except HostelError as e:
        print(f"\n✗ Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)
    assign_role(sys.argv[1], sys.argv[2], sys.argv[3] if len(sys.argv) > 3 else None)
