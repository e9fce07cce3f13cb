#!/usr/bin/env python3
"""
Create the administrator account once at provisioning time.

Reads ADMIN_EMAIL, ADMIN_PASSWORD and ADMIN_NAME from the environment (or
.env). Running it again leaves an existing administrator untouched.
"""

import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from models.user import Plan, User, UserRole
from repositories.stores import build_stores
from services.account_service import register_user

load_dotenv()

logger = logging.getLogger(__name__)


def seed_admin(store, email: str, password: str, name: str = "Administrator") -> User:
    """Create the administrator unless an account with that email exists.

    Raises:
        ValueError: If an existing account with the email is not an administrator
    """
    existing = store.get_user_by_email(email)
    if existing:
        if not existing.is_admin:
            raise ValueError(f"{email} already belongs to a non-admin account")
        logger.info(f"Administrator {existing.email} already exists")
        return existing

    return register_user(
        store,
        name=name,
        email=email,
        password=password,
        role=UserRole.ADMIN,
        plan=Plan.ENTERPRISE,
    )


def main() -> int:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    name = os.getenv("ADMIN_NAME", "Administrator")
    if not email or not password:
        logger.error("ADMIN_EMAIL and ADMIN_PASSWORD must be set")
        return 1

    stores = build_stores()
    admin = seed_admin(stores.users, email, password, name)
    print(f"Administrator ready: {admin.email} ({admin.plan.value}, {admin.daily_limit} records/day)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
