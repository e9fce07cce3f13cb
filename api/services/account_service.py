"""
User registration and credential checks.

Every account, the seeded administrator included, is verified through the
same pbkdf2 hash comparison.
"""

import hashlib
import hmac
import logging
import secrets
import uuid
from typing import Optional

from errors import DuplicateUserError, ValidationFailure
from models.user import PLAN_DAILY_LIMITS, Plan, User, UserRole

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "sha256"
HASH_ITERATIONS = 260000


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Return 'pbkdf2_sha256$iterations$salt$hexdigest'."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(HASH_ALGORITHM, password.encode("utf-8"), salt.encode("utf-8"), HASH_ITERATIONS)
    return f"pbkdf2_{HASH_ALGORITHM}${HASH_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        scheme, iterations, salt, expected = password_hash.split("$")
    except ValueError:
        return False
    algorithm = scheme.replace("pbkdf2_", "", 1)
    digest = hashlib.pbkdf2_hmac(algorithm, password.encode("utf-8"), salt.encode("utf-8"), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def register_user(store, name: str, email: str, password: str, ip_address: str = "",
                  role: UserRole = UserRole.USER, plan: Plan = Plan.FREE) -> User:
    """
    Create an account.

    New users start on the Free plan unless another plan is given; the daily
    limit follows the plan.

    Raises:
        ValidationFailure: If name, email or password is empty
        DuplicateUserError: If the email is already registered
    """
    email = (email or "").strip().lower()
    if not name or not email or not password:
        raise ValidationFailure("Name, email and password are required")
    if store.get_user_by_email(email):
        raise DuplicateUserError(f"User with email {email} already exists")

    user = User(
        id=str(uuid.uuid4()),
        name=name,
        email=email,
        role=role,
        plan=plan,
        daily_limit=PLAN_DAILY_LIMITS[plan],
        ip_address=ip_address,
        password_hash=hash_password(password),
    )
    created = store.create_user(user)
    logger.info(f"Registered user {created.email} ({created.plan.value})")
    return created


def authenticate(store, email: str, password: str) -> Optional[User]:
    """Return the user for valid credentials, None otherwise. Blocked users are refused."""
    user = store.get_user_by_email((email or "").strip())
    if user is None or not verify_password(password, user.password_hash):
        logger.info(f"Failed login for {email}")
        return None
    if user.is_blocked:
        logger.warning(f"Blocked user {user.email} attempted to log in")
        return None
    return user
