"""
Tests for user stores, blocked IPs, registration, authentication and the
administrator seed script.
"""

import pytest
from unittest.mock import MagicMock, patch
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from errors import AdminDeletionError, DuplicateUserError, ValidationFailure
from models.user import Plan, User, UserRole
from repositories.blocked_ip_repository import BlockedIPRepository
from repositories.user_repository import UserRepository
from scripts.seed_admin import seed_admin
from services.account_service import (
    authenticate,
    hash_password,
    register_user,
    verify_password,
)


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("s3cret")
        assert hashed.startswith("pbkdf2_sha256$")
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)

    def test_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash(self):
        assert not verify_password("x", None)
        assert not verify_password("x", "plaintext")


class TestRegistration:

    def test_register_defaults_to_free_plan(self, stores):
        user = register_user(stores.users, "Dispatch", "Ops@Carrier.com", "pw", ip_address="10.0.0.5")

        assert user.email == "ops@carrier.com"
        assert user.plan == Plan.FREE
        assert user.daily_limit == 100
        assert user.records_extracted_today == 0
        assert user.role == UserRole.USER
        assert "password_hash" not in user.model_dump()

    def test_duplicate_email_rejected(self, stores):
        register_user(stores.users, "A", "a@x.com", "pw")
        with pytest.raises(DuplicateUserError):
            register_user(stores.users, "B", "A@X.COM", "pw")

    def test_missing_fields(self, stores):
        with pytest.raises(ValidationFailure):
            register_user(stores.users, "", "a@x.com", "pw")

    def test_authenticate(self, stores):
        register_user(stores.users, "A", "a@x.com", "pw")

        assert authenticate(stores.users, "A@x.com", "pw").email == "a@x.com"
        assert authenticate(stores.users, "a@x.com", "nope") is None
        assert authenticate(stores.users, "missing@x.com", "pw") is None

    def test_blocked_user_refused(self, stores):
        user = register_user(stores.users, "A", "a@x.com", "pw")
        stores.users.update_user(user.model_copy(update={"is_blocked": True}))

        assert authenticate(stores.users, "a@x.com", "pw") is None


class TestSeedAdmin:

    def test_seeded_admin_uses_normal_credential_check(self, stores):
        admin = seed_admin(stores.users, "Admin@Example.com", "change-me", "Owner")

        assert admin.role == UserRole.ADMIN
        assert admin.plan == Plan.ENTERPRISE
        assert admin.daily_limit == 100000
        assert authenticate(stores.users, "admin@example.com", "change-me").id == admin.id
        assert authenticate(stores.users, "admin@example.com", "guess") is None

    def test_seed_is_idempotent(self, stores):
        first = seed_admin(stores.users, "admin@example.com", "pw")
        second = seed_admin(stores.users, "admin@example.com", "other")
        assert first.id == second.id
        assert len(stores.users.list_users()) == 1

    def test_seed_refuses_existing_regular_user(self, stores):
        register_user(stores.users, "A", "admin@example.com", "pw")
        with pytest.raises(ValueError):
            seed_admin(stores.users, "admin@example.com", "pw")


class TestInMemoryUserStore:

    def test_update_replaces_mutable_fields_only(self, stores, user):
        changed = user.model_copy(update={
            "plan": Plan.PRO,
            "daily_limit": 50000,
            "email": "other@example.com",
        })

        updated = stores.users.update_user(changed)

        assert updated.plan == Plan.PRO
        assert updated.daily_limit == 50000
        assert updated.email == "desk@example.com"

    def test_admin_cannot_be_deleted(self, stores):
        admin = stores.users.create_user(User(id="admin", name="Admin", email="a@x.com", role=UserRole.ADMIN))
        with pytest.raises(AdminDeletionError):
            stores.users.delete_user(admin.id)
        assert stores.users.get_user("admin") is not None

    def test_delete_regular_user(self, stores, user):
        assert stores.users.delete_user(user.id)
        assert stores.users.get_user(user.id) is None
        assert not stores.users.delete_user(user.id)

    def test_blocked_ips(self, stores):
        stores.blocked_ips.block_ip("203.0.113.9", "")
        stores.blocked_ips.block_ip("198.51.100.1", "scraping abuse")

        assert stores.blocked_ips.is_blocked("203.0.113.9")
        assert {b.ip for b in stores.blocked_ips.list_blocked_ips()} == {"203.0.113.9", "198.51.100.1"}
        reasons = {b.ip: b.reason for b in stores.blocked_ips.list_blocked_ips()}
        assert reasons["203.0.113.9"] == "No reason provided"

        assert stores.blocked_ips.unblock_ip("203.0.113.9")
        assert not stores.blocked_ips.is_blocked("203.0.113.9")


class TestNeo4jUserRepository:

    @pytest.fixture
    def repo(self):
        return UserRepository(db=MagicMock())

    def test_create_writes_password_hash_and_lowercase_email(self, repo):
        user = User(id="u1", name="A", email="A@X.com", password_hash="pbkdf2_sha256$1$s$h")
        stored = {"id": "u1", "name": "A", "email": "a@x.com", "password_hash": "pbkdf2_sha256$1$s$h",
                  "created_at": "2024-01-01T00:00:00+00:00"}

        with patch.object(repo, "execute_query", side_effect=[[], [{"u": stored}]]) as mock_query:
            created = repo.create_user(user)

        params = mock_query.call_args_list[1][0][1]
        assert params["props"]["email"] == "a@x.com"
        assert params["props"]["password_hash"] == "pbkdf2_sha256$1$s$h"
        assert created.password_hash == "pbkdf2_sha256$1$s$h"

    def test_create_duplicate(self, repo):
        existing = {"id": "u0", "name": "A", "email": "a@x.com"}
        with patch.object(repo, "execute_query", return_value=[{"u": existing}]):
            with pytest.raises(DuplicateUserError):
                repo.create_user(User(id="u1", name="A", email="a@x.com"))

    def test_update_sends_mutable_fields(self, repo):
        user = User(id="u1", name="A", email="a@x.com", plan=Plan.STARTER, daily_limit=1000)
        with patch.object(repo, "execute_query", return_value=[{"u": {"id": "u1", "name": "A", "email": "a@x.com"}}]) as mock_query:
            repo.update_user(user)

        params = mock_query.call_args[0][1]
        assert params["props"]["plan"] == "Starter"
        assert params["props"]["daily_limit"] == 1000
        assert "email" not in params["props"]
        assert "password_hash" not in params["props"]

    def test_delete_admin_refused(self, repo):
        admin = {"id": "a", "name": "Admin", "email": "admin@x.com", "role": "admin"}
        with patch.object(repo, "execute_query", return_value=[{"u": admin}]) as mock_query:
            with pytest.raises(AdminDeletionError):
                repo.delete_user("a")
        assert mock_query.call_count == 1

    def test_block_ip_merges(self):
        repo = BlockedIPRepository(db=MagicMock())
        row = {"ip": "203.0.113.9", "reason": "abuse", "blocked_at": "2024-01-01T00:00:00+00:00"}
        with patch.object(repo, "execute_query", return_value=[{"b": row}]) as mock_query:
            blocked = repo.block_ip("203.0.113.9", "abuse")

        assert "MERGE (b:BlockedIP {ip: $ip})" in mock_query.call_args[0][0]
        assert blocked.ip == "203.0.113.9"
