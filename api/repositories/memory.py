"""
In-memory stores with the same interface as the Neo4j repositories.

Used for simulation runs and tests. Carrier rows go through the same
row translation as the Neo4j repository.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from errors import AdminDeletionError, DuplicateUserError, PersistenceFailure
from models.carrier import CarrierRecord, PersistResult
from models.user import BlockedIP, User
from repositories.carrier_repository import delta_to_row, record_to_row, row_to_record
from repositories.user_repository import MUTABLE_FIELDS


class InMemoryCarrierRepository:
    """Carrier Persistence Gateway backed by a dict keyed by MC number"""

    def __init__(self):
        self._rows: Dict[str, Dict] = {}
        self._lock = threading.Lock()

    def upsert_carrier(self, record: CarrierRecord) -> PersistResult:
        row = record_to_row(record)
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            existing = self._rows.get(record.mc_number)
            if existing is None:
                existing = {"created_at": now}
                self._rows[record.mc_number] = existing
            existing.update(row)
            existing["updated_at"] = now
        return PersistResult(success=True)

    def update_partial(self, dot_number: str, delta: Dict) -> PersistResult:
        try:
            props = delta_to_row(delta)
        except PersistenceFailure as e:
            return PersistResult(success=False, error=str(e))

        now = datetime.now(timezone.utc).isoformat()
        updated = 0
        with self._lock:
            for row in self._rows.values():
                if row.get("dot_number") == dot_number:
                    row.update(props)
                    row["updated_at"] = now
                    updated += 1
        if not updated:
            return PersistResult(success=False, error=f"No carrier with DOT {dot_number}")
        return PersistResult(success=True)

    def get_carrier(self, mc_number: str) -> Optional[CarrierRecord]:
        with self._lock:
            row = self._rows.get(mc_number)
            return row_to_record(row) if row else None

    def list_carriers(self) -> List[CarrierRecord]:
        with self._lock:
            rows = sorted(self._rows.values(), key=lambda r: r["created_at"], reverse=True)
            return [row_to_record(row) for row in rows]


class InMemoryUserRepository:
    """User store backed by a dict keyed by user id"""

    def __init__(self, users: Optional[List[User]] = None):
        self._users: Dict[str, User] = {}
        self._lock = threading.Lock()
        for user in users or []:
            self.create_user(user)

    def list_users(self) -> List[User]:
        with self._lock:
            return [user.model_copy() for user in self._users.values()]

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return user.model_copy()
        return None

    def create_user(self, user: User) -> User:
        stored = user.model_copy(update={"email": user.email.lower()})
        with self._lock:
            if any(u.email == stored.email for u in self._users.values()):
                raise DuplicateUserError(f"User with email {stored.email} already exists")
            self._users[stored.id] = stored
        return stored.model_copy()

    def update_user(self, user: User) -> Optional[User]:
        with self._lock:
            existing = self._users.get(user.id)
            if existing is None:
                return None
            updated = existing.model_copy(update={field: getattr(user, field) for field in MUTABLE_FIELDS})
            self._users[user.id] = updated
            return updated.model_copy()

    def delete_user(self, user_id: str) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return False
            if user.is_admin:
                raise AdminDeletionError(f"Administrator {user.email} cannot be deleted")
            del self._users[user_id]
            return True


class InMemoryBlockedIPRepository:
    def __init__(self):
        self._blocked: Dict[str, BlockedIP] = {}
        self._lock = threading.Lock()

    def list_blocked_ips(self) -> List[BlockedIP]:
        with self._lock:
            return sorted(self._blocked.values(), key=lambda b: b.blocked_at, reverse=True)

    def block_ip(self, ip: str, reason: str = "") -> BlockedIP:
        entry = BlockedIP(
            ip=ip,
            reason=reason or "No reason provided",
            blocked_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._blocked[ip] = entry
        return entry

    def unblock_ip(self, ip: str) -> bool:
        with self._lock:
            return self._blocked.pop(ip, None) is not None

    def is_blocked(self, ip: str) -> bool:
        with self._lock:
            return ip in self._blocked
