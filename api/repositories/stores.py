"""
Store interfaces and backend selection.

Orchestrators and routes depend on these protocols; the concrete backend
(Neo4j repositories or in-memory stores) is picked from settings.
"""

from functools import lru_cache
from typing import Dict, List, Optional, Protocol

from config import Settings, settings
from models.carrier import CarrierRecord, PersistResult
from models.user import BlockedIP, User


class CarrierStore(Protocol):
    def upsert_carrier(self, record: CarrierRecord) -> PersistResult: ...

    def update_partial(self, dot_number: str, delta: Dict) -> PersistResult: ...

    def get_carrier(self, mc_number: str) -> Optional[CarrierRecord]: ...

    def list_carriers(self) -> List[CarrierRecord]: ...


class UserStore(Protocol):
    def list_users(self) -> List[User]: ...

    def get_user(self, user_id: str) -> Optional[User]: ...

    def get_user_by_email(self, email: str) -> Optional[User]: ...

    def create_user(self, user: User) -> User: ...

    def update_user(self, user: User) -> Optional[User]: ...

    def delete_user(self, user_id: str) -> bool: ...


class BlockedIPStore(Protocol):
    def list_blocked_ips(self) -> List[BlockedIP]: ...

    def block_ip(self, ip: str, reason: str = "") -> BlockedIP: ...

    def unblock_ip(self, ip: str) -> bool: ...

    def is_blocked(self, ip: str) -> bool: ...


class Stores:
    """The three stores used by one application instance."""

    def __init__(self, carriers: CarrierStore, users: UserStore, blocked_ips: BlockedIPStore):
        self.carriers = carriers
        self.users = users
        self.blocked_ips = blocked_ips


def build_stores(config: Optional[Settings] = None) -> Stores:
    """Create stores for the configured backend.

    Raises:
        ValueError: If the storage backend is unknown
    """
    config = config or settings
    backend = config.storage_backend.lower()

    if backend == "memory":
        from repositories.memory import (
            InMemoryBlockedIPRepository,
            InMemoryCarrierRepository,
            InMemoryUserRepository,
        )
        return Stores(InMemoryCarrierRepository(), InMemoryUserRepository(), InMemoryBlockedIPRepository())

    if backend == "neo4j":
        from repositories.blocked_ip_repository import BlockedIPRepository
        from repositories.carrier_repository import CarrierRepository
        from repositories.user_repository import UserRepository
        return Stores(CarrierRepository(), UserRepository(), BlockedIPRepository())

    raise ValueError(f"Unknown storage backend: {config.storage_backend}")


@lru_cache
def get_stores() -> Stores:
    """Process-wide stores; used as a FastAPI dependency."""
    return build_stores()
