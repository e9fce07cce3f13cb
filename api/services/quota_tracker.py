"""
Daily extraction quota for a user.

The tracker is the only place the per-user counter is incremented. Every
increment is written through to the user store and published to on_update
so other holders of the user record see the same counter.
"""

import logging
from typing import Callable, Optional

from models.user import User

logger = logging.getLogger(__name__)


def can_extract(user: User) -> bool:
    return user.records_extracted_today < user.daily_limit


class QuotaTracker:
    def __init__(self, user: User, user_store=None,
                 on_update: Optional[Callable[[User], None]] = None):
        self.user = user
        self.user_store = user_store
        self.on_update = on_update

    def can_extract(self) -> bool:
        return can_extract(self.user)

    def remaining(self) -> int:
        return max(0, self.user.daily_limit - self.user.records_extracted_today)

    def record_extraction(self, count: int = 1) -> User:
        """Add count extracted records to the user's daily counter.

        Store failures are logged; the in-memory counter is authoritative for
        the running batch.
        """
        self.user = self.user.model_copy(
            update={"records_extracted_today": self.user.records_extracted_today + count}
        )

        if self.user_store is not None:
            try:
                self.user_store.update_user(self.user)
            except Exception as e:
                logger.error(f"Failed to persist quota for user {self.user.id}: {e}")

        if self.on_update:
            self.on_update(self.user)
        return self.user
