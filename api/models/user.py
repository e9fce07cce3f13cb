from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Plan(str, Enum):
    FREE = "Free"
    STARTER = "Starter"
    PRO = "Pro"
    ENTERPRISE = "Enterprise"


# Daily extraction ceiling implied by each subscription plan
PLAN_DAILY_LIMITS = {
    Plan.FREE: 100,
    Plan.STARTER: 1000,
    Plan.PRO: 50000,
    Plan.ENTERPRISE: 100000,
}


class User(BaseModel):
    """Account holding a subscription plan and the daily extraction counter.

    Emails are stored lower-cased and are unique across accounts.
    """

    id: str = Field(..., description="Opaque user identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Login email, stored lower-cased")
    role: UserRole = UserRole.USER
    plan: Plan = Plan.FREE
    daily_limit: int = Field(PLAN_DAILY_LIMITS[Plan.FREE], ge=0, description="Records allowed per day")
    records_extracted_today: int = Field(0, ge=0, description="Records extracted in the current day")
    last_active: str = "Never"
    ip_address: str = ""
    is_online: bool = False
    is_blocked: bool = False
    password_hash: Optional[str] = Field(None, exclude=True, description="pbkdf2 hash, never serialized")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class BlockedIP(BaseModel):
    ip: str
    reason: str = "No reason provided"
    blocked_at: datetime
