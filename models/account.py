"""
Account models - what the rate limiter needs to know about a user.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from .base import BaseEntity

UNLIMITED = -1


class UserAccount(BaseEntity):
    """
    Metering profile for one user.

    stored_credentials arrive already decrypted from the credential service.
    """
    user_id: str
    tier: str = "free"
    daily_token_limit: Optional[int] = Field(default=None, ge=0)  # overrides the tier
    unrestricted: bool = False
    stored_credentials: dict[str, str] = Field(default_factory=dict)

    @property
    def has_stored_credentials(self) -> bool:
        return any(v and v.strip() for v in self.stored_credentials.values())


class RateBudget(BaseModel):
    """Derived budget for the current UTC day. Never stored."""
    allowed: bool
    remaining: int
    daily_limit: int
    used_today: int
    reset_at: datetime
    bypassed: bool = False  # BYOK or unrestricted
    degraded: bool = False  # usage unreadable, failed open

    @property
    def unlimited(self) -> bool:
        return self.daily_limit == UNLIMITED

    def to_dict(self) -> dict:
        """Export for API responses."""
        return {
            "allowed": self.allowed,
            "remaining": None if self.unlimited else self.remaining,
            "daily_limit": None if self.unlimited else self.daily_limit,
            "used_today": self.used_today,
            "reset_at": self.reset_at.isoformat(),
            "bypassed": self.bypassed,
            "degraded": self.degraded,
        }
