"""
Base entity classes.
"""

from datetime import datetime, timezone
from pydantic import BaseModel, Field, ConfigDict


def utc_now() -> datetime:
    """Timezone-aware now. All persisted timestamps are UTC."""
    return datetime.now(timezone.utc)


class TimestampMixin(BaseModel):
    """Mixin for created/updated timestamps."""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class BaseEntity(TimestampMixin):
    """
    Base for all persistent entities.

    Subclasses define their own id field with appropriate type.
    """
    model_config = ConfigDict(
        validate_assignment=True,
        extra="ignore",  # Ignore unknown fields from older records
        str_strip_whitespace=True,
    )

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = utc_now()
