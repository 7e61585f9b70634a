"""
Repository base classes - define the interface.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Generic, TypeVar, Optional

from models import (
    AnalysisRequest,
    ProviderResponse,
    Stage,
    UserAccount,
)

T = TypeVar("T")


class BaseRepository(ABC, Generic[T]):
    """Abstract base for entity repositories."""

    @abstractmethod
    def get(self, id: str) -> Optional[T]:
        """Get entity by ID."""
        pass

    @abstractmethod
    def save(self, entity: T) -> None:
        """Save entity."""
        pass

    @abstractmethod
    def delete(self, id: str) -> bool:
        """Delete entity by ID. Returns True if deleted."""
        pass

    @abstractmethod
    def list(self) -> list[T]:
        """List all entities."""
        pass

    @abstractmethod
    def exists(self, id: str) -> bool:
        """Check if entity exists."""
        pass


class AnalysisRepository(BaseRepository[AnalysisRequest]):
    """Repository for analysis requests."""

    @abstractmethod
    def list_for_user(self, user_id: str) -> list[AnalysisRequest]:
        """All analyses owned by a user, newest first."""
        pass


class ResponseRepository(ABC):
    """
    Provider response rows.

    Append-only, except delete_step, which exists so a retried synthesis
    can replace the previous one.
    """

    @abstractmethod
    def append(self, response: ProviderResponse) -> None:
        """Persist one attempt. Durable on return."""
        pass

    @abstractmethod
    def get_for_analysis(self, analysis_id: str) -> list[ProviderResponse]:
        """All rows for an analysis, oldest first."""
        pass

    @abstractmethod
    def delete_step(self, analysis_id: str, step: Stage) -> int:
        """Delete every row of a stage. Returns how many were removed."""
        pass

    def count(self, analysis_id: str) -> int:
        return len(self.get_for_analysis(analysis_id))


class AccountRepository(BaseRepository[UserAccount]):
    """Repository for metering profiles, keyed by user_id."""
    pass


class Repository:
    """
    Aggregate repository - provides access to all entity repositories.

    This is what consumers use. Backend implementations provide
    concrete versions of each sub-repository.
    """

    @property
    @abstractmethod
    def analyses(self) -> AnalysisRepository:
        """Access analysis repository."""
        pass

    @property
    @abstractmethod
    def responses(self) -> ResponseRepository:
        """Access response rows."""
        pass

    @property
    @abstractmethod
    def accounts(self) -> AccountRepository:
        """Access account repository."""
        pass

    def tokens_used_since(self, user_id: str, since: datetime) -> int:
        """
        Sum tokens_used over a user's response rows created at or after since.

        Read-time aggregation over the ledger; backends with an index can
        override this with something cheaper than a scan.
        """
        total = 0
        for analysis in self.analyses.list_for_user(user_id):
            for response in self.responses.get_for_analysis(analysis.id):
                if response.created_at >= since:
                    total += response.tokens_used
        return total
