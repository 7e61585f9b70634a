"""
In-memory backend - same contract as the JSON backend, nothing on disk.

Stores deep copies so callers can't mutate persisted state by accident.
"""

from __future__ import annotations

import threading
from typing import Optional

from models import (
    AnalysisRequest,
    ProviderResponse,
    Stage,
    UserAccount,
)
from .base import (
    Repository,
    AnalysisRepository,
    ResponseRepository,
    AccountRepository,
)


class MemoryAnalysisRepository(AnalysisRepository):

    def __init__(self):
        self._items: dict[str, AnalysisRequest] = {}
        self._lock = threading.Lock()

    def get(self, id: str) -> Optional[AnalysisRequest]:
        with self._lock:
            item = self._items.get(id)
            return item.model_copy(deep=True) if item else None

    def save(self, entity: AnalysisRequest) -> None:
        entity.touch()
        with self._lock:
            self._items[entity.id] = entity.model_copy(deep=True)

    def delete(self, id: str) -> bool:
        with self._lock:
            return self._items.pop(id, None) is not None

    def list(self) -> list[AnalysisRequest]:
        with self._lock:
            items = [a.model_copy(deep=True) for a in self._items.values()]
        return sorted(items, key=lambda a: a.created_at, reverse=True)

    def exists(self, id: str) -> bool:
        return id in self._items

    def list_for_user(self, user_id: str) -> list[AnalysisRequest]:
        return [a for a in self.list() if a.user_id == user_id]


class MemoryResponseRepository(ResponseRepository):

    def __init__(self):
        self._rows: dict[str, list[ProviderResponse]] = {}
        self._lock = threading.Lock()

    def append(self, response: ProviderResponse) -> None:
        with self._lock:
            self._rows.setdefault(response.analysis_id, []).append(response.model_copy(deep=True))

    def get_for_analysis(self, analysis_id: str) -> list[ProviderResponse]:
        with self._lock:
            rows = [r.model_copy(deep=True) for r in self._rows.get(analysis_id, [])]
        return sorted(rows, key=lambda r: r.created_at)

    def delete_step(self, analysis_id: str, step: Stage) -> int:
        step = Stage(step)
        with self._lock:
            rows = self._rows.get(analysis_id, [])
            kept = [r for r in rows if r.step != step]
            self._rows[analysis_id] = kept
            return len(rows) - len(kept)


class MemoryAccountRepository(AccountRepository):

    def __init__(self):
        self._items: dict[str, UserAccount] = {}
        self._lock = threading.Lock()

    def get(self, id: str) -> Optional[UserAccount]:
        with self._lock:
            item = self._items.get(id)
            return item.model_copy(deep=True) if item else None

    def save(self, entity: UserAccount) -> None:
        entity.touch()
        with self._lock:
            self._items[entity.user_id] = entity.model_copy(deep=True)

    def delete(self, id: str) -> bool:
        with self._lock:
            return self._items.pop(id, None) is not None

    def list(self) -> list[UserAccount]:
        with self._lock:
            return [a.model_copy(deep=True) for a in self._items.values()]

    def exists(self, id: str) -> bool:
        return id in self._items


class MemoryRepository(Repository):
    """In-process backend for tests."""

    def __init__(self):
        self._analyses = MemoryAnalysisRepository()
        self._responses = MemoryResponseRepository()
        self._accounts = MemoryAccountRepository()

    @property
    def analyses(self) -> AnalysisRepository:
        return self._analyses

    @property
    def responses(self) -> ResponseRepository:
        return self._responses

    @property
    def accounts(self) -> AccountRepository:
        return self._accounts
