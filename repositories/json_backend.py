"""
JSON file backend - stores data as JSON/JSONL files.

Directory structure:
    analyses/{id}/
        analysis.json     - AnalysisRequest record
        responses.jsonl   - Provider response rows (append-only)
    accounts/{user_id}.json
"""

from __future__ import annotations

import json
import shutil
import threading
from pathlib import Path
from typing import Optional, Iterator

from pydantic import ValidationError

from config import DATA_DIR
from errors import InvalidRequestError, RepositoryError
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


def _safe_key(name: str) -> str:
    """A record id usable as one path component; ids come from request headers and URLs."""
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise InvalidRequestError(f"Invalid record key: {name!r}")
    return name


class WriteQueue:
    """Thread-safe write serialization."""

    def __init__(self):
        self._lock = threading.Lock()

    def write_json(self, path: Path, data: dict) -> None:
        """Atomic JSON write."""
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                temp = path.with_suffix(".json.tmp")
                with open(temp, "w") as f:
                    json.dump(data, f, indent=2, default=str)
                temp.replace(path)
            except OSError as e:
                raise RepositoryError(f"Failed to write {path}: {e}") from e

    def append_jsonl(self, path: Path, data: dict) -> None:
        """Append to JSONL file."""
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a") as f:
                    f.write(json.dumps(data, default=str) + "\n")
                    f.flush()
            except OSError as e:
                raise RepositoryError(f"Failed to append to {path}: {e}") from e

    def rewrite_jsonl(self, path: Path, keep) -> int:
        """Atomically drop lines whose parsed row fails keep(row). Returns removed count."""
        with self._lock:
            if not path.exists():
                return 0
            try:
                kept, removed = [], 0
                with open(path) as f:
                    for line in f:
                        if not line.strip():
                            continue
                        try:
                            row = json.loads(line)
                        except json.JSONDecodeError:
                            kept.append(line.rstrip("\n"))
                            continue
                        if keep(row):
                            kept.append(line.rstrip("\n"))
                        else:
                            removed += 1
                if removed:
                    temp = path.with_suffix(".jsonl.tmp")
                    with open(temp, "w") as f:
                        f.write("".join(l + "\n" for l in kept))
                    temp.replace(path)
                return removed
            except OSError as e:
                raise RepositoryError(f"Failed to rewrite {path}: {e}") from e


_write_queue = WriteQueue()


class JsonAnalysisRepository(AnalysisRepository):
    """JSON file implementation of analysis repository."""

    def __init__(self, base_path: Path = None):
        self._base_path = (base_path or DATA_DIR) / "analyses"

    def _analysis_dir(self, id: str) -> Path:
        return self._base_path / _safe_key(id)

    def _analysis_file(self, id: str) -> Path:
        return self._analysis_dir(id) / "analysis.json"

    def get(self, id: str) -> Optional[AnalysisRequest]:
        path = self._analysis_file(id)
        if not path.exists():
            return None

        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            print(f"[WARN] Corrupt analysis.json for {id}: {e}")
            return None

        return AnalysisRequest.model_validate(data)

    def save(self, entity: AnalysisRequest) -> None:
        entity.touch()
        _write_queue.write_json(self._analysis_file(entity.id), entity.model_dump(mode="json"))

    def delete(self, id: str) -> bool:
        analysis_dir = self._analysis_dir(id)
        if not analysis_dir.exists():
            return False
        shutil.rmtree(analysis_dir)
        return True

    def list(self) -> list[AnalysisRequest]:
        if not self._base_path.exists():
            return []

        analyses = []
        for d in self._base_path.iterdir():
            if d.is_dir():
                analysis = self.get(d.name)
                if analysis:
                    analyses.append(analysis)

        return sorted(analyses, key=lambda a: a.created_at, reverse=True)

    def exists(self, id: str) -> bool:
        return self._analysis_file(id).exists()

    def list_for_user(self, user_id: str) -> list[AnalysisRequest]:
        return [a for a in self.list() if a.user_id == user_id]


class JsonResponseRepository(ResponseRepository):
    """JSON file implementation of response rows."""

    def __init__(self, base_path: Path = None):
        self._base_path = (base_path or DATA_DIR) / "analyses"

    def _responses_file(self, analysis_id: str) -> Path:
        return self._base_path / _safe_key(analysis_id) / "responses.jsonl"

    def append(self, response: ProviderResponse) -> None:
        _write_queue.append_jsonl(
            self._responses_file(response.analysis_id), response.model_dump(mode="json")
        )

    def get_for_analysis(self, analysis_id: str) -> list[ProviderResponse]:
        return sorted(self.iterate(analysis_id), key=lambda r: r.created_at)

    def iterate(self, analysis_id: str) -> Iterator[ProviderResponse]:
        path = self._responses_file(analysis_id)
        if not path.exists():
            return

        with open(path) as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield ProviderResponse.model_validate(json.loads(line))
                except (json.JSONDecodeError, ValidationError) as e:
                    print(f"[WARN] Corrupt line {line_num} in {analysis_id}/responses.jsonl: {e}")

    def delete_step(self, analysis_id: str, step: Stage) -> int:
        step = Stage(step).value
        return _write_queue.rewrite_jsonl(
            self._responses_file(analysis_id), lambda row: row.get("step") != step
        )


class JsonAccountRepository(AccountRepository):
    """JSON file implementation of account repository."""

    def __init__(self, base_path: Path = None):
        self._base_path = (base_path or DATA_DIR) / "accounts"

    def _account_file(self, user_id: str) -> Path:
        return self._base_path / f"{_safe_key(user_id)}.json"

    def get(self, id: str) -> Optional[UserAccount]:
        path = self._account_file(id)
        if not path.exists():
            return None
        try:
            with open(path) as f:
                return UserAccount.model_validate(json.load(f))
        except json.JSONDecodeError as e:
            print(f"[WARN] Corrupt account file for {id}: {e}")
            return None

    def save(self, entity: UserAccount) -> None:
        entity.touch()
        _write_queue.write_json(self._account_file(entity.user_id), entity.model_dump(mode="json"))

    def delete(self, id: str) -> bool:
        path = self._account_file(id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list(self) -> list[UserAccount]:
        if not self._base_path.exists():
            return []
        accounts = []
        for path in sorted(self._base_path.glob("*.json")):
            account = self.get(path.stem)
            if account:
                accounts.append(account)
        return accounts

    def exists(self, id: str) -> bool:
        return self._account_file(id).exists()


class JsonRepository(Repository):
    """JSON file backend implementation."""

    def __init__(self, base_path: Path = None):
        self._base_path = Path(base_path) if base_path else DATA_DIR
        self._analyses = JsonAnalysisRepository(self._base_path)
        self._responses = JsonResponseRepository(self._base_path)
        self._accounts = JsonAccountRepository(self._base_path)

    @property
    def analyses(self) -> AnalysisRepository:
        return self._analyses

    @property
    def responses(self) -> ResponseRepository:
        return self._responses

    @property
    def accounts(self) -> AccountRepository:
        return self._accounts
