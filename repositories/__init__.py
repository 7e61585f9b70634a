"""
Repository layer - abstracts persistence.

Usage:
    from repositories import get_repository

    repo = get_repository()  # Returns configured backend
    analysis = repo.analyses.get(analysis_id)
    repo.responses.append(response)

Backends are swappable via config.
"""

from .base import Repository
from .json_backend import JsonRepository
from .memory_backend import MemoryRepository

# Default backend - can be changed via config
_backend: str = "json"
_options: dict = {}
_instance: Repository = None


def get_repository() -> Repository:
    """Get the configured repository instance."""
    global _instance

    if _instance is None:
        if _backend == "json":
            _instance = JsonRepository(**_options)
        elif _backend == "memory":
            _instance = MemoryRepository()
        else:
            raise ValueError(f"Unknown backend: {_backend}")

    return _instance


def configure_backend(backend: str, **kwargs) -> None:
    """Configure the repository backend (json accepts base_path)."""
    global _backend, _options, _instance
    _backend = backend
    _options = kwargs
    _instance = None  # Force re-initialization


__all__ = ["get_repository", "configure_backend", "Repository", "JsonRepository", "MemoryRepository"]
