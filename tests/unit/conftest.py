"""
Unit test fixtures.

All unit tests should be:
- Fast (< 100ms)
- Isolated (no network, in-memory store)
- Deterministic (same result every time)

Providers are FakeProvider instances driven by a ProviderScript, so a test
decides per provider and per method what comes back.
"""

import pytest
from datetime import datetime, timezone

from repositories import MemoryRepository


@pytest.fixture
def fixed_time():
    """Fixed datetime for deterministic tests."""
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def repo():
    return MemoryRepository()
