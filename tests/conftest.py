"""Shared test fixtures for streamsift tests."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from streamsift.infrastructure.cache.memory_adapter import InMemoryCacheAdapter
from streamsift.infrastructure.config.schema import AggregationConfig


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Mock port fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_cache() -> AsyncMock:
    """AsyncMock of CachePort (always misses)."""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock()
    cache.delete = AsyncMock(return_value=False)
    cache.exists = AsyncMock(return_value=False)
    return cache


@pytest.fixture()
def mock_fetcher() -> AsyncMock:
    """AsyncMock of FetcherPort (every source unavailable)."""
    fetcher = AsyncMock()
    fetcher.fetch = AsyncMock(return_value=None)
    return fetcher


# ---------------------------------------------------------------------------
# Real component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_cache(fake_clock: FakeClock) -> InMemoryCacheAdapter:
    return InMemoryCacheAdapter(ttl_seconds=1800, clock=fake_clock)


@pytest.fixture()
def aggregation_config() -> AggregationConfig:
    """Aggregation settings without inter-tier pacing."""
    return AggregationConfig(tier_pacing_seconds=0, deadline_seconds=5)
