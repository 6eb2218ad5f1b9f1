"""Shared test fixtures for the spmcontext test suite."""

from __future__ import annotations

import pytest

from spmcontext.cache import CacheManager, MemoryCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_cache(clock: FakeClock) -> MemoryCache[object]:
    """A standalone partition with a 60s TTL and a 1 KiB budget."""
    return MemoryCache(60, 1024, name="test", clock=clock)


@pytest.fixture()
def cache_manager(clock: FakeClock) -> CacheManager:
    return CacheManager(clock=clock)
