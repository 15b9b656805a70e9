"""
Shared pytest fixtures: a scripted price source, a controllable clock and
helpers for building instants in the reference timezone.
"""

from datetime import datetime
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from polyscreener.price_fetch import PriceCache, PriceFetcher
from polyscreener.price_sources import PriceSource
from polyscreener.state_store import MemoryStore
from polyscreener.tracker import WindowTracker

ET = ZoneInfo('America/New_York')

DEFAULT_PRICES = {'BTC': 65000.0, 'ETH': 3400.0, 'SOL': 150.0}


def et(*args) -> datetime:
    """Aware datetime for a wall-clock time in New York."""
    return datetime(*args, tzinfo=ET)


class FakeSource(PriceSource):
    """Returns queued results in order; an Exception entry is raised."""

    name = "fake"

    def __init__(self, *results):
        super().__init__(session=MagicMock())
        self.results = list(results) or [dict(DEFAULT_PRICES)]
        self.calls = 0

    def fetch(self):
        self.calls += 1
        result = self.results[min(self.calls, len(self.results)) - 1]
        if isinstance(result, Exception):
            raise result
        return dict(result)


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def fetcher(source, clock):
    return PriceFetcher(source=source, cache=PriceCache(ttl=10, clock=clock), clock=clock)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def tracker(store):
    return WindowTracker(store)
