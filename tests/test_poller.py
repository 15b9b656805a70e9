import threading

from conftest import DEFAULT_PRICES, et
from polyscreener.models import PriceSnapshot
from polyscreener.poller import Poller
from polyscreener.price_sources import UpstreamUnavailableError


def _fixed_clock():
    return et(2024, 1, 10, 14, 37)


def test_tick_feeds_tracker(tracker):
    snap = PriceSnapshot(DEFAULT_PRICES, 1.0)
    poller = Poller(lambda: snap, tracker, interval=60, clock=_fixed_clock)
    assert poller.tick() is True
    assert poller.latest is snap
    assert tracker.baseline('15m') is snap
    assert poller.update_countdowns()['15m'] == 480


def test_failed_tick_keeps_previous_snapshot(tracker):
    snap = PriceSnapshot(DEFAULT_PRICES, 1.0)
    results = [snap, UpstreamUnavailableError('rpc down')]

    def fetch():
        result = results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    poller = Poller(fetch, tracker, interval=60, clock=_fixed_clock)
    assert poller.tick() is True
    assert poller.tick() is False
    assert poller.latest is snap
    assert poller.last_error == 'rpc down'


def test_overlapping_tick_is_skipped(tracker):
    entered = threading.Event()
    release = threading.Event()
    calls = []

    def slow_fetch():
        calls.append(1)
        entered.set()
        release.wait(5)
        return PriceSnapshot(DEFAULT_PRICES, 1.0)

    poller = Poller(slow_fetch, tracker, interval=60, clock=_fixed_clock)
    worker = threading.Thread(target=poller.tick)
    worker.start()
    assert entered.wait(5)
    assert poller.refreshing is True
    assert poller.tick() is False
    release.set()
    worker.join(5)
    assert len(calls) == 1
    assert poller.refreshing is False


def test_start_and_stop_loops(tracker):
    fetched = threading.Event()

    def fetch():
        fetched.set()
        return PriceSnapshot(DEFAULT_PRICES, 1.0)

    poller = Poller(fetch, tracker, interval=60, clock=_fixed_clock)
    poller.start()
    try:
        assert fetched.wait(5)
    finally:
        poller.stop()
    assert poller.latest is not None
    assert poller._threads == []
