"""Background loops: periodic price fetch and one-second countdown refresh."""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from polyscreener.config import CONFIG
from polyscreener.models import PriceSnapshot
from polyscreener.price_sources import PriceFetchError
from polyscreener.tracker import WindowTracker

log = logging.getLogger(__name__)

COUNTDOWN_INTERVAL = 1.0


class Poller:
    """Feeds fetched snapshots to the tracker on a fixed interval.

    Only one fetch runs at a time; a tick that overlaps an in-flight fetch is
    skipped rather than queued.
    """

    def __init__(self, fetch: Callable[[], PriceSnapshot], tracker: WindowTracker,
                 interval: Optional[float] = None,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.fetch = fetch
        self.tracker = tracker
        self.interval = CONFIG['FETCH_INTERVAL'] if interval is None else interval
        self.clock = clock
        self.latest: Optional[PriceSnapshot] = None
        self.last_error: Optional[str] = None
        self.countdowns: Dict[str, int] = {}
        self._in_flight = threading.Lock()
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def refreshing(self) -> bool:
        return self._in_flight.locked()

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def tick(self) -> bool:
        """Run one fetch cycle; False when skipped or failed."""
        if not self._in_flight.acquire(blocking=False):
            log.debug('poller.tick_skipped (fetch in flight)')
            return False
        try:
            snapshot = self.fetch()
            self.tracker.observe(snapshot, self.clock())
            self.latest = snapshot
            self.last_error = None
            return True
        except PriceFetchError as e:
            self.last_error = str(e)
            log.warning('poller.fetch_failed: %s; retrying next tick', e)
            return False
        except Exception as e:
            self.last_error = str(e)
            log.exception('poller.unexpected_error')
            return False
        finally:
            self._in_flight.release()

    def update_countdowns(self) -> Dict[str, int]:
        self.countdowns = self.tracker.countdowns(self.clock())
        return self.countdowns

    def _fetch_loop(self):
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.interval)

    def _countdown_loop(self):
        while not self._stop.is_set():
            self.update_countdowns()
            self._stop.wait(COUNTDOWN_INTERVAL)

    def start(self):
        if self._threads:
            return
        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._fetch_loop, name='price_poller', daemon=True),
            threading.Thread(target=self._countdown_loop, name='countdown', daemon=True),
        ]
        for t in self._threads:
            t.start()
        log.info('poller.started interval=%ss', self.interval)

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        for t in self._threads:
            t.join(timeout)
        self._threads = []
        log.info('poller.stopped')


__all__ = ['Poller']
