"""Cached price adapter.

``PriceFetcher.fetch_prices`` serves a fresh cached snapshot when one exists,
otherwise calls the upstream source. Upstream failures fall back to the last
good snapshot however old it is; only a cold start with no snapshot raises.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional

from polyscreener.config import CONFIG
from polyscreener.markets import SYMBOLS
from polyscreener.models import PriceSnapshot
from polyscreener.price_sources import PartialSnapshotError, PriceFetchError, PriceSource, get_source

log = logging.getLogger(__name__)


class PriceCache:
    """Single-slot snapshot cache with an explicit freshness window.

    Process-local: separate server instances each hold their own slot.
    """

    def __init__(self, ttl: Optional[float] = None, clock: Callable[[], float] = time.time):
        self.ttl = CONFIG['PRICE_CACHE_TTL'] if ttl is None else ttl
        self.clock = clock
        self._lock = threading.Lock()
        self._snapshot: Optional[PriceSnapshot] = None

    def get_fresh(self, now: Optional[float] = None) -> Optional[PriceSnapshot]:
        now = self.clock() if now is None else now
        with self._lock:
            snap = self._snapshot
        if snap is not None and now - snap.fetched_at < self.ttl:
            return snap
        return None

    def get_any(self) -> Optional[PriceSnapshot]:
        with self._lock:
            return self._snapshot

    def store(self, snapshot: PriceSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot


class PriceFetcher:
    def __init__(self, source: Optional[PriceSource] = None, cache: Optional[PriceCache] = None,
                 symbols: Iterable[str] = SYMBOLS, clock: Callable[[], float] = time.time):
        self.source = source or get_source()
        self.cache = cache or PriceCache(clock=clock)
        self.symbols = tuple(symbols)
        self.clock = clock
        self._metrics_lock = threading.Lock()
        self._metrics: Dict[str, Any] = {
            'total_calls': 0,
            'cache_hits': 0,
            'upstream_calls': 0,
            'stale_served': 0,
            'errors': 0,
            'last_error': None,
            'last_fetch_duration_ms': 0.0,
            'last_success_time': None,
        }

    def _bump(self, key: str, **extra) -> None:
        with self._metrics_lock:
            self._metrics[key] += 1
            self._metrics.update(extra)

    def fetch_prices(self) -> PriceSnapshot:
        now = self.clock()
        self._bump('total_calls')
        cached = self.cache.get_fresh(now)
        if cached is not None:
            self._bump('cache_hits')
            return cached

        start = time.time()
        self._bump('upstream_calls')
        try:
            raw = self.source.fetch()
            try:
                snapshot = PriceSnapshot.build(raw, self.symbols, fetched_at=self.clock())
            except ValueError as e:
                raise PartialSnapshotError(str(e)) from e
        except PriceFetchError as e:
            self._bump('errors', last_error=str(e))
            stale = self.cache.get_any()
            if stale is None:
                log.error('price_fetch.cold_start_failure: %s', e, extra={'event': 'cold_start_failure'})
                raise
            self._bump('stale_served')
            log.warning(
                'price_fetch.stale_served: %s (snapshot age %.1fs)', e, stale.age(now),
                extra={'event': 'stale_served'},
            )
            return stale
        finally:
            with self._metrics_lock:
                self._metrics['last_fetch_duration_ms'] = (time.time() - start) * 1000.0

        self.cache.store(snapshot)
        with self._metrics_lock:
            self._metrics['last_success_time'] = snapshot.fetched_at
        log.debug('price_fetch.success via %s: %s', self.source.name, snapshot.to_dict())
        return snapshot

    def metrics(self) -> Dict[str, Any]:
        with self._metrics_lock:
            data = dict(self._metrics)
        snap = self.cache.get_any()
        total = data['total_calls']
        data.update({
            'source': self.source.name,
            'cache_ttl': self.cache.ttl,
            'has_snapshot': snap is not None,
            'snapshot_age_sec': round(snap.age(self.clock()), 3) if snap else None,
            'error_rate_percent': round(data['errors'] / total * 100.0, 4) if total else 0.0,
        })
        return data


__all__ = ['PriceCache', 'PriceFetcher']
