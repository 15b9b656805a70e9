from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from polyscreener.markets import TIMEFRAMES, Timeframe, SYMBOLS
from polyscreener.models import PriceSnapshot
from polyscreener.state_store import CURRENT_WINDOWS_KEY, START_PRICES_KEY, KeyValueStore, MemoryStore
from polyscreener.windows import countdown_seconds, window_start_timestamp

log = logging.getLogger(__name__)

BASELINE_TIMES_KEY = 'baselineCapturedAt'


def calculate_change(current: Optional[float], start: Optional[float]) -> Tuple[float, float]:
    """Return ``(value, percent)``; zero when there is no usable start price."""
    if not start or not current:
        return 0.0, 0.0
    value = current - start
    return value, value / start * 100.0


def biggest_mover(baseline: Optional[PriceSnapshot], current: Mapping[str, float],
                  symbols: Iterable[str] = SYMBOLS) -> Optional[str]:
    """Symbol with the largest absolute percentage move; ties keep table order."""
    if baseline is None:
        return None
    best, best_change = None, 0.0
    for sym in symbols:
        cur, start = current.get(sym), baseline.get(sym)
        if not cur or not start:
            continue
        pct = abs(calculate_change(cur, start)[1])
        if pct > best_change:
            best, best_change = sym, pct
    return best


class WindowTracker:
    """Owns the baseline snapshot for every timeframe.

    A baseline is replaced only when the timeframe's window start changes
    (rollover) or none exists yet. State is written through ``store`` after
    every observation so it survives restarts.
    """

    def __init__(self, store: Optional[KeyValueStore] = None, timeframes: Iterable[Timeframe] = TIMEFRAMES,
                 symbols: Iterable[str] = SYMBOLS):
        self.store = store if store is not None else MemoryStore()
        self.timeframes = tuple(timeframes)
        self.symbols = tuple(symbols)
        self._lock = threading.RLock()
        self.windows: Dict[str, int] = {}
        self.baselines: Dict[str, PriceSnapshot] = {}
        self._load()

    def _load(self):
        windows = self.store.get(CURRENT_WINDOWS_KEY, {}) or {}
        start_prices = self.store.get(START_PRICES_KEY, {}) or {}
        captured = self.store.get(BASELINE_TIMES_KEY, {}) or {}
        known = {tf.slug for tf in self.timeframes}
        for slug, ts in windows.items():
            if slug in known and isinstance(ts, (int, float)):
                self.windows[slug] = int(ts)
        for slug, prices in start_prices.items():
            if slug not in known or not isinstance(prices, dict):
                continue
            try:
                snap = PriceSnapshot.build(prices, self.symbols,
                                           fetched_at=captured.get(slug, self.windows.get(slug, 0)))
            except (TypeError, ValueError) as e:
                log.warning('tracker.discard_persisted_baseline %s: %s', slug, e)
                continue
            self.baselines[slug] = snap
        if self.baselines:
            log.info('tracker.restored baselines for %s', ', '.join(sorted(self.baselines)))

    def _persist(self):
        self.store.set(START_PRICES_KEY, {k: v.to_dict() for k, v in self.baselines.items()})
        self.store.set(CURRENT_WINDOWS_KEY, dict(self.windows))
        self.store.set(BASELINE_TIMES_KEY, {k: v.fetched_at for k, v in self.baselines.items()})

    def observe(self, snapshot: PriceSnapshot, now: Optional[datetime] = None) -> List[str]:
        """Feed a fetched snapshot; return the labels whose baseline was replaced."""
        now = now or datetime.now(timezone.utc)
        rolled: List[str] = []
        with self._lock:
            for tf in self.timeframes:
                start = window_start_timestamp(tf.window_minutes, now)
                if self.windows.get(tf.slug) != start or tf.slug not in self.baselines:
                    self.baselines[tf.slug] = snapshot
                    rolled.append(tf.slug)
                self.windows[tf.slug] = start
            self._persist()
        if rolled:
            log.info('tracker.rollover %s', ', '.join(rolled), extra={'event': 'rollover'})
        return rolled

    def window_start(self, slug: str) -> Optional[int]:
        with self._lock:
            return self.windows.get(slug)

    def baseline(self, slug: str) -> Optional[PriceSnapshot]:
        with self._lock:
            return self.baselines.get(slug)

    def state(self, slug: str) -> Tuple[Optional[int], Optional[PriceSnapshot]]:
        """Window start and baseline for ``slug``, read together."""
        with self._lock:
            return self.windows.get(slug), self.baselines.get(slug)

    def countdowns(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or datetime.now(timezone.utc)
        return {tf.slug: countdown_seconds(tf.window_minutes, now) for tf in self.timeframes}

    def change(self, slug: str, symbol: str, current: Optional[float]) -> Tuple[float, float]:
        base = self.baseline(slug)
        return calculate_change(current, base.get(symbol) if base else None)

    def biggest_mover(self, slug: str, current: Mapping[str, float]) -> Optional[str]:
        return biggest_mover(self.baseline(slug), current, self.symbols)


__all__ = ['WindowTracker', 'biggest_mover', 'calculate_change']
