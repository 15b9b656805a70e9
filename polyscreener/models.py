from __future__ import annotations

import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional


@dataclass(frozen=True)
class PriceSnapshot:
    """Complete set of USD prices captured by a single fetch.

    Snapshots are replaced wholesale, never merged field by field.
    """

    prices: Mapping[str, float]
    fetched_at: float = field(default_factory=time.time)

    def __post_init__(self):
        object.__setattr__(self, 'prices', MappingProxyType(dict(self.prices)))

    @classmethod
    def build(cls, raw: Mapping[str, Any], symbols: Iterable[str], fetched_at: Optional[float] = None) -> 'PriceSnapshot':
        """Validate ``raw`` against ``symbols``; ValueError names the first bad symbol."""
        prices: Dict[str, float] = {}
        for sym in symbols:
            if sym not in raw:
                raise ValueError(f'missing price for {sym}')
            try:
                price = float(raw[sym])
            except (TypeError, ValueError):
                raise ValueError(f'non-numeric price for {sym}: {raw[sym]!r}') from None
            if not price > 0:
                raise ValueError(f'non-positive price for {sym}: {price}')
            prices[sym] = price
        return cls(prices, time.time() if fetched_at is None else fetched_at)

    def get(self, symbol: str, default: float = 0.0) -> float:
        return self.prices.get(symbol, default)

    def to_dict(self) -> Dict[str, float]:
        return dict(self.prices)

    def age(self, now: Optional[float] = None) -> float:
        return (time.time() if now is None else now) - self.fetched_at
