"""Static market definitions: tracked tokens and clock-aligned timeframes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Token:
    symbol: str
    name: str
    color: str


@dataclass(frozen=True)
class Timeframe:
    label: str
    slug: str
    window_minutes: int


TOKENS: Tuple[Token, ...] = (
    Token('BTC', 'Bitcoin', '#f7931a'),
    Token('ETH', 'Ethereum', '#627eea'),
    Token('SOL', 'Solana', '#14f195'),
)

TIMEFRAMES: Tuple[Timeframe, ...] = (
    Timeframe('15 Minute', '15m', 15),
    Timeframe('1 Hour', '1h', 60),
    Timeframe('4 Hour', '4h', 240),
    Timeframe('1 Day', '1d', 1440),
)

SYMBOLS: Tuple[str, ...] = tuple(t.symbol for t in TOKENS)

_TOKENS_BY_SYMBOL: Dict[str, Token] = {t.symbol: t for t in TOKENS}


def get_token(symbol: str) -> Optional[Token]:
    return _TOKENS_BY_SYMBOL.get(symbol.upper())


__all__ = ['Token', 'Timeframe', 'TOKENS', 'TIMEFRAMES', 'SYMBOLS', 'get_token']
