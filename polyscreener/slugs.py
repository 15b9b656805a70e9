"""Deep links to the prediction-market event matching a token and window."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from polyscreener.markets import get_token
from polyscreener.windows import REFERENCE_TZ

EVENT_BASE_URL = 'https://polymarket.com/event/'

MONTHS = ('january', 'february', 'march', 'april', 'may', 'june',
          'july', 'august', 'september', 'october', 'november', 'december')


def asset_name(symbol: str) -> str:
    token = get_token(symbol)
    return token.name.lower() if token else symbol.lower()


def build_event_slug(symbol: str, label: str, window_start: Optional[int]) -> Optional[str]:
    if window_start is None:
        return None
    ts = int(window_start)
    local = datetime.fromtimestamp(ts, tz=REFERENCE_TZ)
    if label in ('15m', '4h'):
        return f'{symbol.lower()}-updown-{label}-{ts}'
    if label == '1h':
        hour12 = local.hour % 12 or 12
        ampm = 'pm' if local.hour >= 12 else 'am'
        return f'{asset_name(symbol)}-up-or-down-{MONTHS[local.month - 1]}-{local.day}-{hour12}{ampm}-et'
    if label == '1d':
        # The daily market resolves on the following calendar day.
        market_day = local.date() + timedelta(days=1)
        return f'{asset_name(symbol)}-up-or-down-on-{MONTHS[market_day.month - 1]}-{market_day.day}'
    return None


def build_event_url(symbol: str, label: str, window_start: Optional[int]) -> Optional[str]:
    """Return the event URL, or None for an unknown label or missing window."""
    slug = build_event_slug(symbol, label, window_start)
    return EVENT_BASE_URL + slug if slug else None
