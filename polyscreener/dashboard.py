"""JSON view of what the dashboard renders for each timeframe."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from polyscreener.markets import TOKENS
from polyscreener.models import PriceSnapshot
from polyscreener.slugs import build_event_url
from polyscreener.tracker import WindowTracker, biggest_mover, calculate_change
from polyscreener.windows import format_countdown


def format_price(price: Optional[float]) -> str:
    if not price:
        return '$0.00'
    return f'${price:,.2f}'


def format_percent(percent: float) -> str:
    return f"{'+' if percent >= 0 else ''}{percent:.2f}%"


def build_dashboard(tracker: WindowTracker, snapshot: Optional[PriceSnapshot],
                    now: Optional[datetime] = None) -> Dict[str, Any]:
    """Assemble rows per timeframe; missing prices render as zero."""
    now = now or datetime.now(timezone.utc)
    current = snapshot.to_dict() if snapshot else {}
    countdowns = tracker.countdowns(now)
    timeframes = []
    for tf in tracker.timeframes:
        window_start, baseline = tracker.state(tf.slug)
        mover = biggest_mover(baseline, current, tracker.symbols)
        rows = []
        for token in TOKENS:
            cur = current.get(token.symbol, 0.0)
            start = baseline.get(token.symbol) if baseline else 0.0
            value, percent = calculate_change(cur, start)
            rows.append({
                'symbol': token.symbol,
                'name': token.name,
                'color': token.color,
                'start': start,
                'current': cur,
                'start_display': format_price(start),
                'current_display': format_price(cur),
                'change_value': value if baseline else None,
                'change_percent': percent if baseline else None,
                'change_display': format_percent(percent) if baseline else '--',
                'biggest_mover': token.symbol == mover,
                'url': build_event_url(token.symbol, tf.slug, window_start),
            })
        seconds = countdowns[tf.slug]
        timeframes.append({
            'label': tf.label,
            'slug': tf.slug,
            'window_minutes': tf.window_minutes,
            'window_start': window_start,
            'countdown_seconds': seconds,
            'countdown_display': format_countdown(seconds),
            'biggest_mover': mover,
            'rows': rows,
        })
    return {
        'timestamp': now.isoformat(),
        'last_update': snapshot.fetched_at if snapshot else None,
        'timeframes': timeframes,
    }
