"""Clock-aligned window boundaries in the reference timezone.

All boundary math runs on calendar fields in ``America/New_York`` (or the
configured ``REFERENCE_TZ``), never on the host's local timezone, so results
are identical wherever the process runs.

Multi-hour boundaries are wall-clock boundaries: on a DST transition day
the daily window (20:00 to 20:00) spans 23 or 25 real hours.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from polyscreener.config import CONFIG

DAILY_ANCHOR_HOUR = 20
SUPPORTED_WINDOWS = (15, 60, 240, 1440)

REFERENCE_TZ = ZoneInfo(CONFIG['REFERENCE_TZ'])


@dataclass(frozen=True)
class ReferenceFields:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int


def _now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        raise ValueError('now must be timezone-aware')
    return now


def to_reference(now: Optional[datetime] = None) -> datetime:
    """Convert an aware instant to the reference timezone."""
    return _now(now).astimezone(REFERENCE_TZ)


def reference_fields(now: Optional[datetime] = None) -> ReferenceFields:
    local = to_reference(now)
    return ReferenceFields(local.year, local.month, local.day, local.hour, local.minute, local.second)


def compute_window_start(window_minutes: int, now: Optional[datetime] = None) -> datetime:
    """Return the start of the window currently in effect, in the reference timezone.

    15 floors the minute to a multiple of 15, 60 zeroes the minute, 240 floors
    the hour to a multiple of 4, and 1440 anchors at 20:00 (the previous
    calendar day before 20:00).
    """
    local = to_reference(now).replace(second=0, microsecond=0)
    if window_minutes == 15:
        return local.replace(minute=local.minute // 15 * 15)
    if window_minutes == 60:
        return local.replace(minute=0)
    if window_minutes == 240:
        return local.replace(hour=local.hour // 4 * 4, minute=0)
    if window_minutes == 1440:
        day = local.date()
        if local.hour < DAILY_ANCHOR_HOUR:
            day -= timedelta(days=1)
        return datetime(day.year, day.month, day.day, DAILY_ANCHOR_HOUR, tzinfo=REFERENCE_TZ)
    raise ValueError(f'unsupported window duration: {window_minutes} minutes')


def window_start_timestamp(window_minutes: int, now: Optional[datetime] = None) -> int:
    return int(compute_window_start(window_minutes, now).timestamp())


def next_window_time(window_minutes: int, now: Optional[datetime] = None) -> datetime:
    start = compute_window_start(window_minutes, now)
    if window_minutes <= 60:
        # Sub-hour boundaries survive DST shifts in absolute time.
        return start.astimezone(timezone.utc) + timedelta(minutes=window_minutes)
    # Multi-hour windows end on a wall-clock hour.
    wall = start.replace(tzinfo=None) + timedelta(minutes=window_minutes)
    return wall.replace(tzinfo=REFERENCE_TZ).astimezone(timezone.utc)


def countdown_seconds(window_minutes: int, now: Optional[datetime] = None) -> int:
    """Whole seconds until the next boundary, never negative."""
    now = _now(now)
    remaining = (next_window_time(window_minutes, now) - now.astimezone(timezone.utc)).total_seconds()
    return max(0, math.floor(remaining))


def format_countdown(seconds: int) -> str:
    if seconds < 0:
        return '0:00'
    hours, rest = divmod(int(seconds), 3600)
    mins, secs = divmod(rest, 60)
    if hours > 0:
        return f'{hours}:{mins:02d}:{secs:02d}'
    return f'{mins}:{secs:02d}'


__all__ = [
    'ReferenceFields',
    'REFERENCE_TZ',
    'SUPPORTED_WINDOWS',
    'to_reference',
    'reference_fields',
    'compute_window_start',
    'window_start_timestamp',
    'next_window_time',
    'countdown_seconds',
    'format_countdown',
]
